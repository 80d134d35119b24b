# tests/test_backfill.py

from __future__ import annotations

import time as time_module
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from gh_monitor.core.errors import PersistenceError
from gh_monitor.tasks.backfill import backfill, compute_backfill_series, compute_day
from gh_monitor.tasks.task_models import TaskKind, TaskState
from gh_monitor.tasks.task_store import TaskStore

from .fakes import NOW, TODAY, make_task


def _by_day(series):
    return {(row.snapshot_date - TODAY).days: row for row in series}


def test_open_task_becomes_overdue_from_its_due_day() -> None:
    task = make_task(created_days_ago=10, due_date=TODAY - timedelta(days=2))

    rows = _by_day(compute_backfill_series([task], window_days=30, now=NOW))

    assert rows[-11].total == 0
    assert rows[-10].total == 1
    assert rows[-3].overdue == 0
    assert rows[-2].overdue == 1
    assert rows[0].overdue == 1


def test_closed_task_counts_as_closed_from_its_last_update() -> None:
    task = make_task(state=TaskState.CLOSED, created_days_ago=8, updated_days_ago=3, due_date=TODAY - timedelta(days=5))

    rows = _by_day(compute_backfill_series([task], window_days=10, now=NOW))

    assert (rows[-6].open, rows[-6].closed, rows[-6].overdue) == (1, 0, 0)
    # Open on its due day and until the closing update: overdue.
    assert (rows[-4].open, rows[-4].closed, rows[-4].overdue) == (1, 0, 1)
    assert (rows[-3].open, rows[-3].closed, rows[-3].overdue) == (0, 1, 0)
    assert (rows[0].open, rows[0].closed, rows[0].overdue) == (0, 1, 0)


def test_series_covers_window_oldest_first() -> None:
    series = compute_backfill_series([], window_days=7, now=NOW)

    assert len(series) == 8
    assert series[0].snapshot_date == TODAY - timedelta(days=7)
    assert series[-1].snapshot_date == TODAY
    assert all(r.total == 0 for r in series)


def test_open_plus_closed_is_total_every_day() -> None:
    tasks = [
        make_task(1, created_days_ago=20),
        make_task(2, kind=TaskKind.PULL_REQUEST, state=TaskState.MERGED, created_days_ago=15, updated_days_ago=4),
        make_task(3, state=TaskState.CLOSED, created_days_ago=2, updated_days_ago=1),
    ]

    for row in compute_backfill_series(tasks, window_days=30, now=NOW):
        assert row.open + row.closed == row.total
        assert row.overdue <= row.open


def test_series_is_deterministic() -> None:
    tasks = [make_task(1, due_date=TODAY - timedelta(days=1)), make_task(2, state=TaskState.CLOSED)]

    assert compute_backfill_series(tasks, window_days=5, now=NOW) == compute_backfill_series(
        tasks, window_days=5, now=NOW
    )


def test_today_matches_live_counts() -> None:
    tasks = [make_task(1, due_date=TODAY), make_task(2, state=TaskState.CLOSED, updated_days_ago=2)]

    row = compute_day(tasks, TODAY, now=NOW)

    assert (row.total, row.open, row.closed, row.overdue) == (2, 1, 1, 1)


def test_backfill_writes_every_day(store: TaskStore) -> None:
    store.reconcile([make_task(1, created_days_ago=3)], now=NOW)

    series = backfill(store, window_days=5, now=NOW)

    assert len(series) == 6
    assert store.count_daily_statistics() == 6
    history = store.get_history(5, today=TODAY)
    assert [r.total for r in history] == [0, 0, 1, 1, 1, 1]

    # Re-running overwrites in place.
    backfill(store, window_days=5, now=NOW)
    assert store.count_daily_statistics() == 6


class FlakyRepo:
    def __init__(self, tasks, fail_after: int) -> None:
        self.tasks = tasks
        self.fail_after = fail_after
        self.written = []

    def list_tasks(self):
        return list(self.tasks)

    def record_daily_stats(self, total, open, closed, overdue, *, snapshot_date=None, now=None) -> None:
        if len(self.written) >= self.fail_after:
            raise PersistenceError("disk full")
        self.written.append(snapshot_date)


def test_failure_stops_backfill_and_keeps_earlier_days() -> None:
    repo = FlakyRepo([make_task(1)], fail_after=3)

    with pytest.raises(PersistenceError):
        backfill(repo, window_days=10, now=NOW)

    assert repo.written == [TODAY - timedelta(days=d) for d in (10, 9, 8)]


NEW_YORK = ZoneInfo("America/New_York")


def test_day_boundaries_follow_dst_in_a_named_zone() -> None:
    # US DST ends 2026-11-01: October days are UTC-4, November days UTC-5.
    now = datetime(2026, 11, 10, 12, 0, tzinfo=NEW_YORK)
    just_after_midnight = make_task(1, now=now)
    just_after_midnight.created_at = datetime(2026, 10, 31, 0, 30, tzinfo=NEW_YORK)
    late_evening = make_task(2, now=now)
    late_evening.created_at = datetime(2026, 10, 30, 23, 30, tzinfo=NEW_YORK)

    assert compute_day([just_after_midnight, late_evening], date(2026, 10, 30), now=now).total == 1
    assert compute_day([just_after_midnight, late_evening], date(2026, 10, 31), now=now).total == 2

    rows = {r.snapshot_date: r for r in compute_backfill_series([just_after_midnight], window_days=15, now=now)}
    assert rows[date(2026, 10, 30)].total == 0
    assert rows[date(2026, 10, 31)].total == 1


@pytest.fixture()
def new_york_local_time(monkeypatch):
    if not hasattr(time_module, "tzset"):
        pytest.skip("time.tzset is not available")
    monkeypatch.setenv("TZ", "America/New_York")
    time_module.tzset()
    yield
    monkeypatch.undo()
    time_module.tzset()


def test_fixed_offset_now_uses_the_system_zone_across_dst(new_york_local_time) -> None:
    # What local_now() returns after the change: a fixed UTC-5 offset.
    now = datetime(2026, 11, 10, 12, 0, tzinfo=NEW_YORK).astimezone()
    assert now.utcoffset() == timedelta(hours=-5)

    task = make_task(1, now=now)
    task.created_at = datetime(2026, 10, 31, 0, 30, tzinfo=NEW_YORK)

    assert compute_day([task], date(2026, 10, 30), now=now).total == 0
    assert compute_day([task], date(2026, 10, 31), now=now).total == 1
