# src/gh_monitor/tasks/backfill.py

"""
Synthetic history.

When no daily statistics were recorded in the past, reconstruct a day-by-day series
from the current tasks' timestamps:

- a task exists on day d if it was created before the end of d
- it counts as closed on d if it is closed/merged now and its last update was before the end of d
- it counts as overdue on d if it has a due date before the end of d and was open on d

This is an approximation: a task closed, reopened and closed again only has its last
update time, so earlier closures are invisible.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date, datetime, time, timedelta, tzinfo
from zoneinfo import ZoneInfo

from ..core.ports import TaskRepo
from .stats import local_now
from .task_models import DailyStatistic, Task

logger = logging.getLogger(__name__)


def _calendar_zone(now: datetime) -> tzinfo | None:
    """
    Zone whose calendar days are counted. None means the system local zone.

    A fixed offset equal to the system's current one (what `local_now()` returns)
    stands for the system zone, so days across a DST change get their own offset.
    """
    tz = now.tzinfo
    if isinstance(tz, ZoneInfo):
        return tz
    if now.utcoffset() == now.astimezone().utcoffset():
        return None
    return tz


def _start_of_day(d: date, zone: tzinfo | None) -> datetime:
    if zone is None:
        return datetime.combine(d, time.min).astimezone()
    return datetime.combine(d, time.min, tzinfo=zone)


def _open_at(task: Task, day_end: datetime) -> bool:
    return not task.state.is_terminal or task.updated_at >= day_end


def compute_day(tasks: Sequence[Task], d: date, *, now: datetime) -> DailyStatistic:
    # Exclusive bound: the first instant of the following local day.
    day_end = _start_of_day(d + timedelta(days=1), _calendar_zone(now))

    existing = [t for t in tasks if t.created_at < day_end]
    closed = sum(1 for t in existing if t.state.is_terminal and t.updated_at < day_end)
    overdue = sum(1 for t in existing if t.due_date is not None and t.due_date <= d and _open_at(t, day_end))

    return DailyStatistic(
        snapshot_date=d,
        total=len(existing),
        open=len(existing) - closed,
        closed=closed,
        overdue=overdue,
    )


def compute_backfill_series(
    tasks: Sequence[Task],
    *,
    window_days: int,
    now: datetime | None = None,
) -> list[DailyStatistic]:
    """One row per day from `window_days` days ago through today, oldest first."""
    now = now or local_now()
    if now.tzinfo is None:
        now = now.astimezone()

    today = now.date()
    return [
        compute_day(tasks, today - timedelta(days=days_ago), now=now)
        for days_ago in range(max(0, int(window_days)), -1, -1)
    ]


def backfill(
    store: TaskRepo,
    *,
    window_days: int = 30,
    now: datetime | None = None,
) -> list[DailyStatistic]:
    """
    Compute the series from stored tasks and upsert each day.

    A failure stops the loop and propagates; days written before it stay
    (re-running is idempotent per day).
    """
    tasks = store.list_tasks()
    logger.info("Backfill: %d tasks, %d days", len(tasks), window_days + 1)

    series = compute_backfill_series(tasks, window_days=window_days, now=now)
    for row in series:
        store.record_daily_stats(
            row.total,
            row.open,
            row.closed,
            row.overdue,
            snapshot_date=row.snapshot_date,
            now=now,
        )
        logger.debug(
            "Backfill %s: total=%s open=%s closed=%s overdue=%s",
            row.snapshot_date,
            row.total,
            row.open,
            row.closed,
            row.overdue,
        )

    logger.info("Backfill completed: %d days written", len(series))
    return series
