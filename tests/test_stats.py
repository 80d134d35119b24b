# tests/test_stats.py

from __future__ import annotations

from datetime import timedelta

from gh_monitor.tasks.stats import (
    NO_STATUS,
    UNASSIGNED,
    UNKNOWN_REPOSITORY,
    by_assignee,
    by_repository,
    by_status,
    compute_stats,
    filter_by_date_range,
    is_overdue,
    segregate,
    sort_by_creation_date,
    sort_by_due_date,
    summary_report,
)
from gh_monitor.tasks.task_models import TaskKind, TaskState

from .fakes import NOW, TODAY, make_task


def test_due_today_is_overdue_due_tomorrow_is_not() -> None:
    assert is_overdue(make_task(due_date=TODAY), today=TODAY)
    assert is_overdue(make_task(due_date=TODAY - timedelta(days=3)), today=TODAY)
    assert not is_overdue(make_task(due_date=TODAY + timedelta(days=1)), today=TODAY)
    assert not is_overdue(make_task(due_date=None), today=TODAY)


def test_closed_and_merged_tasks_are_never_overdue() -> None:
    past = TODAY - timedelta(days=5)
    closed = make_task(state=TaskState.CLOSED, due_date=past)
    merged = make_task(kind=TaskKind.PULL_REQUEST, state=TaskState.MERGED, due_date=past)

    assert not is_overdue(closed, today=TODAY)
    assert not is_overdue(merged, today=TODAY)


def test_compute_stats_counts() -> None:
    tasks = [
        make_task(1, due_date=TODAY - timedelta(days=1)),
        make_task(2),
        make_task(3, state=TaskState.CLOSED, due_date=TODAY - timedelta(days=1)),
        make_task(4, kind=TaskKind.PULL_REQUEST, state=TaskState.MERGED),
    ]

    stats = compute_stats(tasks, now=NOW)

    assert (stats.total, stats.open, stats.closed, stats.overdue) == (4, 2, 2, 1)
    assert [t.number for t in stats.overdue_list] == [1]
    assert stats.open + stats.closed == stats.total


def test_compute_stats_of_nothing() -> None:
    stats = compute_stats([], now=NOW)
    assert (stats.total, stats.open, stats.closed, stats.overdue) == (0, 0, 0, 0)
    assert stats.overdue_list == []


def test_segregate_puts_merged_with_closed() -> None:
    tasks = [
        make_task(1),
        make_task(2, kind=TaskKind.PULL_REQUEST, state=TaskState.MERGED),
        make_task(3, state=TaskState.CLOSED),
    ]

    open_tasks, closed_tasks = segregate(tasks)

    assert [t.number for t in open_tasks] == [1]
    assert [t.number for t in closed_tasks] == [2, 3]


def test_assignee_grouping_is_not_exclusive() -> None:
    tasks = [make_task(1, assignees=["A", "B"]), make_task(2, assignees=[])]

    assert by_assignee(tasks) == {"A": 1, "B": 1, UNASSIGNED: 1}


def test_missing_repository_and_status_use_placeholder_keys() -> None:
    tasks = [
        make_task(1, repository=None, status=None),
        make_task(2, repository="acme/web", status="Done"),
        make_task(3, repository="acme/web", status="Done"),
    ]

    assert by_repository(tasks) == {UNKNOWN_REPOSITORY: 1, "acme/web": 2}
    assert by_status(tasks) == {NO_STATUS: 1, "Done": 2}


def test_sort_by_creation_date_newest_first() -> None:
    tasks = [make_task(1, created_days_ago=5), make_task(2, created_days_ago=1), make_task(3, created_days_ago=9)]

    assert [t.number for t in sort_by_creation_date(tasks)] == [2, 1, 3]
    assert [t.number for t in sort_by_creation_date(tasks, ascending=True)] == [3, 1, 2]


def test_sort_by_due_date_puts_undated_last() -> None:
    tasks = [
        make_task(1, due_date=None),
        make_task(2, due_date=TODAY + timedelta(days=4)),
        make_task(3, due_date=TODAY - timedelta(days=2)),
    ]

    assert [t.number for t in sort_by_due_date(tasks)] == [3, 2, 1]
    assert [t.number for t in sort_by_due_date(tasks, ascending=False)] == [2, 3, 1]


def test_filter_by_date_range_is_inclusive() -> None:
    tasks = [make_task(1, created_days_ago=10), make_task(2, created_days_ago=5), make_task(3, created_days_ago=1)]

    kept = filter_by_date_range(tasks, start=NOW - timedelta(days=5), end=NOW - timedelta(days=1))

    assert [t.number for t in kept] == [2, 3]
    assert len(filter_by_date_range(tasks)) == 3


def test_summary_report_bundles_breakdowns() -> None:
    tasks = [make_task(1, assignees=["A"]), make_task(2, repository="acme/web", status=None)]

    report = summary_report(tasks, now=NOW)

    assert report.stats.total == 2
    assert report.by_repository == {"acme/api": 1, "acme/web": 1}
    assert report.by_assignee == {"A": 1, UNASSIGNED: 1}
    assert report.by_status == {"Todo": 1, NO_STATUS: 1}
