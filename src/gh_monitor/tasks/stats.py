# src/gh_monitor/tasks/stats.py

"""
Aggregate statistics over a task collection.

Everything here is pure and takes an explicit `now` (aware datetime). When omitted,
the local current time is used.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime

from .task_models import Task, TaskState, TaskStats

UNASSIGNED = "unassigned"
UNKNOWN_REPOSITORY = "unknown"
NO_STATUS = "no-status"


def local_now() -> datetime:
    return datetime.now().astimezone()


def _today(now: datetime | None) -> date:
    return (now or local_now()).date()


def is_overdue(task: Task, *, today: date) -> bool:
    """
    Open task whose due day is today or earlier.

    Day granularity: a task due later today is already overdue.
    """
    if task.due_date is None:
        return False
    if task.state != TaskState.OPEN:
        return False
    return task.due_date <= today


def compute_stats(tasks: Sequence[Task], *, now: datetime | None = None) -> TaskStats:
    today = _today(now)
    overdue_list = [t for t in tasks if is_overdue(t, today=today)]
    return TaskStats(
        total=len(tasks),
        open=sum(1 for t in tasks if t.state == TaskState.OPEN),
        closed=sum(1 for t in tasks if t.state.is_terminal),
        overdue=len(overdue_list),
        overdue_list=overdue_list,
    )


def segregate(tasks: Iterable[Task]) -> tuple[list[Task], list[Task]]:
    """Split into (open, closed) where closed includes merged."""
    open_tasks: list[Task] = []
    closed_tasks: list[Task] = []
    for t in tasks:
        (closed_tasks if t.state.is_terminal else open_tasks).append(t)
    return open_tasks, closed_tasks


# ---- grouping ----


def _group(tasks: Iterable[Task], keys_of: Callable[[Task], list[str]]) -> dict[str, list[Task]]:
    grouped: dict[str, list[Task]] = {}
    for t in tasks:
        for key in keys_of(t):
            grouped.setdefault(key, []).append(t)
    return grouped


def group_by_repository(tasks: Iterable[Task]) -> dict[str, list[Task]]:
    return _group(tasks, lambda t: [t.repository or UNKNOWN_REPOSITORY])


def group_by_assignee(tasks: Iterable[Task]) -> dict[str, list[Task]]:
    """
    Non-exclusive: a task with several assignees appears under each of them,
    so the group sizes can add up to more than the number of tasks.
    """
    return _group(tasks, lambda t: list(t.assignees) or [UNASSIGNED])


def group_by_status(tasks: Iterable[Task]) -> dict[str, list[Task]]:
    return _group(tasks, lambda t: [t.status or NO_STATUS])


def _counts(grouped: dict[str, list[Task]]) -> dict[str, int]:
    return {k: len(v) for k, v in grouped.items()}


def by_repository(tasks: Iterable[Task]) -> dict[str, int]:
    return _counts(group_by_repository(tasks))


def by_assignee(tasks: Iterable[Task]) -> dict[str, int]:
    return _counts(group_by_assignee(tasks))


def by_status(tasks: Iterable[Task]) -> dict[str, int]:
    return _counts(group_by_status(tasks))


# ---- ordering / filtering ----


def sort_by_creation_date(tasks: Iterable[Task], *, ascending: bool = False) -> list[Task]:
    """Newest first by default."""
    return sorted(tasks, key=lambda t: t.created_at, reverse=not ascending)


def sort_by_due_date(tasks: Iterable[Task], *, ascending: bool = True) -> list[Task]:
    """Earliest due first by default; tasks without a due date always go last."""
    items = list(tasks)
    dated = [t for t in items if t.due_date is not None]
    dated.sort(key=lambda t: t.due_date, reverse=not ascending)  # type: ignore[arg-type,return-value]
    return dated + [t for t in items if t.due_date is None]


def filter_by_date_range(
    tasks: Iterable[Task],
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[Task]:
    """Tasks created within [start, end]; either bound may be None."""
    out: list[Task] = []
    for t in tasks:
        if start is not None and t.created_at < start:
            continue
        if end is not None and t.created_at > end:
            continue
        out.append(t)
    return out


@dataclass(frozen=True, slots=True)
class SummaryReport:
    stats: TaskStats
    by_repository: dict[str, int]
    by_assignee: dict[str, int]
    by_status: dict[str, int]


def summary_report(tasks: Sequence[Task], *, now: datetime | None = None) -> SummaryReport:
    return SummaryReport(
        stats=compute_stats(tasks, now=now),
        by_repository=by_repository(tasks),
        by_assignee=by_assignee(tasks),
        by_status=by_status(tasks),
    )
