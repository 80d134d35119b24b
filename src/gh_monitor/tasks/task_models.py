# src/gh_monitor/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum


class TaskKind(StrEnum):
    ISSUE = "issue"
    PULL_REQUEST = "pull_request"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskKind:
        if not raw:
            return cls.ISSUE
        try:
            return cls(raw)
        except ValueError:
            return cls.ISSUE


class TaskState(StrEnum):
    """
    Task lifecycle state.

    Notes:
    - "merged" is only valid for pull requests.
    - closed and merged are terminal: such tasks are never overdue.
    """

    OPEN = "open"
    CLOSED = "closed"
    MERGED = "merged"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskState.CLOSED, TaskState.MERGED)

    @classmethod
    def from_db(cls, raw: str | None) -> TaskState:
        if not raw:
            return cls.OPEN
        try:
            return cls(raw)
        except ValueError:
            return cls.OPEN


@dataclass(slots=True)
class Task:
    key: str  # "<owner>/<repo>#<number>"
    project_item_id: str
    title: str
    number: int
    kind: TaskKind
    state: TaskState
    status: str | None
    repository: str | None
    created_at: datetime
    updated_at: datetime

    assignees: list[str] = field(default_factory=list)
    due_date: date | None = None
    added_to_project_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class TaskStats:
    total: int
    open: int
    closed: int
    overdue: int
    overdue_list: list[Task]


@dataclass(frozen=True, slots=True)
class Assignment:
    task_key: str
    assignee: str
    assigned_at: datetime
    unassigned_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.unassigned_at is None


@dataclass(frozen=True, slots=True)
class Snapshot:
    task_key: str
    snapshot_date: date
    state: TaskState
    status: str | None
    is_overdue: bool


@dataclass(frozen=True, slots=True)
class DailyStatistic:
    snapshot_date: date
    total: int
    open: int
    closed: int
    overdue: int
