# src/gh_monitor/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The scheduler and backfill depend on Protocols instead of concrete implementations.
This keeps the GitHub client and the SQLite store swappable and makes testing easier.
"""

from collections.abc import Iterable, Sequence
from datetime import date, datetime
from typing import Any, Protocol


class ProjectSource(Protocol):
    """Where raw project items come from (GitHub GraphQL in production)."""

    def fetch_all_items(self, ref: Any) -> list[Any]: ...


class TaskRepo(Protocol):
    # Reconciler API (poll cycle)
    def reconcile(self, tasks: Sequence[Any], *, now: datetime | None = None) -> None: ...
    def sync_assignments(
            self,
            task_key: str,
            assignees: Iterable[str],
            *,
            now: datetime | None = None,
    ) -> None: ...
    def snapshot(self, *, now: datetime | None = None) -> int: ...
    def record_daily_stats(
            self,
            total: int,
            open: int,
            closed: int,
            overdue: int,
            *,
            snapshot_date: date | None = None,
            now: datetime | None = None,
    ) -> None: ...

    # Read API (views, backfill)
    def list_tasks(self) -> list[Any]: ...
    def get_history(self, days: int = 30, *, today: date | None = None) -> list[Any]: ...
    def count_daily_statistics(self) -> int: ...
    def database_status(self) -> dict[str, Any]: ...
