# src/gh_monitor/tasks/task_api.py

"""
Read views and manual triggers over the stored state.

Each function returns plain JSON-compatible dicts. Reads never wait for a poll cycle:
they see whatever the store holds right now.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import asdict
from datetime import date, datetime
from typing import Any

from ..core.state import AppState
from .backfill import backfill
from .stats import compute_stats, is_overdue, local_now, summary_report
from .task_models import DailyStatistic, Task, TaskState
from .task_scheduler import RunOutcome

logger = logging.getLogger(__name__)

NOT_INITIALIZED = "Polling service not initialized"


def _iso(value: datetime | date | None) -> str | None:
    return value.isoformat() if value is not None else None


def task_to_dict(task: Task, *, today: date) -> dict[str, Any]:
    return {
        "key": task.key,
        "projectItemId": task.project_item_id,
        "title": task.title,
        "number": task.number,
        "type": task.kind.value,
        "state": task.state.value,
        "status": task.status,
        "repository": task.repository,
        "assignees": list(task.assignees),
        "createdAt": _iso(task.created_at),
        "updatedAt": _iso(task.updated_at),
        "dueDate": _iso(task.due_date),
        "addedToProjectAt": _iso(task.added_to_project_at),
        "isOverdue": is_overdue(task, today=today),
    }


def daily_to_dict(row: DailyStatistic) -> dict[str, Any]:
    return {
        "date": row.snapshot_date.isoformat(),
        "totalTasks": row.total,
        "openTasks": row.open,
        "closedTasks": row.closed,
        "overdueTasks": row.overdue,
    }


def health(*, now: datetime | None = None) -> dict[str, Any]:
    return {"status": "ok", "timestamp": (now or local_now()).isoformat()}


def current_stats(state: AppState, *, now: datetime | None = None) -> dict[str, Any]:
    tasks = state.store.list_tasks()
    report = summary_report(tasks, now=now)
    return {
        "stats": {
            "total": report.stats.total,
            "open": report.stats.open,
            "closed": report.stats.closed,
            "overdue": report.stats.overdue,
        },
        "breakdown": {
            "byRepository": report.by_repository,
            "byAssignee": report.by_assignee,
            "byStatus": report.by_status,
        },
    }


def list_tasks(
    state: AppState,
    *,
    task_state: str | None = None,
    overdue: bool = False,
    repository: str | None = None,
    assignee: str | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Stored tasks filtered by state, overdue flag, repository and assignee (all optional)."""
    today = (now or local_now()).date()
    tasks = state.store.list_tasks()

    if task_state:
        try:
            wanted = TaskState(task_state.strip().lower())
        except ValueError:
            return {"count": 0, "tasks": [], "error": f"Invalid state filter: {task_state}"}
        tasks = [t for t in tasks if t.state == wanted]
    if overdue:
        tasks = [t for t in tasks if is_overdue(t, today=today)]
    if repository:
        tasks = [t for t in tasks if t.repository == repository]
    if assignee:
        tasks = [t for t in tasks if assignee in t.assignees]

    return {"count": len(tasks), "tasks": [task_to_dict(t, today=today) for t in tasks]}


def overdue_tasks(state: AppState, *, now: datetime | None = None) -> dict[str, Any]:
    now = now or local_now()
    stats = compute_stats(state.store.list_tasks(), now=now)
    return {
        "count": stats.overdue,
        "tasks": [task_to_dict(t, today=now.date()) for t in stats.overdue_list],
    }


def history(state: AppState, days: int = 30, *, now: datetime | None = None) -> dict[str, Any]:
    days = max(1, int(days))
    rows = state.store.get_history(days, today=(now or local_now()).date())
    return {"days": days, "data": [daily_to_dict(r) for r in rows]}


def trigger_refresh(state: AppState, *, wait: bool = False) -> dict[str, Any]:
    """
    Start a poll cycle now.

    By default the cycle runs in a background thread and this returns immediately.
    If a cycle is already running, the new trigger is dropped by the scheduler.
    """
    poller = state.poller
    if poller is None:
        return {"ok": False, "error": NOT_INITIALIZED}

    if wait:
        ran = poller.poll()
        st = poller.status()
        return {
            "ok": ran and st.last_run_status == RunOutcome.SUCCESS,
            "skipped": not ran,
            "lastRunStatus": st.last_run_status.value if st.last_run_status else None,
            "lastRunError": st.last_run_error,
        }

    if poller.is_running:
        return {"ok": True, "message": "Polling already in progress", "timestamp": local_now().isoformat()}

    threading.Thread(target=poller.poll, name="manual-refresh", daemon=True).start()
    return {"ok": True, "message": "Refresh triggered successfully", "timestamp": local_now().isoformat()}


def polling_status(state: AppState) -> dict[str, Any]:
    if state.poller is None:
        return {"error": NOT_INITIALIZED}

    st = state.poller.status()
    out = asdict(st)
    out["last_run_time"] = _iso(st.last_run_time)
    out["last_run_status"] = st.last_run_status.value if st.last_run_status else None
    return out


def database_status(state: AppState) -> dict[str, Any]:
    status = state.store.database_status()
    status["recent_statistics"] = [daily_to_dict(r) for r in status["recent_statistics"]]
    return status


def run_backfill(state: AppState, days: int | None = None, *, now: datetime | None = None) -> dict[str, Any]:
    if days is None:
        days = int(getattr(state.settings, "backfill_days", 30))
    series = backfill(state.store, window_days=max(0, int(days)), now=now)
    return {"daysGenerated": len(series), "data": [daily_to_dict(r) for r in series]}
