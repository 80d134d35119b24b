# tests/test_task_api.py

from __future__ import annotations

from datetime import timedelta

from gh_monitor.tasks import task_api
from gh_monitor.tasks.task_models import TaskKind, TaskState

from .fakes import NOW, TODAY, make_task


def _seed(state) -> None:
    tasks = [
        make_task(1, assignees=["alice", "bob"], due_date=TODAY - timedelta(days=1), created_days_ago=3),
        make_task(2, repository="acme/web", status=None, created_days_ago=2),
        make_task(3, kind=TaskKind.PULL_REQUEST, state=TaskState.MERGED, due_date=TODAY, created_days_ago=1),
    ]
    state.store.reconcile(tasks, now=NOW)
    for t in tasks:
        state.store.sync_assignments(t.key, t.assignees, now=NOW)


def test_health() -> None:
    assert task_api.health(now=NOW) == {"status": "ok", "timestamp": NOW.isoformat()}


def test_current_stats(state) -> None:
    _seed(state)

    data = task_api.current_stats(state, now=NOW)

    assert data["stats"] == {"total": 3, "open": 2, "closed": 1, "overdue": 1}
    assert data["breakdown"]["byRepository"] == {"acme/api": 2, "acme/web": 1}
    assert data["breakdown"]["byAssignee"] == {"alice": 1, "bob": 1, "unassigned": 2}
    assert data["breakdown"]["byStatus"] == {"Todo": 2, "no-status": 1}


def test_list_tasks_newest_first(state) -> None:
    _seed(state)

    data = task_api.list_tasks(state, now=NOW)

    assert data["count"] == 3
    assert [t["number"] for t in data["tasks"]] == [3, 2, 1]
    first = data["tasks"][0]
    assert first["type"] == "pull_request"
    assert first["state"] == "merged"
    assert first["dueDate"] == TODAY.isoformat()
    assert first["isOverdue"] is False


def test_list_tasks_filters(state) -> None:
    _seed(state)

    assert [t["number"] for t in task_api.list_tasks(state, task_state="open", now=NOW)["tasks"]] == [2, 1]
    assert [t["number"] for t in task_api.list_tasks(state, overdue=True, now=NOW)["tasks"]] == [1]
    assert [t["number"] for t in task_api.list_tasks(state, repository="acme/web", now=NOW)["tasks"]] == [2]
    assert [t["number"] for t in task_api.list_tasks(state, assignee="bob", now=NOW)["tasks"]] == [1]
    assert task_api.list_tasks(state, task_state="closed", now=NOW)["count"] == 0


def test_overdue_tasks(state) -> None:
    _seed(state)

    data = task_api.overdue_tasks(state, now=NOW)

    assert data["count"] == 1
    assert data["tasks"][0]["key"] == "acme/api#1"
    assert sorted(data["tasks"][0]["assignees"]) == ["alice", "bob"]


def test_history_days_are_clamped(state) -> None:
    state.store.record_daily_stats(3, 2, 1, 1, now=NOW)

    data = task_api.history(state, 0, now=NOW)

    assert data["days"] == 1
    assert data["data"] == [
        {"date": TODAY.isoformat(), "totalTasks": 3, "openTasks": 2, "closedTasks": 1, "overdueTasks": 1}
    ]


def test_trigger_refresh_wait(state) -> None:
    res = task_api.trigger_refresh(state, wait=True)

    assert res == {"ok": True, "skipped": False, "lastRunStatus": "success", "lastRunError": None}


def test_polling_status_serializes(state) -> None:
    state.poller.poll()

    st = task_api.polling_status(state)

    assert st["is_running"] is False
    assert st["cron_schedule"] == "0 * * * *"
    assert st["last_run_time"] == NOW.isoformat()
    assert st["last_run_status"] == "success"


def test_run_backfill_uses_configured_window(state) -> None:
    _seed(state)
    state.settings.backfill_days = 2

    res = task_api.run_backfill(state, now=NOW)

    assert res["daysGenerated"] == 3
    assert res["data"][-1] == {
        "date": TODAY.isoformat(),
        "totalTasks": 3,
        "openTasks": 2,
        "closedTasks": 1,
        "overdueTasks": 1,
    }


def test_database_status(state) -> None:
    _seed(state)
    state.store.snapshot(now=NOW)
    state.store.record_daily_stats(3, 2, 1, 1, now=NOW)

    st = task_api.database_status(state)

    assert st["task_snapshots"]["total_snapshots"] == 3
    assert st["recent_statistics"][0]["date"] == TODAY.isoformat()


def test_list_tasks_unknown_state_matches_nothing(state) -> None:
    _seed(state)

    data = task_api.list_tasks(state, task_state="opne", now=NOW)

    assert data["count"] == 0
    assert data["tasks"] == []
    assert data["error"] == "Invalid state filter: opne"
    assert task_api.list_tasks(state, task_state=" OPEN ", now=NOW)["count"] == 2
