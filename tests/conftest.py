# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from gh_monitor.config import DEFAULT_DUE_DATE_FIELDS, ProjectRef
from gh_monitor.core.state import AppState
from gh_monitor.tasks.task_scheduler import PollScheduler
from gh_monitor.tasks.task_store import TaskStore

from .fakes import NOW, FakeSource


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the environment.
    """
    return SimpleNamespace(
        app_name="gh-monitor-test",
        github_org="acme",
        github_project_number=3,
        github_token=None,
        poll_cron="0 * * * *",
        poll_on_start=False,
        backfill_days=30,
        status_field="Status",
        due_date_fields=list(DEFAULT_DUE_DATE_FIELDS),
        data_dir=tmp_path / "data",
        db_path=tmp_path / "data" / "monitor.sqlite3",
    )


@pytest.fixture()
def store(tmp_path: Path) -> TaskStore:
    # Real SQLite: upsert/transaction behaviour is part of what we test.
    return TaskStore(tmp_path / "monitor.sqlite3")


@pytest.fixture()
def source() -> FakeSource:
    return FakeSource()


@pytest.fixture()
def project_ref() -> ProjectRef:
    return ProjectRef(org="acme", number=3)


@pytest.fixture()
def poller(source: FakeSource, store: TaskStore, project_ref: ProjectRef) -> PollScheduler:
    return PollScheduler(source, store, project_ref, clock=lambda: NOW)


@pytest.fixture()
def state(settings: SimpleNamespace, store: TaskStore, source: FakeSource, poller: PollScheduler) -> AppState:
    return AppState(
        settings=settings,
        store=store,
        project_ref=ProjectRef(org="acme", number=3),
        source=source,
        poller=poller,
    )
