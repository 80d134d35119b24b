# src/gh_monitor/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- resolves the project reference (ConfigError if missing),
- wires the GitHub client, the SQLite store and the poll scheduler into AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings, require_project
from ..core.state import AppState
from ..github.client import GitHubProjectClient
from ..tasks.task_scheduler import PollScheduler
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def create_store_state(*, settings=None) -> AppState:
    """AppState with the store only (no GitHub access): enough for backfill and read views."""
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)
    return AppState(settings=settings, store=TaskStore(settings.db_path))


def create_initial_state(*, settings=None, source=None) -> AppState:
    """
    Create AppState from the provided settings.

    Raises ConfigError when the GitHub project is not configured or the cron
    schedule is invalid; the caller must treat that as fatal.
    """
    if settings is None:
        settings = get_settings()

    project_ref = require_project(settings)
    state = create_store_state(settings=settings)

    if source is None:
        source = GitHubProjectClient.from_settings(settings)

    state.project_ref = project_ref
    state.source = source
    state.poller = PollScheduler(
        source,
        state.store,
        project_ref,
        cron_schedule=settings.poll_cron,
        status_field=settings.status_field,
        due_date_fields=settings.due_date_fields,
    )
    logger.info("Monitoring project %s (cron=%s)", project_ref, settings.poll_cron)
    return state
