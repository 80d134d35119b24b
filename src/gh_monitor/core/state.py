# src/gh_monitor/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..config import ProjectRef
from ..tasks.task_store import TaskStore
from ..tasks.task_scheduler import PollScheduler


@dataclass
class AppState:
    # Settings object (real Settings or a test namespace with the same attributes).
    settings: Any

    store: TaskStore
    project_ref: ProjectRef | None = None
    source: Any = None
    poller: PollScheduler | None = None
