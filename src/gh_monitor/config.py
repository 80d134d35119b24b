# src/gh_monitor/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time.
- Missing project identifiers are reported by require_project(), not at import.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .core.errors import ConfigError

ENV_PREFIX = "GHMON"

DEFAULT_DUE_DATE_FIELDS = ["Target Date", "Production ETA", "Due Date", "Due", "DueDate"]


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


# A local .env never overrides variables already set in the process environment.
load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_csv(name: str, default: List[str]) -> List[str]:
    # Field names may contain spaces ("Due Date"), so only commas separate items.
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.split(",") if p.strip()]


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class ProjectRef:
    """Identifies one GitHub Projects (v2) board: organization login + project number."""

    org: str
    number: int

    def __str__(self) -> str:
        return f"{self.org}/projects/{self.number}"


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- GitHub ----
    github_org: str
    github_project_number: Optional[int]
    github_token: Optional[str]
    github_graphql_url: str
    http_connect_timeout_seconds: float
    http_read_timeout_seconds: float
    page_size: int

    # ---- Polling / history ----
    poll_cron: str
    poll_on_start: bool
    backfill_days: int

    # ---- Project field names ----
    status_field: str
    due_date_fields: List[str]

    # ---- Connectors ----
    console_enabled: bool

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "gh-monitor") or "gh-monitor"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        github_org = (_first_env(_k("GITHUB_ORG"), "GITHUB_ORG", default="") or "").strip()

        raw_number = (_first_env(_k("GITHUB_PROJECT_NUMBER"), "GITHUB_PROJECT_NUMBER", default="") or "").strip()
        github_project_number: int | None
        try:
            github_project_number = int(raw_number) if raw_number else None
        except ValueError:
            github_project_number = None

        github_token = _first_env(_k("GITHUB_TOKEN"), "GITHUB_TOKEN", "GH_TOKEN", default=None)
        github_graphql_url = _env(_k("GITHUB_GRAPHQL_URL"), "https://api.github.com/graphql")

        http_connect_timeout_seconds = _env_float(_k("HTTP_CONNECT_TIMEOUT_SECONDS"), 5.0)
        http_read_timeout_seconds = _env_float(_k("HTTP_READ_TIMEOUT_SECONDS"), 30.0)
        page_size = max(1, min(100, _env_int(_k("PAGE_SIZE"), 50)))

        poll_cron = (
            _first_env(_k("POLL_CRON"), "POLLING_CRON_SCHEDULE", default="0 * * * *") or "0 * * * *"
        ).strip()
        poll_on_start = _env_bool(_k("POLL_ON_START"), True)
        backfill_days = max(0, _env_int(_k("BACKFILL_DAYS"), 30))

        status_field = _env(_k("STATUS_FIELD"), "Status").strip() or "Status"
        due_date_fields = _env_csv(_k("DUE_DATE_FIELDS"), DEFAULT_DUE_DATE_FIELDS)

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/gh_monitor"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "monitor.sqlite3")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            github_org=github_org,
            github_project_number=github_project_number,
            github_token=github_token,
            github_graphql_url=github_graphql_url,
            http_connect_timeout_seconds=http_connect_timeout_seconds,
            http_read_timeout_seconds=http_read_timeout_seconds,
            page_size=page_size,
            poll_cron=poll_cron,
            poll_on_start=poll_on_start,
            backfill_days=backfill_days,
            status_field=status_field,
            due_date_fields=due_date_fields,
            console_enabled=console_enabled,
            data_dir=data_dir,
            db_path=db_path,
        )


def require_project(settings) -> ProjectRef:
    """
    Resolve the project reference or raise ConfigError.

    The service must not start without it.
    """
    org = str(getattr(settings, "github_org", "") or "").strip()
    number = getattr(settings, "github_project_number", None)

    if not org:
        raise ConfigError(f"GitHub organization is not set. Set {_k('GITHUB_ORG')} in your .env.")
    if not isinstance(number, int) or number <= 0:
        raise ConfigError(
            f"GitHub project number is not set or invalid. Set {_k('GITHUB_PROJECT_NUMBER')} in your .env."
        )
    return ProjectRef(org=org, number=number)


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
