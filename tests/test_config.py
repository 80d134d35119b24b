# tests/test_config.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from gh_monitor.config import DEFAULT_DUE_DATE_FIELDS, ProjectRef, Settings, require_project
from gh_monitor.core.errors import ConfigError


def test_require_project_ok() -> None:
    ref = require_project(SimpleNamespace(github_org=" acme ", github_project_number=7))

    assert ref == ProjectRef(org="acme", number=7)
    assert str(ref) == "acme/projects/7"


@pytest.mark.parametrize(
    "org,number",
    [("", 7), ("acme", None), ("acme", 0)],
)
def test_require_project_missing(org, number) -> None:
    with pytest.raises(ConfigError):
        require_project(SimpleNamespace(github_org=org, github_project_number=number))


def test_settings_from_env(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("GHMON_GITHUB_ORG", "acme")
    monkeypatch.setenv("GHMON_GITHUB_PROJECT_NUMBER", "12")
    monkeypatch.setenv("GHMON_POLL_CRON", "*/15 * * * *")
    monkeypatch.setenv("GHMON_DUE_DATE_FIELDS", "Deadline, Due Date")
    monkeypatch.setenv("GHMON_PAGE_SIZE", "500")
    monkeypatch.setenv("GHMON_CONSOLE_ENABLED", "no")
    monkeypatch.setenv("GHMON_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("GHMON_DB_PATH", raising=False)

    s = Settings.from_env()

    assert s.github_org == "acme"
    assert s.github_project_number == 12
    assert s.poll_cron == "*/15 * * * *"
    assert s.due_date_fields == ["Deadline", "Due Date"]
    assert s.page_size == 100
    assert s.console_enabled is False
    assert s.db_path == tmp_path / "monitor.sqlite3"


def test_settings_fall_back_to_unprefixed_names(monkeypatch) -> None:
    for name in (
        "GHMON_GITHUB_ORG",
        "GHMON_GITHUB_PROJECT_NUMBER",
        "GHMON_GITHUB_TOKEN",
        "GHMON_POLL_CRON",
        "GHMON_DUE_DATE_FIELDS",
        "GITHUB_TOKEN",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("GITHUB_ORG", "other")
    monkeypatch.setenv("GITHUB_PROJECT_NUMBER", "not-a-number")
    monkeypatch.setenv("GH_TOKEN", "ghp_x")
    monkeypatch.setenv("POLLING_CRON_SCHEDULE", "0 6 * * *")

    s = Settings.from_env()

    assert s.github_org == "other"
    assert s.github_project_number is None
    assert s.github_token == "ghp_x"
    assert s.poll_cron == "0 6 * * *"
    assert s.due_date_fields == DEFAULT_DUE_DATE_FIELDS
