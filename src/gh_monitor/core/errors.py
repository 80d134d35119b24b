# src/gh_monitor/core/errors.py

"""
Error taxonomy.

- TransportError: GitHub fetch failed (network, auth, HTTP status, GraphQL errors payload).
- PersistenceError: SQLite write/read failed (including constraint violations).
- NotFoundError: a task key has no stored row.
- ConfigError: required settings are missing or invalid.
"""

from __future__ import annotations


class MonitorError(Exception):
    """Base class for gh_monitor errors."""


class TransportError(MonitorError):
    pass


class PersistenceError(MonitorError):
    pass


class NotFoundError(PersistenceError):
    def __init__(self, key: str) -> None:
        super().__init__(f"Task not found: {key}")
        self.key = key


class ConfigError(MonitorError):
    pass
