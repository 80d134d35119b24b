"""GitHub project board monitor: scheduled polling, task history and statistics."""

__version__ = "0.1.0"
