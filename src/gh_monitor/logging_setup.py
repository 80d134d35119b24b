# src/gh_monitor/logging_setup.py

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

_APP = "gh_monitor"

# Per-page fetch progress; only surfaces on the console when something goes wrong.
_QUIET_APP_PREFIXES = (f"{_APP}.github.",)

_LIBRARY_LEVELS = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "apscheduler": logging.WARNING,
}


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the console readable next to the REPL prompt.

    Application records pass (the GitHub client only from WARNING),
    everything else only from ERROR, captured warnings included.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if not name.startswith(f"{_APP}."):
            return record.levelno >= logging.ERROR
        if name.startswith(_QUIET_APP_PREFIXES):
            return record.levelno >= logging.WARNING
        return True


def setup_logging(
    *,
    log_dir: str | Path = ".local/gh_monitor",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
) -> Path:
    """
    stderr gets filtered records at `console_level`; `<log_dir>/gh_monitor.log`
    gets everything at `file_level` and rotates by size, since the poller is meant
    to run for weeks.

    Replaces existing root handlers, so calling it twice does not duplicate output.
    Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"{_APP}.log"

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s [%(threadName)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())

    file_handler = RotatingFileHandler(
        str(log_file),
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)

    root = logging.getLogger()
    root.setLevel(min(console_level, file_level))
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()
    root.addHandler(console)
    root.addHandler(file_handler)

    logging.captureWarnings(True)

    for name, level in _LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(level)

    return log_file
