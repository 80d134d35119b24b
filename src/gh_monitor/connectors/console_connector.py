# src/gh_monitor/connectors/console_connector.py

"""
Interactive console: slash-commands against the running monitor.

The poll scheduler keeps running in its own thread; every command here reads the
store directly or triggers a cycle through the shared scheduler.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState

logger = logging.getLogger(__name__)

PROMPT = ">>> "
EXIT_COMMANDS = frozenset({"/exit", "/quit"})
NOT_A_COMMAND = "Not a command. Use /help to list available commands."


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _echo_input(line: str) -> None:
    """Re-print the input line with a timestamp (TTY only)."""
    if not sys.stdout.isatty():
        return
    try:
        sys.stdout.write("\033[1A\033[2K\r")
        sys.stdout.write(f"[{_ts_local()}] {PROMPT}{line}\n")
        sys.stdout.flush()
    except OSError:
        pass


def _banner(state: AppState) -> str:
    project = state.project_ref or "(no project)"
    cron = state.poller.status().cron_schedule if state.poller is not None else "-"
    return (
        f"[CONSOLE] Monitoring {project}, polling on '{cron}'.\n"
        "Use /help for commands, /exit to quit."
    )


def run_console_loop(
    state: AppState,
    *,
    read_line: Callable[[str], str] = input,
    write: Callable[[str], None] = print,
) -> None:
    """Read commands until /exit, EOF or Ctrl+C."""
    logger.info("Console connector started.")
    write(f"[{_ts_local()}] {_banner(state)}\n")

    def emit(text: str) -> None:
        # Progress notes from long commands (refresh wait, backfill).
        write(f"[{_ts_local()}] {text}")

    while True:
        try:
            line = read_line(PROMPT).strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            write("")
            break

        if not line:
            continue
        _echo_input(line)

        if line.lower() in EXIT_COMMANDS:
            logger.info("Console exit command received.")
            break

        try:
            response = command_registry.handle(state, line, emit=emit)
        except Exception:
            logger.exception("Command handler crashed: %s", line)
            response = "Internal error while handling a command."

        write(f"[{_ts_local()}] {response or NOT_A_COMMAND}\n")

    logger.info("Console connector finished.")
