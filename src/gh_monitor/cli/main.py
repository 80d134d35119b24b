# src/gh_monitor/cli/main.py

"""
CLI entrypoints.

main():
  initializes logging, builds AppState, then runs
  - the poll scheduler in a background thread,
  - the console REPL in the main thread (optional).

backfill_main():
  one-shot synthetic history for the configured window, then exit.
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading

from ..cli.bootstrap import create_initial_state, create_store_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.errors import ConfigError, MonitorError
from ..logging_setup import setup_logging
from ..tasks.backfill import backfill
from ..tasks.task_scheduler import start_scheduler_in_background

logger = logging.getLogger(__name__)


def _setup_logging_from(settings) -> None:
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=getattr(settings, "data_dir", ".local/gh_monitor"), console_level=console_level)


def _shutdown(state) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        source = getattr(state, "source", None)
        if source is not None and hasattr(source, "close"):
            source.close()
    except Exception:
        logger.debug("GitHub client close failed.", exc_info=True)


def main() -> None:
    settings = get_settings()
    _setup_logging_from(settings)

    logger.info("Starting %s...", settings.app_name)

    try:
        state = create_initial_state(settings=settings)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        sys.exit(1)
    except MonitorError:
        logger.exception("Startup failed.")
        sys.exit(1)

    assert state.poller is not None
    runner = start_scheduler_in_background(state.poller, run_immediately=settings.poll_on_start)

    # Use an Event so main can wait without a busy while-loop.
    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    try:
        signal.signal(signal.SIGINT, _handle_signal)
        signal.signal(signal.SIGTERM, _handle_signal)
    except (ValueError, OSError):
        # Some platforms may not support SIGTERM, etc.
        pass

    try:
        if settings.console_enabled:
            run_console_loop(state)
            stop_main.set()
        else:
            logger.info("Console disabled. Running scheduled polling only. Press Ctrl+C to stop.")
            stop_main.wait()
    finally:
        if runner is not None:
            runner.stop()
            runner.join(timeout=10.0)

        _shutdown(state)
        logger.info("Bye.")


def backfill_main(argv: list[str] | None = None) -> None:
    settings = get_settings()

    parser = argparse.ArgumentParser(
        prog="gh-monitor-backfill",
        description="Generate synthetic daily statistics from the stored tasks.",
    )
    parser.add_argument(
        "--days",
        type=int,
        default=settings.backfill_days,
        help=f"window length in days (default: {settings.backfill_days})",
    )
    args = parser.parse_args(argv)

    _setup_logging_from(settings)

    try:
        state = create_store_state(settings=settings)
        series = backfill(state.store, window_days=max(0, args.days))
    except MonitorError:
        logger.exception("Backfill failed.")
        sys.exit(1)

    for row in series:
        print(
            f"{row.snapshot_date}: Total={row.total}, Open={row.open}, "
            f"Closed={row.closed}, Overdue={row.overdue}"
        )
    logger.info("Generated %d days of historical data.", len(series))


if __name__ == "__main__":
    main()
