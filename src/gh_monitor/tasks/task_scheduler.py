# src/gh_monitor/tasks/task_scheduler.py

from __future__ import annotations

"""
Poll scheduler.

A cron-driven loop that runs one poll cycle at a time:
- fetch raw items from the project source,
- normalize them into tasks,
- compute current statistics,
- reconcile tasks, sync assignments, take the daily snapshot, record daily statistics.

A trigger arriving while a cycle runs (timer tick or manual refresh, from any thread)
is dropped. Cycle failures are logged and recorded; they never stop the loop.
"""

import asyncio
import contextlib
import logging
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, tzinfo
from enum import StrEnum

from apscheduler.triggers.cron import CronTrigger

from ..config import DEFAULT_DUE_DATE_FIELDS, ProjectRef
from ..core.errors import ConfigError
from ..core.ports import ProjectSource, TaskRepo
from .normalizer import normalize_items
from .stats import compute_stats, local_now
from .task_models import TaskStats

logger = logging.getLogger(__name__)


class RunOutcome(StrEnum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(slots=True, frozen=True)
class SchedulerStatus:
    is_running: bool
    is_scheduled: bool
    cron_schedule: str
    last_run_time: datetime | None
    last_run_status: RunOutcome | None
    last_run_error: str | None


def build_trigger(cron_schedule: str, *, timezone: tzinfo | None = None) -> CronTrigger:
    try:
        return CronTrigger.from_crontab(cron_schedule, timezone=timezone)
    except ValueError as e:
        raise ConfigError(f"Invalid poll cron schedule {cron_schedule!r}: {e}") from e


class PollScheduler:
    """
    Owns the scheduler state: running flag (a lock), last run time/outcome/error.

    `clock` returns the aware "now" used for every time-sensitive step of a cycle.
    """

    def __init__(
        self,
        source: ProjectSource,
        store: TaskRepo,
        project_ref: ProjectRef,
        *,
        cron_schedule: str = "0 * * * *",
        timezone: tzinfo | None = None,
        status_field: str = "Status",
        due_date_fields: Sequence[str] = tuple(DEFAULT_DUE_DATE_FIELDS),
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self._source = source
        self._store = store
        self._project_ref = project_ref
        self._cron_schedule = cron_schedule
        self._trigger = build_trigger(cron_schedule, timezone=timezone)
        self._status_field = status_field
        self._due_date_fields = tuple(due_date_fields)
        self._clock = clock

        self._cycle_lock = threading.Lock()
        self._scheduled = False
        self._last_run_time: datetime | None = None
        self._last_run_status: RunOutcome | None = None
        self._last_run_error: str | None = None

    # ---- status ----

    @property
    def is_running(self) -> bool:
        return self._cycle_lock.locked()

    def status(self) -> SchedulerStatus:
        return SchedulerStatus(
            is_running=self.is_running,
            is_scheduled=self._scheduled,
            cron_schedule=self._cron_schedule,
            last_run_time=self._last_run_time,
            last_run_status=self._last_run_status,
            last_run_error=self._last_run_error,
        )

    # ---- one cycle ----

    def run_cycle(self, now: datetime) -> TaskStats:
        """Run the cycle steps in order; any failure propagates and aborts the rest."""
        logger.info("1. Fetching items from %s...", self._project_ref)
        items = self._source.fetch_all_items(self._project_ref)

        tasks = normalize_items(
            items,
            status_field=self._status_field,
            due_date_fields=self._due_date_fields,
        )
        logger.info("   Fetched %d items -> %d tasks", len(items), len(tasks))

        logger.info("2. Calculating statistics...")
        stats = compute_stats(tasks, now=now)
        logger.info(
            "   total=%d open=%d closed=%d overdue=%d",
            stats.total,
            stats.open,
            stats.closed,
            stats.overdue,
        )

        logger.info("3. Saving tasks...")
        self._store.reconcile(tasks, now=now)

        logger.info("4. Syncing task assignments...")
        for task in tasks:
            self._store.sync_assignments(task.key, task.assignees, now=now)

        logger.info("5. Creating snapshot...")
        self._store.snapshot(now=now)

        logger.info("6. Saving daily statistics...")
        self._store.record_daily_stats(stats.total, stats.open, stats.closed, stats.overdue, now=now)

        return stats

    def poll(self) -> bool:
        """
        Run one cycle unless one is already in progress.

        Returns False when the trigger was skipped. Never raises on cycle failure:
        the error is logged and kept in status().
        """
        if not self._cycle_lock.acquire(blocking=False):
            logger.warning("Polling already in progress, skipping this trigger")
            return False

        try:
            started = self._clock()
            logger.info("Starting polling cycle at %s", started.isoformat())
            try:
                self.run_cycle(started)
            except Exception as e:
                logger.exception("Polling cycle failed")
                self._last_run_status = RunOutcome.ERROR
                self._last_run_error = str(e) or e.__class__.__name__
            else:
                logger.info("Polling cycle completed successfully")
                self._last_run_status = RunOutcome.SUCCESS
                self._last_run_error = None
            self._last_run_time = started
            return True
        finally:
            self._cycle_lock.release()

    # ---- timer ----

    def seconds_until_next_run(self, now: datetime | None = None) -> float:
        now = now or datetime.now(self._trigger.timezone)
        next_fire = self._trigger.get_next_fire_time(None, now)
        if next_fire is None:
            return 60.0
        return max(0.5, (next_fire - now).total_seconds())

    async def run(self, stop_event: asyncio.Event, *, run_immediately: bool = True) -> None:
        """
        Scheduled polling loop.

        Sleeps until the next cron fire time (or until stop_event is set), then runs
        poll() in a worker thread so the event loop stays responsive.
        To stop, set stop_event or cancel the coroutine.
        """
        self._scheduled = True
        logger.info("Scheduled polling started (cron=%s)", self._cron_schedule)

        try:
            if run_immediately:
                await asyncio.to_thread(self.poll)

            while not stop_event.is_set():
                delay = self.seconds_until_next_run()
                logger.debug("Next poll in %.0fs", delay)
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=delay)
                except TimeoutError:
                    await asyncio.to_thread(self.poll)
        finally:
            self._scheduled = False
            logger.info("Scheduled polling stopped")


@dataclass
class SchedulerBackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except RuntimeError:
            logger.debug("Failed to signal scheduler stop.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_scheduler_in_background(
    poller: PollScheduler,
    *,
    run_immediately: bool = True,
) -> SchedulerBackgroundRunner | None:
    """
    Run the polling loop in a daemon thread with its own event loop,
    so the blocking console REPL can run in the main thread.
    """
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(poller.run(stop_event, run_immediately=run_immediately))
        except Exception:
            logger.exception("Scheduler loop crashed.")
        finally:
            with contextlib.suppress(Exception):
                loop.close()

    t = threading.Thread(target=runner, name="poll-scheduler", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Scheduler thread did not initialize properly.")
        return None

    logger.info("Scheduler background thread started.")
    return SchedulerBackgroundRunner(thread=t, loop=loop, stop_event=stop_event)
