# src/gh_monitor/cli/commands.py

from __future__ import annotations

import contextlib
import inspect
import logging
from collections.abc import Callable
from typing import Any, cast

from ..core.errors import MonitorError
from ..core.state import AppState
from ..tasks import task_api

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /stats, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _parse_kv(args: list[str]) -> tuple[dict[str, str], list[str]]:
    """Split ["state=open", "overdue"] into ({"state": "open"}, ["overdue"])."""
    kv: dict[str, str] = {}
    flags: list[str] = []
    for a in args:
        if "=" in a:
            k, _, v = a.partition("=")
            kv[k.strip().lower()] = v.strip()
        else:
            flags.append(a.lower())
    return kv, flags


def _int_arg(args: list[str], default: int | None) -> int | None:
    for a in args:
        with contextlib.suppress(ValueError):
            return int(a)
    return default


def _format_counts(title: str, counts: dict[str, int]) -> list[str]:
    lines = [f"  {title}:"]
    for key, n in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0])):
        lines.append(f"    {key}: {n}")
    return lines


def _format_task(t: dict[str, Any]) -> str:
    who = ", ".join(t["assignees"]) or "unassigned"
    due = f" due {t['dueDate']}" if t["dueDate"] else ""
    flag = " [OVERDUE]" if t["isOverdue"] else ""
    status = f" ({t['status']})" if t["status"] else ""
    return f"  {t['key']} [{t['state']}]{status}{due}{flag} - {t['title']} @ {who}"


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_health(state: AppState, args: list[str]) -> str:
    h = task_api.health()
    return f"Health: {h['status']} at {h['timestamp']}"


def cmd_stats(state: AppState, args: list[str]) -> str:
    data = task_api.current_stats(state)
    s = data["stats"]
    lines = [
        "Statistics:",
        f"  Total: {s['total']}  Open: {s['open']}  Closed: {s['closed']}  Overdue: {s['overdue']}",
    ]
    lines += _format_counts("By repository", data["breakdown"]["byRepository"])
    lines += _format_counts("By assignee", data["breakdown"]["byAssignee"])
    lines += _format_counts("By status", data["breakdown"]["byStatus"])
    return "\n".join(lines)


def cmd_tasks(state: AppState, args: list[str]) -> str:
    """
    /tasks                          -> all tasks
    /tasks state=open overdue       -> filters
    /tasks repo=org/repo assignee=x -> filters
    """
    kv, flags = _parse_kv(args)
    data = task_api.list_tasks(
        state,
        task_state=kv.get("state"),
        overdue="overdue" in flags or kv.get("overdue", "").lower() in ("1", "true", "yes"),
        repository=kv.get("repo") or kv.get("repository"),
        assignee=kv.get("assignee"),
    )
    if "error" in data:
        return f"{data['error']}. Use open, closed or merged."
    if not data["count"]:
        return "No tasks match."
    return "\n".join([f"Tasks ({data['count']}):"] + [_format_task(t) for t in data["tasks"]])


def cmd_overdue(state: AppState, args: list[str]) -> str:
    data = task_api.overdue_tasks(state)
    if not data["count"]:
        return "No overdue tasks."
    return "\n".join([f"Overdue tasks ({data['count']}):"] + [_format_task(t) for t in data["tasks"]])


def cmd_history(state: AppState, args: list[str]) -> str:
    days = _int_arg(args, 30) or 30
    data = task_api.history(state, days)
    if not data["data"]:
        return f"No daily statistics in the last {data['days']} days. Use /backfill to synthesize history."
    lines = [f"History (last {data['days']} days):"]
    for r in data["data"]:
        lines.append(
            f"  {r['date']}: total={r['totalTasks']} open={r['openTasks']} "
            f"closed={r['closedTasks']} overdue={r['overdueTasks']}"
        )
    return "\n".join(lines)


def cmd_refresh(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /refresh       -> start a poll cycle in the background
    /refresh wait  -> run a poll cycle and report its outcome
    """
    wait = bool(args) and args[0].lower() == "wait"
    if wait and emit:
        with contextlib.suppress(Exception):
            emit("[POLL] Running a poll cycle...")

    res = task_api.trigger_refresh(state, wait=wait)
    if "error" in res:
        return f"Refresh failed: {res['error']}."
    if not wait:
        return f"{res['message']} at {res['timestamp']}."
    if res["skipped"]:
        return "Polling already in progress; trigger skipped."
    if res["ok"]:
        return "Poll cycle completed successfully."
    return f"Poll cycle failed: {res['lastRunError']}"


def cmd_polling(state: AppState, args: list[str]) -> str:
    st = task_api.polling_status(state)
    if "error" in st:
        return f"{st['error']}."
    return (
        "Polling status:\n"
        f"  Running: {st['is_running']}\n"
        f"  Scheduled: {st['is_scheduled']} (cron: {st['cron_schedule']})\n"
        f"  Last run: {st['last_run_time'] or 'never'}\n"
        f"  Last status: {st['last_run_status'] or '-'}\n"
        f"  Last error: {st['last_run_error'] or '-'}"
    )


def cmd_backfill(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /backfill      -> synthesize daily statistics for the configured window
    /backfill 14   -> ... for the last 14 days
    """
    days = _int_arg(args, None)
    if emit:
        with contextlib.suppress(Exception):
            emit("[BACKFILL] Generating historical statistics...")
    try:
        res = task_api.run_backfill(state, days)
    except MonitorError as e:
        logger.exception("Backfill failed")
        return f"Backfill failed: {e}"
    return f"Historical data backfill completed: {res['daysGenerated']} days written."


def cmd_db(state: AppState, args: list[str]) -> str:
    st = task_api.database_status(state)
    snaps = st["task_snapshots"]
    daily = st["daily_statistics"]
    lines = [
        "Database status:",
        f"  Snapshots: {snaps['total_snapshots']} rows, {snaps['distinct_dates']} dates "
        f"({snaps['earliest_date'] or '-'} .. {snaps['latest_date'] or '-'})",
        f"  Daily statistics: {daily['total_records']} rows "
        f"({daily['earliest_date'] or '-'} .. {daily['latest_date'] or '-'})",
    ]
    for r in st["recent_statistics"]:
        lines.append(
            f"    {r['date']}: total={r['totalTasks']} open={r['openTasks']} "
            f"closed={r['closedTasks']} overdue={r['overdueTasks']}"
        )
    return "\n".join(lines)


def cmd_fields(state: AppState, args: list[str]) -> str:
    source = state.source
    if source is None or state.project_ref is None or not hasattr(source, "get_project_fields"):
        return "GitHub client not initialized."
    try:
        fields = source.get_project_fields(state.project_ref)
    except MonitorError as e:
        return f"Failed to fetch project fields: {e}"
    lines = [f"Project fields ({len(fields)}):"]
    for f in fields:
        options = ", ".join(o.get("name", "") for o in f.get("options") or [])
        suffix = f" [{options}]" if options else ""
        lines.append(f"  {f.get('name')} ({f.get('dataType', '?')}){suffix}")
    return "\n".join(lines)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("health", cmd_health, help_text="Health check.")
registry.register("stats", cmd_stats, help_text="Current statistics with breakdowns.")
registry.register(
    "tasks",
    cmd_tasks,
    help_text="List tasks: /tasks [state=open|closed|merged] [overdue] [repo=...] [assignee=...].",
)
registry.register("overdue", cmd_overdue, help_text="List overdue tasks.")
registry.register("history", cmd_history, help_text="Daily statistics: /history [days].")
registry.register("refresh", cmd_refresh, help_text="Trigger a poll cycle: /refresh [wait].")
registry.register("polling", cmd_polling, help_text="Scheduler status.", aliases=["status"])
registry.register("backfill", cmd_backfill, help_text="Synthesize history: /backfill [days].")
registry.register("db", cmd_db, help_text="Database diagnostics.")
registry.register("fields", cmd_fields, help_text="List the project's custom fields.")
