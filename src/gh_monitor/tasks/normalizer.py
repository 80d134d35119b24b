# src/gh_monitor/tasks/normalizer.py

"""
Raw project item -> Task.

Pure functions: no I/O. Items that cannot become a task (no content, draft issues,
unknown content types, content missing its identity) yield None and are dropped.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import date, datetime

from ..config import DEFAULT_DUE_DATE_FIELDS
from ..github.models import ContentKind, FieldValue, RawContent, RawItem
from .task_models import Task, TaskKind, TaskState

logger = logging.getLogger(__name__)

_KIND_BY_CONTENT = {
    ContentKind.ISSUE: TaskKind.ISSUE,
    ContentKind.PULL_REQUEST: TaskKind.PULL_REQUEST,
}


def get_field_value(field_values: Iterable[FieldValue], field_name: str) -> str | None:
    """Value of the first field whose name matches case-insensitively."""
    wanted = field_name.strip().lower()
    for fv in field_values:
        if fv.field_name is not None and fv.field_name.lower() == wanted:
            return fv.as_text()
    return None


def first_field_value(field_values: Sequence[FieldValue], field_names: Iterable[str]) -> str | None:
    """First non-null value across candidate field names, in candidate order."""
    for name in field_names:
        value = get_field_value(field_values, name)
        if value is not None:
            return value
    return None


def parse_timestamp(raw: str | None) -> datetime | None:
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        return None


def parse_due_date(raw: str | None) -> date | None:
    """
    Reduce a field value to a calendar date.

    Date fields arrive as YYYY-MM-DD. Text fields may carry a full timestamp; an aware
    timestamp is converted to local time before the day is taken.
    """
    if not raw:
        return None
    s = raw.strip()
    try:
        if len(s) == 10:
            return date.fromisoformat(s)
        dt = datetime.fromisoformat(s)
    except ValueError:
        logger.debug("Unparseable due date value %r", raw)
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone()
    return dt.date()


def map_state(kind: TaskKind, raw_state: str | None) -> TaskState:
    s = (raw_state or "").strip().upper()
    if s == "MERGED":
        return TaskState.MERGED if kind == TaskKind.PULL_REQUEST else TaskState.CLOSED
    if s == "CLOSED":
        return TaskState.CLOSED
    return TaskState.OPEN


def _task_key(content: RawContent) -> str:
    return f"{content.repository}#{content.number}"


def normalize(
    item: RawItem,
    *,
    status_field: str = "Status",
    due_date_fields: Sequence[str] = tuple(DEFAULT_DUE_DATE_FIELDS),
) -> Task | None:
    content = item.content
    if content is None:
        return None

    kind = _KIND_BY_CONTENT.get(content.kind)
    if kind is None:
        return None

    created_at = parse_timestamp(content.created_at)
    updated_at = parse_timestamp(content.updated_at)
    if content.number is None or not content.repository or created_at is None or updated_at is None:
        logger.debug("Item %s has incomplete %s content; skipped", item.id, content.kind.value)
        return None

    status = get_field_value(item.field_values, status_field)
    due_date = parse_due_date(first_field_value(item.field_values, due_date_fields))

    return Task(
        key=_task_key(content),
        project_item_id=item.id,
        title=content.title,
        number=content.number,
        kind=kind,
        state=map_state(kind, content.state),
        status=status,
        repository=content.repository,
        created_at=created_at,
        updated_at=updated_at,
        assignees=list(content.assignees),
        due_date=due_date,
        # GitHub does not expose the time an item joined the board in this query.
        added_to_project_at=created_at,
    )


def normalize_items(
    items: Iterable[RawItem],
    *,
    status_field: str = "Status",
    due_date_fields: Sequence[str] = tuple(DEFAULT_DUE_DATE_FIELDS),
) -> list[Task]:
    tasks: list[Task] = []
    for item in items:
        task = normalize(item, status_field=status_field, due_date_fields=due_date_fields)
        if task is not None:
            tasks.append(task)
    return tasks
