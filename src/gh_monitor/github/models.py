# src/gh_monitor/github/models.py

"""
Raw project items as returned by the GitHub GraphQL API.

A project item wraps a content union (Issue | PullRequest | DraftIssue) plus a list of
custom field values. parse_item() turns one GraphQL node into a tagged RawItem so the
normalizer can match on ContentKind instead of probing dict keys.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class ContentKind(StrEnum):
    ISSUE = "Issue"
    PULL_REQUEST = "PullRequest"
    DRAFT_ISSUE = "DraftIssue"
    UNKNOWN = "Unknown"

    @classmethod
    def from_typename(cls, raw: str | None) -> ContentKind:
        if not raw:
            return cls.UNKNOWN
        try:
            return cls(raw)
        except ValueError:
            return cls.UNKNOWN


class FieldKind(StrEnum):
    TEXT = "ProjectV2ItemFieldTextValue"
    DATE = "ProjectV2ItemFieldDateValue"
    SINGLE_SELECT = "ProjectV2ItemFieldSingleSelectValue"
    NUMBER = "ProjectV2ItemFieldNumberValue"
    OTHER = "Other"

    @classmethod
    def from_typename(cls, raw: str | None) -> FieldKind:
        if not raw:
            return cls.OTHER
        try:
            return cls(raw)
        except ValueError:
            return cls.OTHER


@dataclass(frozen=True, slots=True)
class FieldValue:
    kind: FieldKind
    field_name: str | None
    text: str | None = None
    date: str | None = None
    name: str | None = None
    number: float | None = None

    def as_text(self) -> str | None:
        """Render the value the way it is shown on the board, or None when empty."""
        if self.kind == FieldKind.TEXT:
            return self.text or None
        if self.kind == FieldKind.DATE:
            return self.date or None
        if self.kind == FieldKind.SINGLE_SELECT:
            return self.name or None
        if self.kind == FieldKind.NUMBER:
            if self.number is None:
                return None
            n = self.number
            return str(int(n)) if float(n).is_integer() else str(n)
        return None


@dataclass(frozen=True, slots=True)
class RawContent:
    kind: ContentKind
    title: str
    number: int | None = None
    state: str | None = None
    assignees: tuple[str, ...] = ()
    created_at: str | None = None
    updated_at: str | None = None
    repository: str | None = None


@dataclass(frozen=True, slots=True)
class RawItem:
    id: str
    content: RawContent | None
    field_values: tuple[FieldValue, ...] = ()


def _nodes(obj: Any) -> list[Any]:
    if not isinstance(obj, dict):
        return []
    nodes = obj.get("nodes")
    return [n for n in nodes if n is not None] if isinstance(nodes, list) else []


def _parse_field_value(node: dict[str, Any]) -> FieldValue:
    field = node.get("field")
    field_name = field.get("name") if isinstance(field, dict) else None
    number = node.get("number")
    return FieldValue(
        kind=FieldKind.from_typename(node.get("__typename")),
        field_name=field_name,
        text=node.get("text"),
        date=node.get("date"),
        name=node.get("name"),
        number=float(number) if isinstance(number, (int, float)) else None,
    )


def _parse_content(node: Any) -> RawContent | None:
    if not isinstance(node, dict):
        return None

    kind = ContentKind.from_typename(node.get("__typename"))
    repo = node.get("repository")
    number = node.get("number")

    return RawContent(
        kind=kind,
        title=str(node.get("title") or ""),
        number=int(number) if isinstance(number, int) else None,
        state=node.get("state"),
        assignees=tuple(
            str(a["login"]) for a in _nodes(node.get("assignees")) if isinstance(a, dict) and a.get("login")
        ),
        created_at=node.get("createdAt"),
        updated_at=node.get("updatedAt"),
        repository=repo.get("nameWithOwner") if isinstance(repo, dict) else None,
    )


def parse_item(node: dict[str, Any]) -> RawItem:
    """Parse one `ProjectV2Item` node from the items connection."""
    return RawItem(
        id=str(node.get("id") or ""),
        content=_parse_content(node.get("content")),
        field_values=tuple(
            _parse_field_value(fv) for fv in _nodes(node.get("fieldValues")) if isinstance(fv, dict)
        ),
    )
