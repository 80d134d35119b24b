# src/gh_monitor/github/client.py

"""
GitHub GraphQL client for Projects (v2).

- resolves the project node id from (org, project number), cached per client
- fetches all project items following cursor pagination
- lists project fields (diagnostics)

No retries here: any failure is raised as TransportError and the poll cycle decides.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from ..config import ProjectRef
from ..core.errors import TransportError
from .models import RawItem, parse_item

logger = logging.getLogger(__name__)

PROJECT_ID_QUERY = """
query($org: String!, $num: Int!) {
  organization(login: $org) {
    projectV2(number: $num) {
      id
      title
    }
  }
}
"""

PROJECT_FIELDS_QUERY = """
query($projectId: ID!) {
  node(id: $projectId) {
    ... on ProjectV2 {
      fields(first: 50) {
        nodes {
          ... on ProjectV2Field { id name dataType }
          ... on ProjectV2SingleSelectField { id name dataType options { id name } }
          ... on ProjectV2IterationField { id name dataType }
        }
      }
    }
  }
}
"""

_FIELD_NAME = "field { ... on ProjectV2FieldCommon { name } }"

_CONTENT_FIELDS = """
  title
  number
  state
  assignees(first: 10) { nodes { login name } }
  createdAt
  updatedAt
  repository { name nameWithOwner }
"""

PROJECT_ITEMS_QUERY = f"""
query($projectId: ID!, $first: Int!, $after: String) {{
  node(id: $projectId) {{
    ... on ProjectV2 {{
      id
      title
      number
      items(first: $first, after: $after) {{
        pageInfo {{ hasNextPage endCursor }}
        nodes {{
          id
          fieldValues(first: 20) {{
            nodes {{
              __typename
              ... on ProjectV2ItemFieldTextValue {{ text {_FIELD_NAME} }}
              ... on ProjectV2ItemFieldDateValue {{ date {_FIELD_NAME} }}
              ... on ProjectV2ItemFieldSingleSelectValue {{ name {_FIELD_NAME} }}
              ... on ProjectV2ItemFieldNumberValue {{ number {_FIELD_NAME} }}
            }}
          }}
          content {{
            __typename
            ... on Issue {{ {_CONTENT_FIELDS} }}
            ... on PullRequest {{ {_CONTENT_FIELDS} }}
            ... on DraftIssue {{ title body }}
          }}
        }}
      }}
    }}
  }}
}}
"""


class GitHubProjectClient:
    """
    Synchronous GraphQL client.

    The httpx.Client is created lazily and reused. Pass `transport` to inject
    an httpx.MockTransport in tests.
    """

    def __init__(
        self,
        *,
        token: str | None,
        graphql_url: str = "https://api.github.com/graphql",
        connect_timeout: float = 5.0,
        read_timeout: float = 30.0,
        page_size: int = 50,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._token = (token or "").strip() or None
        self._url = graphql_url
        self._timeout = httpx.Timeout(
            connect=connect_timeout,
            read=read_timeout,
            write=10.0,
            pool=connect_timeout,
        )
        self._page_size = max(1, min(100, int(page_size)))
        self._transport = transport
        self._client: httpx.Client | None = None
        self._project_ids: dict[ProjectRef, str] = {}

        if self._token is None:
            logger.warning("GitHub token is not set; GraphQL requests will likely be rejected.")

    @classmethod
    def from_settings(cls, settings) -> GitHubProjectClient:
        return cls(
            token=getattr(settings, "github_token", None),
            graphql_url=getattr(settings, "github_graphql_url", "https://api.github.com/graphql"),
            connect_timeout=float(getattr(settings, "http_connect_timeout_seconds", 5.0)),
            read_timeout=float(getattr(settings, "http_read_timeout_seconds", 30.0)),
            page_size=int(getattr(settings, "page_size", 50)),
        )

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    # ---- low-level helpers ----

    def _get_client(self) -> httpx.Client:
        if self._client is not None:
            return self._client

        headers = {"Accept": "application/vnd.github+json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        self._client = httpx.Client(headers=headers, timeout=self._timeout, transport=self._transport)
        return self._client

    def execute(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        """Run one GraphQL request and return its `data` object."""
        try:
            resp = self._get_client().post(self._url, json={"query": query, "variables": variables or {}})
        except httpx.HTTPError as e:
            raise TransportError(f"GitHub request failed: {e}") from e

        if resp.status_code >= 400:
            raise TransportError(f"GitHub API returned HTTP {resp.status_code}: {resp.text[:300]}")

        try:
            payload = resp.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise TransportError("GitHub API returned malformed JSON") from e

        if not isinstance(payload, dict):
            raise TransportError("GitHub API returned an unexpected payload")

        errors = payload.get("errors")
        if errors:
            raise TransportError(f"GraphQL errors: {json.dumps(errors, ensure_ascii=False)}")

        data = payload.get("data")
        if not isinstance(data, dict):
            raise TransportError("GraphQL response has no data")
        return data

    # ---- public API ----

    def get_project_node_id(self, org: str, number: int) -> str:
        data = self.execute(PROJECT_ID_QUERY, {"org": org, "num": int(number)})
        project = (data.get("organization") or {}).get("projectV2")
        if not isinstance(project, dict) or not project.get("id"):
            raise TransportError(f"Project {number} not found in organization {org}")

        logger.info("Found project: %s (ID: %s)", project.get("title"), project["id"])
        return str(project["id"])

    def resolve_project_id(self, ref: ProjectRef) -> str:
        project_id = self._project_ids.get(ref)
        if project_id is None:
            project_id = self.get_project_node_id(ref.org, ref.number)
            self._project_ids[ref] = project_id
        return project_id

    def get_project_fields(self, ref: ProjectRef) -> list[dict[str, Any]]:
        data = self.execute(PROJECT_FIELDS_QUERY, {"projectId": self.resolve_project_id(ref)})
        fields = ((data.get("node") or {}).get("fields") or {}).get("nodes") or []
        return [f for f in fields if isinstance(f, dict) and f]

    def fetch_items_page(self, project_id: str, after: str | None = None) -> tuple[list[dict[str, Any]], str | None]:
        """
        Fetch one page of items.

        Returns (nodes, next_cursor); next_cursor is None when there is no further page.
        """
        data = self.execute(
            PROJECT_ITEMS_QUERY,
            {"projectId": project_id, "first": self._page_size, "after": after},
        )
        node = data.get("node")
        if not isinstance(node, dict) or not isinstance(node.get("items"), dict):
            raise TransportError(f"Project node {project_id} returned no items connection")

        items = node["items"]
        page_info = items.get("pageInfo") or {}
        nodes = [n for n in (items.get("nodes") or []) if isinstance(n, dict)]

        if page_info.get("hasNextPage"):
            cursor = page_info.get("endCursor")
            if not cursor:
                raise TransportError("GitHub reported another page without an end cursor")
            return nodes, str(cursor)
        return nodes, None

    def fetch_all_items(self, ref: ProjectRef) -> list[RawItem]:
        """Fetch every item of the project, following the cursor until the last page."""
        project_id = self.resolve_project_id(ref)

        out: list[RawItem] = []
        cursor: str | None = None
        while True:
            nodes, cursor = self.fetch_items_page(project_id, cursor)
            out.extend(parse_item(n) for n in nodes)
            logger.debug("Fetched %d items so far...", len(out))
            if cursor is None:
                break

        logger.info("Total items fetched: %d", len(out))
        return out
