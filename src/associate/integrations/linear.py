"""Linear issues through the GraphQL API."""

from __future__ import annotations

import json
from typing import Any

import httpx

from .base import FetchError, NormalizedIssue

API_URL = "https://api.linear.app/graphql"
ISSUE_FIELDS = (
    "identifier title description priority priorityLabel state { name type color } "
    "assignee { name email } labels { nodes { name color } } url team { name key } createdAt updatedAt"
)
STATE_ORDER = {"started": 0, "unstarted": 1, "backlog": 2}


def _quote(value: str) -> str:
    return json.dumps(value)


def build_query(username: str | None = None, team: str | None = None) -> str:
    """Assigned, not completed or canceled issues; by assignee email when ``username`` is given."""

    filters = ['state: { type: { nin: ["completed", "canceled"] } }']
    if team:
        filters.append(f"team: {{ key: {{ eq: {_quote(team)} }} }}")
    filter_text = ", ".join(filters)
    if username:
        return (
            f"query {{ issues(filter: {{ assignee: {{ email: {{ eq: {_quote(username)} }} }}, {filter_text} }}, "
            f"first: 50, orderBy: updatedAt) {{ nodes {{ {ISSUE_FIELDS} }} }} }}"
        )
    return (
        f"query {{ viewer {{ assignedIssues(filter: {{ {filter_text} }}, first: 50, orderBy: updatedAt) "
        f"{{ nodes {{ {ISSUE_FIELDS} }} }} }} }}"
    )


def normalize_node(node: dict[str, Any]) -> NormalizedIssue | None:
    identifier = node.get("identifier")
    if not isinstance(identifier, str):
        return None
    state = node.get("state") or {}
    labels = (node.get("labels") or {}).get("nodes") or []
    assignee = node.get("assignee") or {}
    team = node.get("team") or {}
    return NormalizedIssue(
        source="Linear",
        key=identifier,
        title=str(node.get("title") or ""),
        state=state.get("name"),
        url=node.get("url"),
        body=node.get("description"),
        labels=tuple(label["name"] for label in labels if isinstance(label, dict) and "name" in label),
        assignees=tuple(filter(None, [assignee.get("name")])),
        updated_at=node.get("updatedAt"),
        extra={
            "Status": str(state.get("name") or ""),
            "State Type": str(state.get("type") or ""),
            "Priority": str(node.get("priorityLabel") or ""),
            "Team": str(team.get("key") or ""),
        },
    )


def parse_response(payload: Any, by_username: bool) -> list[NormalizedIssue]:
    if not isinstance(payload, dict):
        raise FetchError("unexpected response structure from Linear API")
    errors = payload.get("errors")
    if isinstance(errors, list) and errors:
        first = errors[0] if isinstance(errors[0], dict) else {}
        raise FetchError(f"Linear API error: {first.get('message', 'unknown error')}")

    data = payload.get("data") or {}
    container = data.get("issues") if by_username else (data.get("viewer") or {}).get("assignedIssues")
    nodes = (container or {}).get("nodes")
    if not isinstance(nodes, list):
        raise FetchError("unexpected response structure from Linear API")

    issues = [normalize_node(node) for node in nodes if isinstance(node, dict)]
    ordered = [issue for issue in issues if issue is not None]
    ordered.sort(key=lambda issue: STATE_ORDER.get(issue.extra.get("State Type", ""), 3))
    return ordered


class LinearIssues:
    """Issues assigned to the API key's user (or ``username``)."""

    title = "Linear"

    def __init__(
        self,
        api_key: str,
        username: str | None = None,
        team: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.api_key = api_key
        self.username = username
        self.team = team
        self.integration_id = f"linear:{team or 'mine'}"
        self._transport = transport
        self._timeout = timeout

    async def fetch(self) -> list[NormalizedIssue]:
        query = build_query(self.username, self.team)
        headers = {"Content-Type": "application/json", "Authorization": self.api_key}
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
                response = await client.post(API_URL, json={"query": query}, headers=headers)
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as exc:
            raise FetchError(f"Linear API returned {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise FetchError(f"Linear API request failed: {exc}") from exc
        except ValueError as exc:
            raise FetchError("Linear API returned invalid JSON") from exc
        return parse_response(payload, by_username=bool(self.username))


__all__ = ["API_URL", "LinearIssues", "build_query", "normalize_node", "parse_response"]
