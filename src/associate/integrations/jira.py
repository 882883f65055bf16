"""Jira work items through the Atlassian ``acli`` CLI."""

from __future__ import annotations

import os
import re
from typing import Any

from ..commands import CommandRunner
from .base import FetchError, NormalizedIssue, run_json

DEFAULT_JQL = "assignee = currentUser() AND statusCategory not in (Done)"
PROJECT_KEY = re.compile(r"^[A-Z][A-Z0-9_]*$")


def build_jql(project: str | None = None, custom: str | None = None) -> str:
    if custom:
        return custom
    query = DEFAULT_JQL
    if project:
        if not PROJECT_KEY.match(project):
            raise FetchError(f"invalid Jira project key {project!r}")
        query += f' AND project = "{project}"'
    return query + " ORDER BY status ASC, updated DESC"


def _lookup(raw: dict[str, Any], *paths: str) -> Any:
    """Return the first value found along the slash-separated ``paths``."""

    for path in paths:
        node: Any = raw
        for part in path.split("/"):
            if not isinstance(node, dict) or part not in node:
                node = None
                break
            node = node[part]
        if node is not None:
            return node
    return None


def _name(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, dict) and isinstance(value.get("name"), str):
        return value["name"]
    return ""


def adf_text(node: Any) -> str:
    """Flatten an Atlassian Document Format tree to plain text."""

    parts: list[str] = []

    def walk(value: Any) -> None:
        if not isinstance(value, dict):
            return
        if isinstance(value.get("text"), str):
            parts.append(value["text"])
        for child in value.get("content") or []:
            walk(child)
        if value.get("type") in {"paragraph", "heading", "bulletList", "orderedList", "listItem"}:
            parts.append("\n")

    walk(node)
    return "".join(parts).strip()


def _browse_url(raw: dict[str, Any], key: str) -> str:
    base = None
    link = raw.get("self")
    if isinstance(link, str) and "/rest/" in link:
        base = link[: link.index("/rest/")]
    elif isinstance(raw.get("url"), str):
        base = raw["url"]
    else:
        base = os.environ.get("JIRA_URL")
    return f"{base.rstrip('/')}/browse/{key}" if base else ""


def normalize_item(raw: dict[str, Any]) -> NormalizedIssue | None:
    key = raw.get("key")
    if not isinstance(key, str):
        return None
    description = _lookup(raw, "description", "fields/description")
    if isinstance(description, dict):
        description = adf_text(description)
    labels = _lookup(raw, "labels", "fields/labels") or []
    status = _name(_lookup(raw, "statusName", "status_name", "status", "fields/status")) or "Unknown"
    extra = {
        "Status": status,
        "Type": _name(_lookup(raw, "issueType", "issue_type", "issuetype", "fields/issuetype")),
        "Priority": _name(_lookup(raw, "priority", "fields/priority")),
    }
    return NormalizedIssue(
        source="Jira",
        key=key,
        title=str(_lookup(raw, "summary", "fields/summary") or ""),
        state=status,
        url=_browse_url(raw, key),
        body=description if isinstance(description, str) else "",
        labels=tuple(label for label in labels if isinstance(label, str)),
        assignees=tuple(filter(None, [_name(_lookup(raw, "assignee", "fields/assignee/displayName"))])),
        updated_at=_lookup(raw, "updated", "fields/updated"),
        extra=extra,
    )


def parse_items(raw: Any) -> list[NormalizedIssue]:
    if isinstance(raw, dict):
        raw = raw.get("issues", [raw])
    if not isinstance(raw, list):
        raise FetchError("unexpected JSON format from acli")
    issues = [normalize_item(item) for item in raw if isinstance(item, dict)]
    return [issue for issue in issues if issue is not None]


class JiraIssues:
    """Work items assigned to the current user."""

    title = "Jira"

    def __init__(self, project: str | None = None, jql: str | None = None, runner: CommandRunner | None = None) -> None:
        self.jql = build_jql(project, jql)
        self.integration_id = f"jira:{project or 'mine'}"
        self._runner = runner

    async def fetch(self) -> list[NormalizedIssue]:
        runner = self._runner or CommandRunner("acli")
        raw = await run_json(runner, "jira", "workitem", "search", "--jql", self.jql, "--json")
        return parse_items(raw)


__all__ = ["DEFAULT_JQL", "JiraIssues", "adf_text", "build_jql", "normalize_item", "parse_items"]
