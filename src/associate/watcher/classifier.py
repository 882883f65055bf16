"""Map filesystem paths onto dashboard data domains."""

from __future__ import annotations

import logging
from pathlib import Path

from ..events import (
    ChangeEvent,
    ChangeKind,
    Domain,
    GitStatus,
    PlanFile,
    SessionIndex,
    SubagentTranscript,
    TaskFile,
    TeamConfig,
    TeamInbox,
    TodoFile,
    Transcript,
)
from ..paths import ClaudeLayout, normalize_path

logger = logging.getLogger(__name__)


def _stem(name: str, suffix: str) -> str | None:
    if not name.endswith(suffix):
        return None
    stem = name[: -len(suffix)]
    return stem or None


def _under(path: str, root: str) -> str | None:
    """Return ``path`` relative to ``root`` or None when it lies outside."""

    root = root.rstrip("/")
    if path == root:
        return ""
    if path.startswith(root + "/"):
        return path[len(root) + 1 :]
    return None


def _classify_project(parts: list[str]) -> Domain | None:
    if len(parts) == 1:
        name = parts[0]
        if name == "sessions-index.json":
            return SessionIndex()
        session_id = _stem(name, ".jsonl")
        return Transcript(session_id) if session_id else None

    if len(parts) == 3 and parts[1] == "subagents":
        agent = _stem(parts[2], ".jsonl")
        if agent is None:
            return None
        agent_id = agent[len("agent-") :] if agent.startswith("agent-") else agent
        return SubagentTranscript(parts[0], agent_id) if agent_id else None
    return None


def classify(path: str | Path, layout: ClaudeLayout) -> Domain | None:
    """Return the domain a changed path belongs to, or None if it is not ours.

    Every path under the project's ``.git`` directory collapses to
    :class:`GitStatus` because git status is recomputed wholesale.
    """

    normalized = normalize_path(path)

    if _under(normalized, normalize_path(layout.git_dir)) is not None:
        return GitStatus()

    relative = _under(normalized, normalize_path(layout.claude_home))
    if not relative:
        return None
    parts = relative.split("/")
    top, rest = parts[0], parts[1:]

    if top == "projects":
        if len(rest) >= 2 and rest[0] == layout.encoded_project:
            return _classify_project(rest[1:])
        return None

    if top == "teams" and len(rest) >= 2:
        team = rest[0]
        if rest[1:] == ["config.json"]:
            return TeamConfig(team)
        if len(rest) == 3 and rest[1] == "inboxes":
            member = _stem(rest[2], ".json")
            return TeamInbox(team, member) if member else None
        return None

    if top == "tasks" and len(rest) == 2:
        task = _stem(rest[1], ".json")
        return TaskFile(rest[0], task) if task else None

    if top == "todos" and len(rest) == 1:
        todo = _stem(rest[0], ".json")
        return TodoFile(todo) if todo else None

    if top == "plans" and len(rest) == 1:
        plan = _stem(rest[0], ".md")
        return PlanFile(plan) if plan else None

    return None


def classify_change(path: str | Path, kind: ChangeKind, layout: ClaudeLayout) -> ChangeEvent | None:
    """Classify one coalesced notification into an immutable ChangeEvent."""

    domain = classify(path, layout)
    if domain is None:
        logger.debug("Dropping unrecognized path", extra={"path": str(path), "kind": kind.value})
        return None
    return ChangeEvent(domain=domain, kind=kind, path=Path(path))


__all__ = ["classify", "classify_change"]
