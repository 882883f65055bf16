"""Subagent transcripts of one session."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class SubagentInfo:
    agent_id: str
    path: Path


def find_subagents(project_dir: Path, session_id: str) -> list[SubagentInfo]:
    """List ``<session>/subagents/agent-*.jsonl`` sorted by agent id."""

    subagents_dir = Path(project_dir) / session_id / "subagents"
    if not subagents_dir.is_dir():
        return []

    found = []
    for path in subagents_dir.glob("*.jsonl"):
        agent_id = path.stem.removeprefix("agent-")
        if agent_id:
            found.append(SubagentInfo(agent_id=agent_id, path=path))
    found.sort(key=lambda info: info.agent_id)
    return found


__all__ = ["SubagentInfo", "find_subagents"]
