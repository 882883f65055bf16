"""Session list for one project directory."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .files import LoadError, mtime, read_json

logger = logging.getLogger(__name__)

INDEX_FILENAME = "sessions-index.json"


class SessionEntry(BaseModel):
    """One row of the session index."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    session_id: str = Field(..., alias="sessionId")
    first_prompt: str = Field(default="", alias="firstPrompt")
    summary: str = ""
    message_count: int = Field(default=0, alias="messageCount")
    git_branch: str = Field(default="", alias="gitBranch")
    created: datetime | None = None
    modified: datetime | None = None
    is_sidechain: bool = Field(default=False, alias="isSidechain")

    @field_validator("first_prompt", "summary", "git_branch", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("created", "modified", mode="before")
    @classmethod
    def _lenient_timestamp(cls, value: Any) -> Any:
        if isinstance(value, (int, float)):
            # Millisecond epoch values appear in older indexes.
            seconds = value / 1000 if value > 1e11 else value
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        if isinstance(value, str):
            try:
                return datetime.fromisoformat(value.replace("Z", "+00:00"))
            except ValueError:
                return None
        return value

    def display_title(self) -> str:
        text = self.summary or self.first_prompt or self.session_id
        return " ".join(text.split())

    def sort_key(self) -> float:
        stamp = self.modified or self.created
        return stamp.timestamp() if stamp is not None else 0.0


def _from_index(path: Path) -> list[SessionEntry]:
    raw = read_json(path)
    if isinstance(raw, dict):
        raw = raw.get("entries", [])
    if not isinstance(raw, list):
        raise LoadError(f"{path.name} has no entries list")

    entries: list[SessionEntry] = []
    for item in raw:
        try:
            entries.append(SessionEntry.model_validate(item))
        except ValidationError:
            logger.debug("Skipping malformed session index entry", extra={"entry": repr(item)[:200]})
    return entries


def _from_scan(project_dir: Path) -> list[SessionEntry]:
    entries = []
    for path in project_dir.glob("*.jsonl"):
        stamp = datetime.fromtimestamp(mtime(path), tz=timezone.utc)
        entries.append(SessionEntry(session_id=path.stem, modified=stamp))
    return entries


def load_sessions(project_dir: Path) -> list[SessionEntry]:
    """Return the project's sessions, newest first.

    The session index is preferred. Transcripts it does not mention yet
    (written before the index was refreshed) are added from a directory scan
    so a brand-new session shows up immediately. Entries whose transcript is
    gone are dropped.
    """

    project_dir = Path(project_dir)
    if not project_dir.is_dir():
        return []

    index_path = project_dir / INDEX_FILENAME
    scanned = _from_scan(project_dir)
    try:
        entries = _from_index(index_path)
    except FileNotFoundError:
        entries = []

    known = {entry.session_id for entry in entries}
    entries.extend(entry for entry in scanned if entry.session_id not in known)
    entries = [
        entry
        for entry in entries
        if not entry.is_sidechain and (project_dir / f"{entry.session_id}.jsonl").exists()
    ]
    entries.sort(key=SessionEntry.sort_key, reverse=True)
    return entries


__all__ = ["INDEX_FILENAME", "SessionEntry", "load_sessions"]
