"""Team member inbox files (``teams/<team>/inboxes/<member>.json``)."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .files import LoadError, read_json

logger = logging.getLogger(__name__)


class InboxMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    sender: str = ""
    text: str = ""
    timestamp: datetime | None = None
    read: bool | None = None
    color: str | None = None

    @classmethod
    def from_raw(cls, raw: Any) -> "InboxMessage":
        if isinstance(raw, dict) and "from" in raw:
            raw = {**raw, "sender": raw["from"]}
        return cls.model_validate(raw)

    @field_validator("sender", "text", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("timestamp", mode="before")
    @classmethod
    def _lenient_timestamp(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                return datetime.fromisoformat(value.replace("Z", "+00:00"))
            except ValueError:
                return None
        return value

    def structured(self) -> dict[str, Any] | None:
        """Return the decoded payload when ``text`` carries a JSON object."""

        if not self.text.startswith("{"):
            return None
        try:
            value = json.loads(self.text)
        except json.JSONDecodeError:
            return None
        return value if isinstance(value, dict) else None

    @property
    def message_type(self) -> str | None:
        payload = self.structured()
        if payload is None:
            return None
        kind = payload.get("type")
        return kind if isinstance(kind, str) else None

    def display_text(self) -> str:
        payload = self.structured()
        if payload is None:
            return self.text
        return format_structured_message(payload)

    def display_time(self) -> str:
        return self.timestamp.strftime("%m/%d %H:%M") if self.timestamp else ""


def _text(payload: dict[str, Any], key: str, default: str) -> str:
    value = payload.get(key)
    return value if isinstance(value, str) else default


def format_structured_message(payload: dict[str, Any]) -> str:
    kind = _text(payload, "type", "")
    if kind == "task_assignment":
        return f"[Task #{_text(payload, 'taskId', '?')}] {_text(payload, 'subject', '(no subject)')}"
    if kind == "idle_notification":
        agent = _text(payload, "from", "") or _text(payload, "agentName", "agent")
        return f"{agent} is idle"
    if kind == "shutdown_request":
        return "Shutdown requested"
    if kind == "shutdown_approved":
        return "Shutdown approved"
    if kind == "plan_approval_request":
        return f"Plan approval requested by {_text(payload, 'from', 'agent')}"
    if kind == "plan_approval_response":
        content = _text(payload, "content", "")
        if payload.get("approve") is True:
            return "Plan approved"
        return f"Plan rejected: {content}" if content else "Plan rejected"
    if kind == "task_completed":
        return f"Task #{_text(payload, 'taskId', '?')} completed"
    if kind == "message":
        return _text(payload, "content", json.dumps(payload))
    content = payload.get("content", payload.get("subject"))
    if isinstance(content, str):
        return f"[{kind}] {content}"
    return json.dumps(payload)


def inbox_path(claude_home: Path, team_id: str, member_id: str) -> Path:
    return Path(claude_home) / "teams" / team_id / "inboxes" / f"{member_id}.json"


def load_inbox(claude_home: Path, team_id: str, member_id: str) -> list[InboxMessage]:
    """Load one member's inbox, most recent message first."""

    path = inbox_path(claude_home, team_id, member_id)
    try:
        raw = read_json(path)
    except FileNotFoundError:
        return []
    if not isinstance(raw, list):
        raise LoadError(f"{path.name} is not a list of messages")

    messages = []
    for item in raw:
        try:
            messages.append(InboxMessage.from_raw(item))
        except ValidationError:
            logger.debug("Skipping malformed inbox message", extra={"inbox": str(path)})
    messages.sort(key=lambda msg: msg.timestamp.timestamp() if msg.timestamp else 0.0, reverse=True)
    return messages


__all__ = ["InboxMessage", "format_structured_message", "inbox_path", "load_inbox"]
