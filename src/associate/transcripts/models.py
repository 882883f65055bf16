"""Transcript line models."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

TOOL_INPUT_PREVIEW = 50
TOOL_RESULT_PREVIEW = 80


class ItemKind(str, Enum):
    USER = "USER"
    ASSISTANT = "ASST"
    TOOL_USE = "TOOL"
    TOOL_RESULT = "RSLT"
    SYSTEM = "SYS"
    PROGRESS = "PROG"


@dataclass(frozen=True, slots=True)
class TranscriptItem:
    """One displayable row derived from an envelope."""

    kind: ItemKind
    text: str
    timestamp: datetime | None = None


class ContentBlock(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str = "other"
    text: str | None = None
    name: str | None = None
    input: Any = None
    content: Any = None


class TranscriptMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: str | None = None
    content: str | list[ContentBlock] = ""

    @field_validator("content", mode="before")
    @classmethod
    def _default_content(cls, value: Any) -> Any:
        return "" if value is None else value


class TranscriptEnvelope(BaseModel):
    """A single line of a ``.jsonl`` transcript."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    kind: str = Field(alias="type")
    timestamp: datetime | None = None
    message: TranscriptMessage | None = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def _lenient_timestamp(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                return datetime.fromisoformat(value.replace("Z", "+00:00"))
            except ValueError:
                return None
        return value if isinstance(value, datetime) else None

    @property
    def extra(self) -> dict[str, Any]:
        return dict(self.model_extra or {})

    def items(self) -> list[TranscriptItem]:
        """Flatten the envelope into display items."""

        if self.kind == "user":
            return self._message_items(ItemKind.USER)
        if self.kind == "assistant":
            return self._message_items(ItemKind.ASSISTANT)
        if self.kind == "system":
            text = self._first_text()
            return [TranscriptItem(ItemKind.SYSTEM, text, self.timestamp)] if text else []
        if self.kind == "progress":
            content = self.extra.get("content")
            if isinstance(content, str) and content:
                return [TranscriptItem(ItemKind.PROGRESS, content, self.timestamp)]
        return []

    def _first_text(self) -> str:
        if self.message is None:
            return ""
        content = self.message.content
        if isinstance(content, str):
            return content
        for block in content:
            if block.type == "text" and block.text is not None:
                return block.text
        return ""

    def _message_items(self, default_kind: ItemKind) -> list[TranscriptItem]:
        if self.message is None:
            return []
        content = self.message.content
        if isinstance(content, str):
            return [TranscriptItem(default_kind, content, self.timestamp)] if content else []

        items: list[TranscriptItem] = []
        for block in content:
            if block.type == "text":
                if block.text:
                    items.append(TranscriptItem(default_kind, block.text, self.timestamp))
            elif block.type == "tool_use":
                items.append(TranscriptItem(ItemKind.TOOL_USE, _tool_use_text(block), self.timestamp))
            elif block.type == "tool_result":
                items.append(TranscriptItem(ItemKind.TOOL_RESULT, _tool_result_text(block), self.timestamp))
        return items


def _tool_use_text(block: ContentBlock) -> str:
    name = block.name or "unknown"
    if isinstance(block.input, dict):
        for key, value in block.input.items():
            if isinstance(value, str):
                return f"{name} ({key}: {value[:TOOL_INPUT_PREVIEW]})"
    return name


def _tool_result_text(block: ContentBlock) -> str:
    content = block.content
    if isinstance(content, str):
        return content[:TOOL_RESULT_PREVIEW]
    if isinstance(content, list):
        for entry in content:
            if isinstance(entry, dict) and isinstance(entry.get("text"), str):
                return entry["text"][:TOOL_RESULT_PREVIEW]
    return "[result]"


def parse_envelope(raw: bytes) -> TranscriptEnvelope | None:
    """Parse one complete line; None when the line is malformed."""

    try:
        document = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    if not isinstance(document, dict):
        return None
    try:
        return TranscriptEnvelope.model_validate(document)
    except ValidationError:
        return None


__all__ = [
    "ContentBlock",
    "ItemKind",
    "TranscriptEnvelope",
    "TranscriptItem",
    "TranscriptMessage",
    "parse_envelope",
]
