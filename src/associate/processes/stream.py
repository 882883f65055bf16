"""Parsing of the worker's ``stream-json`` stdout."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from .models import Completed, Failed, ProgressItem, SessionCaptured, TextSnippet, ToolCall

SNIPPET_LIMIT = 200


@dataclass(slots=True)
class ParsedLine:
    """What one stdout line contributed to a worker."""

    progress: list[ProgressItem] = field(default_factory=list)
    terminal: Completed | Failed | None = None


def _snippet(text: str) -> str:
    collapsed = " ".join(text.split())
    if len(collapsed) > SNIPPET_LIMIT:
        return collapsed[: SNIPPET_LIMIT - 3] + "..."
    return collapsed


def _cost(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _assistant_items(message: Any) -> list[ProgressItem]:
    if not isinstance(message, dict):
        return []
    content = message.get("content")
    if isinstance(content, str):
        return [TextSnippet(_snippet(content))] if content.strip() else []
    items: list[ProgressItem] = []
    for block in content if isinstance(content, list) else []:
        if not isinstance(block, dict):
            continue
        if block.get("type") == "tool_use" and isinstance(block.get("name"), str):
            items.append(ToolCall(block["name"]))
        elif block.get("type") == "text" and isinstance(block.get("text"), str) and block["text"].strip():
            items.append(TextSnippet(_snippet(block["text"])))
    return items


def parse_stream_line(line: str) -> ParsedLine | None:
    """Interpret one stdout line; None when it is not a JSON object."""

    try:
        payload = json.loads(line)
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None

    parsed = ParsedLine()
    kind = payload.get("type")
    if kind == "system":
        session_id = payload.get("session_id")
        if isinstance(session_id, str) and session_id:
            parsed.progress.append(SessionCaptured(session_id))
    elif kind == "assistant":
        parsed.progress.extend(_assistant_items(payload.get("message")))
    elif kind == "result":
        if payload.get("is_error") is True:
            reason = payload.get("result") or payload.get("subtype") or "error"
            parsed.terminal = Failed(_snippet(str(reason)))
        else:
            parsed.terminal = Completed(_cost(payload.get("total_cost_usd")))
    return parsed


__all__ = ["ParsedLine", "SNIPPET_LIMIT", "parse_stream_line"]
