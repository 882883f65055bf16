"""Worker lifecycle states and parsed progress items."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True, slots=True)
class Starting:
    label = "starting"
    terminal = False


@dataclass(frozen=True, slots=True)
class Running:
    label = "running"
    terminal = False


@dataclass(frozen=True, slots=True)
class Completed:
    cost: float | None = None
    label = "completed"
    terminal = True


@dataclass(frozen=True, slots=True)
class Failed:
    reason: str = ""
    label = "failed"
    terminal = True


@dataclass(frozen=True, slots=True)
class Killed:
    label = "killed"
    terminal = True


WorkerState = Union[Starting, Running, Completed, Failed, Killed]


@dataclass(frozen=True, slots=True)
class SessionCaptured:
    session_id: str

    def render(self) -> str:
        return f"session {self.session_id}"


@dataclass(frozen=True, slots=True)
class ToolCall:
    name: str

    def render(self) -> str:
        return f"> {self.name}"


@dataclass(frozen=True, slots=True)
class TextSnippet:
    text: str

    def render(self) -> str:
        return self.text


ProgressItem = Union[SessionCaptured, ToolCall, TextSnippet]


def describe_state(state: WorkerState) -> str:
    if isinstance(state, Completed) and state.cost is not None:
        return f"completed (${state.cost:.2f})"
    if isinstance(state, Failed) and state.reason:
        return f"failed: {state.reason}"
    return state.label


__all__ = [
    "Completed",
    "Failed",
    "Killed",
    "ProgressItem",
    "Running",
    "SessionCaptured",
    "Starting",
    "TextSnippet",
    "ToolCall",
    "WorkerState",
    "describe_state",
]
