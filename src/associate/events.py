"""Events delivered on the dashboard's single ordered channel."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, ClassVar, Union


class ChangeKind(str, Enum):
    CREATED = "created"
    MODIFIED = "modified"
    REMOVED = "removed"


# Domains double as event identifiers: two events concern the same thing
# exactly when their domains compare equal.


@dataclass(frozen=True, slots=True)
class SessionIndex:
    label: ClassVar[str] = "Sessions"


@dataclass(frozen=True, slots=True)
class Transcript:
    session_id: str
    label: ClassVar[str] = "Transcript"


@dataclass(frozen=True, slots=True)
class SubagentTranscript:
    session_id: str
    agent_id: str
    label: ClassVar[str] = "Subagent transcript"


@dataclass(frozen=True, slots=True)
class TeamConfig:
    team_id: str
    label: ClassVar[str] = "Teams"


@dataclass(frozen=True, slots=True)
class TeamInbox:
    team_id: str
    member_id: str
    label: ClassVar[str] = "Inbox"


@dataclass(frozen=True, slots=True)
class TaskFile:
    """A file under ``tasks/<team_id>/``; ``member_id`` is the file stem."""

    team_id: str
    member_id: str
    label: ClassVar[str] = "Tasks"


@dataclass(frozen=True, slots=True)
class TodoFile:
    file_id: str
    label: ClassVar[str] = "Todos"


@dataclass(frozen=True, slots=True)
class PlanFile:
    file_id: str
    label: ClassVar[str] = "Plans"


@dataclass(frozen=True, slots=True)
class GitStatus:
    label: ClassVar[str] = "Git"


@dataclass(frozen=True, slots=True)
class FileTree:
    """The project tree in the git tab's browse mode; ``open`` reads one file."""

    label: ClassVar[str] = "Files"


Domain = Union[
    SessionIndex,
    Transcript,
    SubagentTranscript,
    TeamConfig,
    TeamInbox,
    TaskFile,
    TodoFile,
    PlanFile,
    GitStatus,
    FileTree,
]


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """A classified filesystem change."""

    domain: Domain
    kind: ChangeKind
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class KeyPressed:
    key: str


@dataclass(frozen=True, slots=True)
class Tick:
    at: float


@dataclass(frozen=True, slots=True)
class PollCompleted:
    integration_id: str
    issues: tuple[Any, ...] = ()
    error: str | None = None
    manual: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True, slots=True)
class ProcessLine:
    worker_id: int
    stream: str
    line: str


@dataclass(frozen=True, slots=True)
class ProcessExited:
    worker_id: int
    returncode: int


@dataclass(frozen=True, slots=True)
class ReloadCompleted:
    """Outcome of a background read of one domain."""

    domain: Domain
    mode: str
    payload: Any = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class ActionCompleted:
    action: Any
    error: str | None = None
    result: Any = None


@dataclass(frozen=True, slots=True)
class WatcherStatus:
    degraded: bool
    reason: str = ""


BusEvent = Union[
    ChangeEvent,
    KeyPressed,
    Tick,
    PollCompleted,
    ProcessLine,
    ProcessExited,
    ReloadCompleted,
    ActionCompleted,
    WatcherStatus,
]


@dataclass
class EventBus:
    """Multi-producer, single-consumer ordered channel.

    Coroutines on the event loop call :meth:`post`; foreign threads (the
    filesystem observer) must use :meth:`post_threadsafe`.
    """

    loop: asyncio.AbstractEventLoop | None = None
    _queue: asyncio.Queue = field(default_factory=asyncio.Queue, init=False)

    def __post_init__(self) -> None:
        if self.loop is None:
            try:
                self.loop = asyncio.get_running_loop()
            except RuntimeError:
                # Built outside the loop; bound on first use from inside it.
                pass

    def bind(self) -> asyncio.AbstractEventLoop:
        if self.loop is None:
            self.loop = asyncio.get_running_loop()
        return self.loop

    def post(self, event: BusEvent) -> None:
        self._queue.put_nowait(event)

    def post_threadsafe(self, event: BusEvent) -> None:
        if self.loop is None:
            raise RuntimeError("EventBus is not bound to an event loop")
        self.loop.call_soon_threadsafe(self._queue.put_nowait, event)

    async def get(self) -> BusEvent:
        self.bind()
        return await self._queue.get()

    def get_nowait(self) -> BusEvent | None:
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    def qsize(self) -> int:
        return self._queue.qsize()


__all__ = [
    "ActionCompleted",
    "BusEvent",
    "ChangeEvent",
    "ChangeKind",
    "Domain",
    "EventBus",
    "FileTree",
    "GitStatus",
    "KeyPressed",
    "PlanFile",
    "PollCompleted",
    "ProcessExited",
    "ProcessLine",
    "ReloadCompleted",
    "SessionIndex",
    "SubagentTranscript",
    "TaskFile",
    "TeamConfig",
    "TeamInbox",
    "Tick",
    "TodoFile",
    "Transcript",
    "WatcherStatus",
]
