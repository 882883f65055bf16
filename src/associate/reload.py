"""Background reads of domains, serialized per domain."""

from __future__ import annotations

import asyncio
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Hashable

from .actions import CONTINUE, DIFF, OPEN, DeleteArtifact, Reload
from .data import (
    FileEntry,
    GitClient,
    SubagentInfo,
    build_tree,
    find_subagents,
    load_plans,
    load_sessions,
    load_team_detail,
    load_teams,
    load_todos,
    read_file_content,
)
from .events import (
    ActionCompleted,
    Domain,
    EventBus,
    FileTree,
    GitStatus,
    PlanFile,
    ReloadCompleted,
    SessionIndex,
    SubagentTranscript,
    TaskFile,
    TeamConfig,
    TeamInbox,
    TodoFile,
    Transcript,
)
from .paths import ClaudeLayout
from .transcripts import IncrementalLogReader, ReadResult

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[Any]]


@dataclass(frozen=True, slots=True)
class TranscriptLoad:
    """Payload of a main transcript read; ``subagents`` is set on open only."""

    result: ReadResult
    subagents: list[SubagentInfo] | None = None


def subagent_key(session_id: str, agent_id: str) -> str:
    return f"{session_id}/{agent_id}"


def reload_key(domain: Domain, mode: str) -> Hashable:
    """Reads sharing a key are serialized; files that feed one snapshot share a key."""

    if isinstance(domain, (TaskFile, TeamInbox)):
        return ("team", domain.team_id)
    if isinstance(domain, TeamConfig):
        return ("teams",)
    if isinstance(domain, TodoFile):
        return ("todos",)
    if isinstance(domain, PlanFile):
        return ("plans",)
    if isinstance(domain, GitStatus):
        return ("git", mode == DIFF)
    if isinstance(domain, FileTree):
        return ("files", mode == OPEN)
    return domain


class DataLoader:
    """Builds the read for a :class:`Reload` at the moment it starts."""

    def __init__(
        self,
        layout: ClaudeLayout,
        reader: IncrementalLogReader,
        subagent_reader: IncrementalLogReader,
        git: GitClient,
    ) -> None:
        self._layout = layout
        self._reader = reader
        self._subagent_reader = subagent_reader
        self._git = git

    def job(self, action: Reload) -> Job | None:
        """Return the read for ``action``, or None when there is nothing to read."""

        domain = action.domain
        layout = self._layout
        if isinstance(domain, SessionIndex):
            return _threaded(load_sessions, layout.projects_dir)
        if isinstance(domain, Transcript):
            return self._transcript_job(domain, action.mode)
        if isinstance(domain, SubagentTranscript):
            return self._subagent_job(domain, action.mode)
        if isinstance(domain, TeamConfig):
            return _threaded(load_teams, layout.claude_home)
        if isinstance(domain, (TaskFile, TeamInbox)):
            if action.target is None:
                return None
            return _threaded(load_team_detail, layout.claude_home, action.target)
        if isinstance(domain, TodoFile):
            return _threaded(load_todos, layout.claude_home)
        if isinstance(domain, PlanFile):
            return _threaded(load_plans, layout.claude_home)
        if isinstance(domain, GitStatus):
            if action.mode == DIFF:
                return None if action.target is None else (lambda: self._git.diff(action.target))
            return self._git.status
        if isinstance(domain, FileTree):
            if action.mode == OPEN:
                return None if action.target is None else _threaded(read_file_content, action.target)
            expanded = frozenset(action.target or ())
            return lambda: self._file_tree(expanded)
        raise TypeError(f"unsupported domain {domain!r}")

    async def _file_tree(self, expanded: frozenset[Path]) -> list[FileEntry]:
        ignored = await self._git.ignored()
        return await asyncio.to_thread(build_tree, self._git.cwd, expanded, ignored)

    def _transcript_job(self, domain: Transcript, mode: str) -> Job | None:
        session_id = domain.session_id
        if mode == CONTINUE:
            # Cursor is read when the job starts, after earlier results were committed.
            cursor = self._reader.cursor(session_id)
            if cursor is None:
                return None

            async def read_more() -> TranscriptLoad:
                return TranscriptLoad(await asyncio.to_thread(self._reader.continue_from, cursor))

            return read_more

        path = self._layout.transcript_path(session_id)

        def open_transcript() -> TranscriptLoad:
            result = self._reader.open(session_id, path)
            return TranscriptLoad(result, find_subagents(self._layout.projects_dir, session_id))

        return _threaded(open_transcript)

    def _subagent_job(self, domain: SubagentTranscript, mode: str) -> Job | None:
        key = subagent_key(domain.session_id, domain.agent_id)
        if mode == CONTINUE:
            cursor = self._subagent_reader.cursor(key)
            if cursor is None:
                return None
            return _threaded(self._subagent_reader.continue_from, cursor)
        path = self._layout.subagents_dir(domain.session_id) / f"agent-{domain.agent_id}.jsonl"
        return _threaded(self._subagent_reader.open, key, path)


def _threaded(func: Callable[..., Any], *args: Any) -> Job:
    async def run() -> Any:
        return await asyncio.to_thread(func, *args)

    return run


def delete_artifact(path: Path, recursive: bool) -> None:
    if recursive:
        shutil.rmtree(path)
    else:
        path.unlink()


class ReloadExecutor:
    """Runs reads off the consumer and posts :class:`ReloadCompleted`.

    At most one read per key is outstanding. A submission for a busy key
    replaces any pending rerun (an ``open`` is never downgraded to a
    ``continue``) and starts only after the consumer has handled the
    previous result and called :meth:`release`.
    """

    def __init__(self, bus: EventBus, loader: DataLoader) -> None:
        self._bus = bus
        self._loader = loader
        self._busy: set[Hashable] = set()
        self._pending: dict[Hashable, Reload] = {}
        self._tasks: set[asyncio.Task] = set()

    @property
    def busy(self) -> set[Hashable]:
        return set(self._busy)

    @property
    def pending(self) -> dict[Hashable, Reload]:
        return dict(self._pending)

    def submit(self, action: Reload) -> None:
        key = reload_key(action.domain, action.mode)
        if key in self._busy:
            queued = self._pending.get(key)
            if queued is not None and queued.mode == OPEN and action.mode == CONTINUE:
                return
            self._pending[key] = action
            return
        self._start(key, action)

    def release(self, domain: Domain, mode: str) -> None:
        """Mark the read for ``domain`` handled and start its pending rerun, if any."""

        key = reload_key(domain, mode)
        self._busy.discard(key)
        queued = self._pending.pop(key, None)
        if queued is not None:
            self._start(key, queued)

    def run_delete(self, action: DeleteArtifact) -> None:
        async def run() -> None:
            try:
                await asyncio.to_thread(delete_artifact, action.path, action.recursive)
            except OSError as exc:
                logger.warning("Delete failed", extra={"path": str(action.path), "error": str(exc)})
                self._bus.post(ActionCompleted(action, error=f"{exc.strerror or exc}"))
            else:
                logger.info("Deleted artifact", extra={"path": str(action.path)})
                self._bus.post(ActionCompleted(action))

        self._spawn(run())

    async def stop(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

    def _start(self, key: Hashable, action: Reload) -> None:
        job = self._loader.job(action)
        if job is None:
            # Nothing to read; a queued rerun may still apply.
            queued = self._pending.pop(key, None)
            if queued is not None:
                self._start(key, queued)
            return
        self._busy.add(key)
        self._spawn(self._run(action, job))

    async def _run(self, action: Reload, job: Job) -> None:
        try:
            payload = await job()
        except asyncio.CancelledError:
            raise
        except FileNotFoundError as exc:
            event = ReloadCompleted(action.domain, action.mode, error=f"{Path(exc.filename or '').name} not found")
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Reload failed",
                extra={"domain": repr(action.domain), "mode": action.mode, "error": str(exc)},
            )
            event = ReloadCompleted(action.domain, action.mode, error=str(exc))
        else:
            event = ReloadCompleted(action.domain, action.mode, payload=payload)
        self._bus.post(event)

    def _spawn(self, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)


__all__ = [
    "DataLoader",
    "ReloadExecutor",
    "TranscriptLoad",
    "delete_artifact",
    "reload_key",
    "subagent_key",
]
