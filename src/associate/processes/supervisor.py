"""Supervision of headless agent worker processes."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

from ..commands import CommandNotFoundError, resolve_executable, sanitize_environment
from ..events import EventBus, ProcessExited, ProcessLine
from ..lines import LineBuffer
from .models import (
    Completed,
    Failed,
    Killed,
    ProgressItem,
    Running,
    SessionCaptured,
    Starting,
    WorkerState,
)
from .stream import parse_stream_line

logger = logging.getLogger(__name__)

MAX_OUTPUT_LINES = 10_000
READ_CHUNK = 65536
WORKER_FLAGS = ("--dangerously-skip-permissions", "--output-format", "stream-json", "--verbose")


class ProcessSpawnError(RuntimeError):
    """Raised when a worker process cannot be started."""


def worker_command(executable: Path | str, prompt: str) -> list[str]:
    return [str(executable), "-p", prompt, *WORKER_FLAGS]


@dataclass(slots=True)
class WorkerProcess:
    id: int
    label: str
    title: str
    prompt: str
    command: tuple[str, ...]
    cwd: Path
    state: WorkerState = field(default_factory=Starting)
    captured_session_id: str | None = None
    parsed_output: deque = field(default_factory=lambda: deque(maxlen=MAX_OUTPUT_LINES))
    output_lines: deque = field(default_factory=lambda: deque(maxlen=MAX_OUTPUT_LINES))
    error_lines: deque = field(default_factory=lambda: deque(maxlen=MAX_OUTPUT_LINES))
    progress_count: int = 0
    exit_outcome: int | None = None
    started_at: float = field(default_factory=time.time)
    finished_at: float | None = None
    process: Any = field(default=None, repr=False)

    @property
    def terminal(self) -> bool:
        return self.state.terminal

    def elapsed(self, now: float | None = None) -> float:
        end = self.finished_at if self.finished_at is not None else (now or time.time())
        return max(end - self.started_at, 0.0)

    def finish(self, state: WorkerState) -> None:
        self.state = state
        if self.finished_at is None:
            self.finished_at = time.time()

    def add_progress(self, item: ProgressItem) -> None:
        if isinstance(item, SessionCaptured):
            if self.captured_session_id is not None:
                return
            self.captured_session_id = item.session_id
        self.parsed_output.append(item)
        self.progress_count += 1


class ProcessSupervisor:
    """Spawns workers and applies their output to the worker table.

    Reader tasks only post :class:`ProcessLine` and :class:`ProcessExited`
    events; the worker table changes through :meth:`handle_line`,
    :meth:`handle_exit`, :meth:`kill` and :meth:`dismiss`, which the
    event-loop consumer calls.
    """

    def __init__(
        self,
        bus: EventBus,
        cwd: Path,
        executable: Path | str | None = None,
        *,
        extra_args: Sequence[str] = (),
    ) -> None:
        self._bus = bus
        self._cwd = Path(cwd)
        self._explicit_executable = executable
        self._extra_args = tuple(extra_args)
        self._workers: dict[int, WorkerProcess] = {}
        self._next_id = 1
        self._tasks: set[asyncio.Task] = set()

    @property
    def workers(self) -> list[WorkerProcess]:
        return list(self._workers.values())

    def get(self, worker_id: int) -> WorkerProcess | None:
        return self._workers.get(worker_id)

    def live(self) -> list[WorkerProcess]:
        return [worker for worker in self._workers.values() if not worker.terminal]

    async def spawn(self, prompt: str, label: str, title: str = "") -> WorkerProcess:
        try:
            executable = resolve_executable("claude", self._explicit_executable)
        except CommandNotFoundError as exc:
            raise ProcessSpawnError(str(exc)) from exc

        command = [*worker_command(executable, prompt), *self._extra_args]
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(self._cwd),
                env=sanitize_environment(),
            )
        except OSError as exc:
            raise ProcessSpawnError(f"failed to spawn {executable.name}: {exc}") from exc

        worker = WorkerProcess(
            id=self._next_id,
            label=label,
            title=title,
            prompt=prompt,
            command=tuple(command),
            cwd=self._cwd,
            process=process,
        )
        self._next_id += 1
        self._workers[worker.id] = worker
        logger.info("Spawned worker", extra={"worker_id": worker.id, "label": label, "pid": process.pid})

        task = asyncio.create_task(self._supervise(worker.id, process))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return worker

    async def _pump(self, worker_id: int, stream_name: str, stream: asyncio.StreamReader) -> None:
        buffer = LineBuffer()
        while True:
            chunk = await stream.read(READ_CHUNK)
            if not chunk:
                break
            for line in buffer.feed(chunk):
                self._bus.post(ProcessLine(worker_id, stream_name, line.decode("utf-8", errors="replace")))
        rest = buffer.flush()
        if rest:
            self._bus.post(ProcessLine(worker_id, stream_name, rest.decode("utf-8", errors="replace")))

    async def _supervise(self, worker_id: int, process: asyncio.subprocess.Process) -> None:
        # Exit is posted after both pipes drained, so every line precedes it on the bus.
        try:
            await asyncio.gather(
                self._pump(worker_id, "stdout", process.stdout),
                self._pump(worker_id, "stderr", process.stderr),
            )
        except OSError as exc:
            logger.warning("Worker pipe failed", extra={"worker_id": worker_id, "error": str(exc)})
        returncode = await process.wait()
        self._bus.post(ProcessExited(worker_id, returncode))

    def handle_line(self, event: ProcessLine) -> WorkerProcess | None:
        worker = self._workers.get(event.worker_id)
        if worker is None or isinstance(worker.state, Killed):
            return None

        if event.stream == "stderr":
            worker.error_lines.append(event.line)
            return worker

        worker.output_lines.append(event.line)
        parsed = parse_stream_line(event.line)
        if parsed is None or worker.terminal:
            return worker
        if isinstance(worker.state, Starting):
            worker.state = Running()
        for item in parsed.progress:
            worker.add_progress(item)
        if parsed.terminal is not None:
            worker.finish(parsed.terminal)
            logger.info("Worker finished", extra={"worker_id": worker.id, "state": worker.state.label})
        return worker

    def handle_exit(self, event: ProcessExited) -> WorkerProcess | None:
        worker = self._workers.get(event.worker_id)
        if worker is None:
            return None
        worker.exit_outcome = event.returncode
        worker.process = None
        if worker.terminal:
            return worker
        if event.returncode != 0:
            worker.finish(Failed(f"exited with status {event.returncode}"))
        else:
            worker.finish(Completed(None))
        logger.info(
            "Worker exited",
            extra={"worker_id": worker.id, "returncode": event.returncode, "state": worker.state.label},
        )
        return worker

    def kill(self, worker_id: int) -> bool:
        worker = self._workers.get(worker_id)
        if worker is None or worker.terminal:
            return False
        if worker.process is not None:
            try:
                worker.process.terminate()
            except ProcessLookupError:
                logger.debug("Worker already gone", extra={"worker_id": worker_id})
        worker.finish(Killed())
        logger.info("Killed worker", extra={"worker_id": worker_id})
        return True

    def dismiss(self, worker_id: int) -> bool:
        worker = self._workers.get(worker_id)
        if worker is None or not worker.terminal:
            return False
        del self._workers[worker_id]
        return True

    async def shutdown(self, grace: float = 2.0) -> None:
        """Terminate every live worker and wait briefly for the supervise tasks."""

        for worker in self._workers.values():
            if worker.process is not None and worker.process.returncode is None:
                try:
                    worker.process.terminate()
                except ProcessLookupError:
                    continue
        if self._tasks:
            _, pending = await asyncio.wait(set(self._tasks), timeout=grace)
            for task in pending:
                task.cancel()


__all__ = [
    "MAX_OUTPUT_LINES",
    "ProcessSpawnError",
    "ProcessSupervisor",
    "WORKER_FLAGS",
    "WorkerProcess",
    "worker_command",
]
