"""Async runner for the command-line tools the dashboard shells out to."""

from __future__ import annotations

import asyncio
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from .utils import sanitize_environment


class CommandRunnerError(RuntimeError):
    """Base class for command runner errors."""


class CommandNotFoundError(CommandRunnerError):
    """Raised when the executable cannot be located."""


class CommandTimeoutError(CommandRunnerError):
    """Raised when a command does not finish within its timeout."""


@dataclass(slots=True)
class CommandResult:
    """Holds the outcome of one CLI invocation."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def resolve_executable(name: str, explicit: Path | str | None = None) -> Path:
    if explicit is not None:
        candidate = Path(explicit)
        if candidate.exists() and candidate.is_file():
            return candidate
        raise CommandNotFoundError(f"{name} executable not found at {candidate}")

    binary = shutil.which(name)
    if binary is None:
        raise CommandNotFoundError(f"{name} executable not found on PATH")
    return Path(binary)


class CommandRunner:
    """Execute one CLI asynchronously, draining stdout and stderr together."""

    def __init__(self, name: str, executable: Path | str | None = None, *, cwd: Path | None = None) -> None:
        self._name = name
        self._executable_path = resolve_executable(name, executable)
        self._cwd = cwd

    @property
    def executable(self) -> Path:
        return self._executable_path

    async def run(self, *args: str, timeout: float | None = None, cwd: Path | None = None) -> CommandResult:
        cmd = [str(self._executable_path), *args]
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd or self._cwd) if (cwd or self._cwd) else None,
            env=sanitize_environment(),
        )
        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(process.communicate(), timeout)
        except asyncio.TimeoutError as exc:
            process.kill()
            await process.wait()
            raise CommandTimeoutError(f"{self._name} timed out after {timeout}s") from exc
        stdout = stdout_bytes.decode("utf-8", errors="replace")
        stderr = stderr_bytes.decode("utf-8", errors="replace")
        return CommandResult(args=tuple(cmd), returncode=process.returncode, stdout=stdout, stderr=stderr)


class FakeCommandRunner(CommandRunner):
    """Test double that replays canned results."""

    def __init__(self, responses: Iterable[CommandResult] | None = None, name: str = "fake") -> None:  # type: ignore[override]
        self._name = name
        self._responses = list(responses or [])
        self._invocations: list[tuple[str, ...]] = []
        self._executable_path = Path(f"/tmp/fake-{name}")
        self._cwd = None

    async def run(self, *args: str, timeout: float | None = None, cwd: Path | None = None) -> CommandResult:  # type: ignore[override]
        self._invocations.append(tuple(args))
        if self._responses:
            return self._responses.pop(0)
        return CommandResult(args=tuple(args), returncode=0, stdout="", stderr="")

    @property
    def invocations(self) -> list[tuple[str, ...]]:
        return self._invocations
