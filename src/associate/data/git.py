"""Git working-tree status and per-file diffs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from ..commands import CommandRunner, CommandRunnerError
from .filebrowser import parse_ignored

logger = logging.getLogger(__name__)

MAX_UNTRACKED_BYTES = 1_048_576
MAX_UNTRACKED_LINES = 200
GIT_TIMEOUT = 10.0


class Section(str, Enum):
    STAGED = "staged"
    UNSTAGED = "unstaged"
    UNTRACKED = "untracked"


@dataclass(frozen=True, slots=True)
class GitFileEntry:
    path: str
    section: Section
    status: str


@dataclass(slots=True)
class GitSnapshot:
    staged: list[GitFileEntry] = field(default_factory=list)
    unstaged: list[GitFileEntry] = field(default_factory=list)
    untracked: list[GitFileEntry] = field(default_factory=list)
    branch: str = ""
    available: bool = True

    def is_empty(self) -> bool:
        return not (self.staged or self.unstaged or self.untracked)

    def files(self) -> list[GitFileEntry]:
        return [*self.staged, *self.unstaged, *self.untracked]


class DiffKind(str, Enum):
    HEADER = "header"
    HUNK = "hunk"
    ADD = "add"
    REMOVE = "remove"
    CONTEXT = "context"


@dataclass(frozen=True, slots=True)
class DiffLine:
    kind: DiffKind
    text: str


def parse_porcelain(output: str) -> GitSnapshot:
    """Split ``git status --porcelain`` output into staged, unstaged and untracked files."""

    snapshot = GitSnapshot()
    for line in output.splitlines():
        if len(line) < 4:
            continue
        index, worktree, path = line[0], line[1], line[3:]
        if index in "RC" and " -> " in path:
            path = path.split(" -> ")[-1]
        if path.startswith('"') and path.endswith('"'):
            path = path[1:-1]

        if index == "?" and worktree == "?":
            snapshot.untracked.append(GitFileEntry(path, Section.UNTRACKED, "?"))
            continue
        if index not in " ?!":
            snapshot.staged.append(GitFileEntry(path, Section.STAGED, index))
        if worktree not in " ?!":
            snapshot.unstaged.append(GitFileEntry(path, Section.UNSTAGED, worktree))
    return snapshot


def classify_diff_line(line: str) -> DiffKind:
    if line.startswith(("diff ", "index ", "--- ", "+++ ")):
        return DiffKind.HEADER
    if line.startswith("@@"):
        return DiffKind.HUNK
    if line.startswith("+"):
        return DiffKind.ADD
    if line.startswith("-"):
        return DiffKind.REMOVE
    return DiffKind.CONTEXT


def parse_diff(output: str) -> list[DiffLine]:
    return [DiffLine(classify_diff_line(line), line) for line in output.splitlines()]


def untracked_preview(cwd: Path, relative: str) -> list[DiffLine]:
    """Render an untracked file as an all-added diff."""

    full_path = Path(cwd) / relative
    try:
        size = full_path.stat().st_size
    except OSError:
        size = 0
    if size > MAX_UNTRACKED_BYTES:
        return [DiffLine(DiffKind.HEADER, "(file too large to display)")]
    try:
        data = full_path.read_bytes()
    except OSError:
        return [DiffLine(DiffKind.HEADER, "(cannot read file)")]
    if b"\0" in data:
        return [DiffLine(DiffKind.HEADER, "(binary file)")]

    lines = [DiffLine(DiffKind.HEADER, f"new file: {relative}")]
    for number, text in enumerate(data.decode("utf-8", errors="replace").splitlines()):
        if number >= MAX_UNTRACKED_LINES:
            lines.append(DiffLine(DiffKind.CONTEXT, f"... (truncated at {MAX_UNTRACKED_LINES} lines)"))
            break
        lines.append(DiffLine(DiffKind.ADD, f"+{text}"))
    return lines


class GitClient:
    """Thin async wrapper over the ``git`` executable for one working tree."""

    def __init__(self, cwd: Path, runner: CommandRunner | None = None) -> None:
        self._cwd = Path(cwd)
        self._runner = runner

    def _get_runner(self) -> CommandRunner:
        if self._runner is None:
            self._runner = CommandRunner("git", cwd=self._cwd)
        return self._runner

    @property
    def cwd(self) -> Path:
        return self._cwd

    async def status(self) -> GitSnapshot:
        """Return the working-tree status; an empty unavailable snapshot outside a repo."""

        try:
            runner = self._get_runner()
            result = await runner.run("status", "--porcelain", timeout=GIT_TIMEOUT, cwd=self._cwd)
        except CommandRunnerError as exc:
            logger.info("git status unavailable", extra={"cwd": str(self._cwd), "error": str(exc)})
            return GitSnapshot(available=False)
        if not result.ok:
            return GitSnapshot(available=False)

        snapshot = parse_porcelain(result.stdout)
        branch = await runner.run("rev-parse", "--abbrev-ref", "HEAD", timeout=GIT_TIMEOUT, cwd=self._cwd)
        if branch.ok:
            snapshot.branch = branch.stdout.strip()
        return snapshot

    async def diff(self, entry: GitFileEntry) -> list[DiffLine]:
        if entry.section is Section.UNTRACKED:
            return untracked_preview(self._cwd, entry.path)
        args = ["diff"]
        if entry.section is Section.STAGED:
            args.append("--cached")
        args.extend(["--", entry.path])
        result = await self._get_runner().run(*args, timeout=GIT_TIMEOUT, cwd=self._cwd)
        return parse_diff(result.stdout)

    async def ignored(self) -> set[Path]:
        """Paths git ignores under the working tree; empty outside a repo."""

        try:
            result = await self._get_runner().run(
                "ls-files", "--others", "--ignored", "--exclude-standard", "--directory", timeout=GIT_TIMEOUT, cwd=self._cwd
            )
        except CommandRunnerError as exc:
            logger.info("git ls-files unavailable", extra={"cwd": str(self._cwd), "error": str(exc)})
            return set()
        if not result.ok:
            return set()
        return parse_ignored(result.stdout, self._cwd)


__all__ = [
    "DiffKind",
    "DiffLine",
    "GitClient",
    "GitFileEntry",
    "GitSnapshot",
    "Section",
    "classify_diff_line",
    "parse_diff",
    "parse_porcelain",
    "untracked_preview",
]
