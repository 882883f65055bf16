"""Project file tree and read-only file contents for the git tab's browse mode."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .plans import LineKind, MarkdownLine, classify_markdown

MAX_DEPTH = 20
MAX_FILE_BYTES = 1_048_576


class EntryKind(str, Enum):
    DIRECTORY = "directory"
    FILE = "file"


@dataclass(frozen=True, slots=True)
class FileEntry:
    name: str
    path: Path
    kind: EntryKind
    size: int
    depth: int

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY


class ContentKind(str, Enum):
    TEXT = "text"
    MARKDOWN = "markdown"
    BINARY = "binary"
    TOO_LARGE = "too_large"


@dataclass(slots=True)
class FileContent:
    path: Path
    kind: ContentKind
    lines: list[MarkdownLine] = field(default_factory=list)
    size: int = 0

    def placeholder(self) -> str | None:
        if self.kind is ContentKind.BINARY:
            return "(binary file)"
        if self.kind is ContentKind.TOO_LARGE:
            return f"(file too large to display: {self.size} bytes)"
        return None


def parse_ignored(output: str, root: Path) -> set[Path]:
    """Absolute paths listed by ``git ls-files --others --ignored --directory``."""

    return {Path(root) / line.rstrip("/") for line in output.splitlines() if line.strip()}


def _is_ignored(root: Path, path: Path, ignored: set[Path]) -> bool:
    if path.name == ".git":
        return True
    # A directory git reports as ignored hides everything below it.
    for candidate in (path, *path.parents):
        if candidate in ignored:
            return True
        if candidate == root:
            break
    return False


def _list_dir(directory: Path, depth: int) -> list[FileEntry]:
    directories = []
    files = []
    for child in directory.iterdir():
        try:
            is_dir = child.is_dir()
            size = 0 if is_dir else child.stat().st_size
        except FileNotFoundError:
            continue
        if is_dir:
            directories.append(FileEntry(child.name, child, EntryKind.DIRECTORY, 0, depth))
        else:
            files.append(FileEntry(child.name, child, EntryKind.FILE, size, depth))
    directories.sort(key=lambda entry: entry.name.lower())
    files.sort(key=lambda entry: entry.name.lower())
    return [*directories, *files]


def build_tree(root: Path, expanded: frozenset[Path] | set[Path], ignored: set[Path] | None = None) -> list[FileEntry]:
    """Flatten ``root`` into display order, descending only into ``expanded`` directories.

    Directories come before files and each group is sorted case-insensitively.
    Paths in ``ignored`` (and anything beneath them) and ``.git`` are skipped.
    """

    root = Path(root)
    ignored = ignored or set()
    entries: list[FileEntry] = []

    def collect(directory: Path, depth: int) -> None:
        if depth >= MAX_DEPTH:
            return
        for entry in _list_dir(directory, depth):
            if _is_ignored(root, entry.path, ignored):
                continue
            entries.append(entry)
            if entry.is_dir and entry.path in expanded:
                collect(entry.path, depth + 1)

    collect(root, 0)
    return entries


def read_file_content(path: Path) -> FileContent:
    """Read ``path`` for display; markdown files get heading and code classification."""

    path = Path(path)
    size = path.stat().st_size
    if size > MAX_FILE_BYTES:
        return FileContent(path, ContentKind.TOO_LARGE, size=size)
    data = path.read_bytes()
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        return FileContent(path, ContentKind.BINARY, size=size)
    if path.suffix.lower() == ".md":
        return FileContent(path, ContentKind.MARKDOWN, classify_markdown(text), size)
    lines = [MarkdownLine(LineKind.NORMAL, line) for line in text.splitlines()]
    return FileContent(path, ContentKind.TEXT, lines, size)


__all__ = [
    "ContentKind",
    "EntryKind",
    "FileContent",
    "FileEntry",
    "build_tree",
    "parse_ignored",
    "read_file_content",
]
