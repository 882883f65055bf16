"""Path identity and the agent tool's on-disk layout."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

_EXTENDED_PREFIX = "\\\\?\\"


def encode_project_path(path: str | Path) -> str:
    """Map an absolute project path to the agent tool's directory-safe identifier.

    The substitution is order-sensitive: the drive-root separator (``:\\`` or
    ``:/``) collapses to ``--`` first, then every remaining separator becomes
    ``-``. ``C:\\dev\\myproject`` encodes to ``C--dev-myproject``.
    """

    text = str(path)
    if text.startswith(_EXTENDED_PREFIX):
        text = text[len(_EXTENDED_PREFIX):]
    text = text.replace(":\\", "--").replace(":/", "--")
    return text.replace("\\", "-").replace("/", "-")


def normalize_path(path: str | Path) -> str:
    """Return ``path`` as text with forward slashes only."""

    return str(path).replace("\\", "/")


@dataclass(frozen=True, slots=True)
class ClaudeLayout:
    """Locations of everything the dashboard reads for one project."""

    claude_home: Path
    project_cwd: Path
    encoded_project: str

    @classmethod
    def for_project(cls, claude_home: Path, project_cwd: Path) -> "ClaudeLayout":
        return cls(
            claude_home=Path(claude_home),
            project_cwd=Path(project_cwd),
            encoded_project=encode_project_path(project_cwd),
        )

    @property
    def projects_dir(self) -> Path:
        return self.claude_home / "projects" / self.encoded_project

    @property
    def session_index_path(self) -> Path:
        return self.projects_dir / "sessions-index.json"

    def transcript_path(self, session_id: str) -> Path:
        return self.projects_dir / f"{session_id}.jsonl"

    def subagents_dir(self, session_id: str) -> Path:
        return self.projects_dir / session_id / "subagents"

    @property
    def teams_dir(self) -> Path:
        return self.claude_home / "teams"

    @property
    def tasks_dir(self) -> Path:
        return self.claude_home / "tasks"

    @property
    def todos_dir(self) -> Path:
        return self.claude_home / "todos"

    @property
    def plans_dir(self) -> Path:
        return self.claude_home / "plans"

    @property
    def git_dir(self) -> Path:
        return self.project_cwd / ".git"


__all__ = ["ClaudeLayout", "encode_project_path", "normalize_path"]
