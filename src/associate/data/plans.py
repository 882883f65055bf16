"""Plan markdown files (``plans/<id>.md``)."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .files import LoadError, mtime


class LineKind(str, Enum):
    HEADING = "heading"
    CODE_FENCE = "fence"
    CODE = "code"
    NORMAL = "normal"


@dataclass(frozen=True, slots=True)
class MarkdownLine:
    kind: LineKind
    text: str


@dataclass(slots=True)
class Plan:
    filename: str
    path: Path
    title: str
    modified: float
    lines: list[MarkdownLine] = field(default_factory=list)

    def display_name(self) -> str:
        return self.filename.removesuffix(".md")


def classify_markdown(text: str) -> list[MarkdownLine]:
    lines = []
    in_code = False
    for line in text.splitlines():
        if line.lstrip().startswith("```"):
            in_code = not in_code
            lines.append(MarkdownLine(LineKind.CODE_FENCE, line))
        elif in_code:
            lines.append(MarkdownLine(LineKind.CODE, line))
        elif line.startswith("#"):
            lines.append(MarkdownLine(LineKind.HEADING, line))
        else:
            lines.append(MarkdownLine(LineKind.NORMAL, line))
    return lines


def plan_title(text: str, fallback: str) -> str:
    for line in text.splitlines():
        if line.startswith("# "):
            return line[2:].strip() or fallback
    return fallback


def load_plans(claude_home: Path) -> list[Plan]:
    """Load plan files, most recently modified first."""

    plans_dir = Path(claude_home) / "plans"
    if not plans_dir.is_dir():
        return []

    plans = []
    for path in plans_dir.glob("*.md"):
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            continue
        except OSError as exc:
            raise LoadError(f"cannot read {path.name}: {exc}") from exc
        plans.append(
            Plan(
                filename=path.name,
                path=path,
                title=plan_title(text, path.stem),
                modified=mtime(path),
                lines=classify_markdown(text),
            )
        )
    plans.sort(key=lambda plan: plan.modified, reverse=True)
    return plans


__all__ = ["LineKind", "MarkdownLine", "Plan", "classify_markdown", "load_plans", "plan_title"]
