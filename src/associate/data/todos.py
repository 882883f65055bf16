"""Todo files (``todos/<id>.json``)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .files import LoadError, mtime, read_json

logger = logging.getLogger(__name__)

DISPLAY_NAME_LIMIT = 30


class TodoItem(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    content: str | None = None
    status: str | None = None
    active_form: str | None = Field(default=None, alias="activeForm")

    def display_text(self) -> str:
        return self.content or "(empty)"

    @property
    def icon(self) -> str:
        if self.status == "completed":
            return "[X]"
        if self.status == "in_progress":
            return "[=]"
        return "[ ]"


@dataclass(slots=True)
class TodoList:
    filename: str
    path: Path
    items: list[TodoItem]
    modified: float = 0.0

    @property
    def file_id(self) -> str:
        return self.path.stem

    def display_name(self) -> str:
        if len(self.filename) > DISPLAY_NAME_LIMIT:
            return self.filename[: DISPLAY_NAME_LIMIT - 3] + "..."
        return self.filename


def _parse_items(raw: Any) -> list[TodoItem]:
    if not isinstance(raw, list):
        raise LoadError("todo file is not a list")
    items = []
    for entry in raw:
        try:
            items.append(TodoItem.model_validate(entry))
        except ValidationError:
            continue
    return items


def load_todos(claude_home: Path) -> list[TodoList]:
    """Load non-empty todo files, most recently modified first."""

    todo_dir = Path(claude_home) / "todos"
    if not todo_dir.is_dir():
        return []

    lists = []
    for path in todo_dir.glob("*.json"):
        try:
            items = _parse_items(read_json(path))
        except FileNotFoundError:
            continue
        except LoadError as exc:
            logger.debug("Skipping todo file", extra={"path": str(path), "error": str(exc)})
            continue
        if items:
            lists.append(TodoList(filename=path.name, path=path, items=items, modified=mtime(path)))
    lists.sort(key=lambda todo: todo.modified, reverse=True)
    return lists


__all__ = ["TodoItem", "TodoList", "load_todos"]
