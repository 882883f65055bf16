"""Team task files (``tasks/<team>/<id>.json``)."""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .files import LoadError, read_json

logger = logging.getLogger(__name__)


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    @property
    def icon(self) -> str:
        return {"pending": "[ ]", "in_progress": "[=]", "completed": "[X]"}[self.value]


class Task(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    subject: str = ""
    description: str = ""
    status: TaskStatus = TaskStatus.PENDING
    owner: str | None = None
    blocked_by: list[str] = Field(default_factory=list, alias="blockedBy")

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    @field_validator("status", mode="before")
    @classmethod
    def _unknown_status(cls, value: Any) -> Any:
        valid = {status.value for status in TaskStatus}
        return value if value in valid else TaskStatus.PENDING.value

    @field_validator("blocked_by", mode="before")
    @classmethod
    def _blocked_list(cls, value: Any) -> Any:
        if value is None:
            return []
        return [str(item) for item in value] if isinstance(value, list) else value

    @property
    def is_blocked(self) -> bool:
        return bool(self.blocked_by) and self.status is not TaskStatus.COMPLETED


def _task_sort_key(task: Task) -> tuple[int, str]:
    return (int(task.id), "") if task.id.isdigit() else (1 << 30, task.id)


def load_tasks(claude_home: Path, team_id: str) -> list[Task]:
    """Load every task file of one team. Unparseable files are skipped."""

    task_dir = Path(claude_home) / "tasks" / team_id
    if not task_dir.is_dir():
        return []

    tasks = []
    for path in task_dir.glob("*.json"):
        try:
            raw = read_json(path)
            tasks.append(Task.model_validate(raw))
        except FileNotFoundError:
            continue
        except (LoadError, ValidationError) as exc:
            logger.warning("Skipping task file", extra={"path": str(path), "error": str(exc)})
    tasks.sort(key=_task_sort_key)
    return tasks


__all__ = ["Task", "TaskStatus", "load_tasks"]
