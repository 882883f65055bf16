"""Shared types for remote issue-tracker integrations."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..commands import CommandRunner, CommandRunnerError


class FetchError(RuntimeError):
    """Raised when an integration cannot produce a list of issues."""


class NormalizedIssue(BaseModel):
    """A PR, issue or ticket flattened to the fields the dashboard shows."""

    model_config = ConfigDict(frozen=True)

    source: str
    key: str
    title: str
    state: str = ""
    url: str = ""
    body: str = ""
    labels: tuple[str, ...] = ()
    assignees: tuple[str, ...] = ()
    author: str = ""
    updated_at: datetime | None = None
    extra: dict[str, str] = Field(default_factory=dict)

    @field_validator("body", "state", "url", "author", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("updated_at", mode="before")
    @classmethod
    def _lenient_timestamp(cls, value: Any) -> Any:
        if isinstance(value, str):
            if not value:
                return None
            try:
                return datetime.fromisoformat(value.replace("Z", "+00:00"))
            except ValueError:
                return None
        return value


@runtime_checkable
class Fetcher(Protocol):
    """Black-box issue source polled by the scheduler."""

    integration_id: str
    title: str

    async def fetch(self) -> list[NormalizedIssue]: ...


async def run_json(runner: CommandRunner, *args: str, timeout: float | None = None) -> Any:
    """Run a CLI that prints JSON and decode its stdout, mapping failures to :class:`FetchError`."""

    try:
        result = await runner.run(*args, timeout=timeout)
    except CommandRunnerError as exc:
        raise FetchError(str(exc)) from exc
    if not result.ok:
        detail = result.stderr.strip() or result.stdout.strip() or f"exit status {result.returncode}"
        raise FetchError(f"{runner.executable.name} {args[0]} failed: {detail}")
    try:
        return json.loads(result.stdout or "null")
    except json.JSONDecodeError as exc:
        raise FetchError(f"unexpected output from {runner.executable.name}: {exc.msg}") from exc


__all__ = ["FetchError", "Fetcher", "NormalizedIssue", "run_json"]
