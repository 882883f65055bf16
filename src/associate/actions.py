"""Instructions returned by :meth:`DashboardState.apply`."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

from .events import Domain

FULL = "full"
OPEN = "open"
CONTINUE = "continue"
DIFF = "diff"


@dataclass(frozen=True, slots=True)
class Reload:
    """Re-read exactly one domain.

    ``mode`` is ``open`` or ``continue`` for transcripts, ``diff`` for the
    selected git file and ``full`` otherwise. ``target`` carries what the
    read needs beyond the domain (a team, a git entry, a path).
    """

    domain: Domain
    mode: str = FULL
    target: Any = None


@dataclass(frozen=True, slots=True)
class RefreshIntegration:
    integration_id: str


@dataclass(frozen=True, slots=True)
class SpawnWorker:
    prompt: str
    label: str
    title: str = ""


@dataclass(frozen=True, slots=True)
class KillWorker:
    worker_id: int


@dataclass(frozen=True, slots=True)
class DismissWorker:
    worker_id: int


@dataclass(frozen=True, slots=True)
class DeleteArtifact:
    path: Path
    description: str
    recursive: bool = False
    refresh: Domain | None = None


@dataclass(frozen=True, slots=True)
class Quit:
    pass


Action = Union[Reload, RefreshIntegration, SpawnWorker, KillWorker, DismissWorker, DeleteArtifact, Quit]


__all__ = [
    "CONTINUE",
    "DIFF",
    "FULL",
    "OPEN",
    "Action",
    "DeleteArtifact",
    "DismissWorker",
    "KillWorker",
    "Quit",
    "RefreshIntegration",
    "Reload",
    "SpawnWorker",
]
