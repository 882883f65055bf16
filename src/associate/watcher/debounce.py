"""Coalescing of bursty filesystem notifications."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

from ..events import ChangeKind


def merge_kinds(previous: ChangeKind, new: ChangeKind) -> ChangeKind:
    """Combine two notifications for one path into the kind a reader cares about."""

    if new is ChangeKind.REMOVED:
        return ChangeKind.REMOVED
    if previous is ChangeKind.CREATED:
        return ChangeKind.CREATED
    if previous is ChangeKind.REMOVED:
        # temp-file + rename writes look like remove followed by create
        return ChangeKind.MODIFIED
    return new


@dataclass(slots=True)
class _Pending:
    kind: ChangeKind
    first_seen: float


class Debouncer:
    """Releases at most one notification per path per debounce window.

    The window for a path opens with its first notification; everything that
    arrives for the same path before the window closes is merged into it.
    Released entries come out in the order their windows opened.
    """

    def __init__(self, window: float, clock: Callable[[], float] | None = None) -> None:
        if window <= 0:
            raise ValueError("debounce window must be positive")
        self._window = window
        self._clock = clock or time.monotonic
        self._pending: dict[str, _Pending] = {}

    @property
    def window(self) -> float:
        return self._window

    def notify(self, path: str, kind: ChangeKind, now: float | None = None) -> None:
        now = self._clock() if now is None else now
        entry = self._pending.get(path)
        if entry is None:
            self._pending[path] = _Pending(kind=kind, first_seen=now)
        else:
            entry.kind = merge_kinds(entry.kind, kind)

    def due(self, now: float | None = None) -> list[tuple[str, ChangeKind]]:
        now = self._clock() if now is None else now
        released: list[tuple[str, ChangeKind]] = []
        for path, entry in list(self._pending.items()):
            if now - entry.first_seen >= self._window:
                released.append((path, entry.kind))
                del self._pending[path]
        return released

    def next_deadline(self) -> float | None:
        if not self._pending:
            return None
        return min(entry.first_seen for entry in self._pending.values()) + self._window

    def __len__(self) -> int:
        return len(self._pending)


__all__ = ["Debouncer", "merge_kinds"]
