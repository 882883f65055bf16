"""Debounced filesystem watcher feeding the event bus."""

from __future__ import annotations

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..events import ChangeKind, EventBus, WatcherStatus
from ..paths import ClaudeLayout
from ..project import TabsConfig
from .classifier import classify_change
from .debounce import Debouncer

logger = logging.getLogger(__name__)


class WatchError(RuntimeError):
    """Raised when a root directory cannot be registered with the observer."""


@dataclass(frozen=True, slots=True)
class WatchRoot:
    path: Path
    recursive: bool


def watch_roots(layout: ClaudeLayout, tabs: TabsConfig) -> list[WatchRoot]:
    """Return the directories to watch; directories of disabled tabs are skipped."""

    roots: list[WatchRoot] = []
    if tabs.sessions:
        roots.append(WatchRoot(layout.projects_dir, recursive=True))
    if tabs.teams:
        roots.append(WatchRoot(layout.teams_dir, recursive=True))
        roots.append(WatchRoot(layout.tasks_dir, recursive=True))
    if tabs.todos:
        roots.append(WatchRoot(layout.todos_dir, recursive=True))
    if tabs.plans:
        roots.append(WatchRoot(layout.plans_dir, recursive=False))
    if tabs.git:
        roots.append(WatchRoot(layout.git_dir, recursive=False))
        roots.append(WatchRoot(layout.git_dir / "refs", recursive=True))
    return roots


class _ForwardingHandler(FileSystemEventHandler):
    """Runs on the observer thread; only forwards raw notifications."""

    def __init__(self, sink: Callable[[str, ChangeKind], None]) -> None:
        super().__init__()
        self._sink = sink

    def on_created(self, event: FileSystemEvent) -> None:
        self._sink(os.fsdecode(event.src_path), ChangeKind.CREATED)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._sink(os.fsdecode(event.src_path), ChangeKind.MODIFIED)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._sink(os.fsdecode(event.src_path), ChangeKind.REMOVED)

    def on_moved(self, event: FileSystemEvent) -> None:
        self._sink(os.fsdecode(event.src_path), ChangeKind.REMOVED)
        self._sink(os.fsdecode(event.dest_path), ChangeKind.CREATED)


class DebouncedWatcher:
    """Watches the agent home and the project's git directory.

    Raw notifications are coalesced by a :class:`Debouncer` on the event-loop
    thread, classified, and posted to the bus. Roots that do not exist yet
    or cannot be registered are retried every ``retry_interval`` seconds; an
    existing root that cannot be registered puts the watcher in degraded mode
    until registration succeeds.
    """

    def __init__(
        self,
        layout: ClaudeLayout,
        bus: EventBus,
        roots: list[WatchRoot],
        *,
        debounce: float,
        retry_interval: float = 5.0,
        observer_factory: Callable[[], Any] = Observer,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._layout = layout
        self._bus = bus
        self._clock = clock or time.monotonic
        self._debouncer = Debouncer(debounce, clock=self._clock)
        self._retry_interval = retry_interval
        self._observer_factory = observer_factory
        self._observer: Any = None
        self._handler = _ForwardingHandler(self._on_raw)
        self._pending_roots: list[WatchRoot] = list(roots)
        self._watches: dict[WatchRoot, Any] = {}
        self._degraded = False
        self._degraded_reason = ""
        self._next_retry = 0.0
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def degraded(self) -> bool:
        return self._degraded

    @property
    def watched(self) -> list[Path]:
        return [root.path for root in self._watches]

    @property
    def pending(self) -> list[Path]:
        return [root.path for root in self._pending_roots]

    def start(self) -> None:
        """Start the observer thread and register every root that exists.

        Must be called from the event loop thread.
        """

        self._loop = asyncio.get_running_loop()
        try:
            self._observer = self._observer_factory()
            self._observer.start()
        except OSError as exc:
            raise WatchError(f"unable to start filesystem observer: {exc}") from exc
        self._register_pending()
        self._next_retry = self._clock() + self._retry_interval

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=2.0)
        self._observer = None

    async def run(self) -> None:
        """Flush due notifications and retry registration until cancelled."""

        step = min(self._debouncer.window, 0.05)
        while True:
            await asyncio.sleep(step)
            self.flush()
            if self._clock() >= self._next_retry:
                self._check_registered()
                self._register_pending()
                self._next_retry = self._clock() + self._retry_interval

    def flush(self, now: float | None = None) -> int:
        """Classify and post every coalesced notification whose window closed."""

        posted = 0
        for path, kind in self._debouncer.due(now):
            event = classify_change(path, kind, self._layout)
            if event is not None:
                self._bus.post(event)
                posted += 1
        return posted

    def notify(self, path: str, kind: ChangeKind, now: float | None = None) -> None:
        """Record a raw notification (event loop thread only)."""

        self._debouncer.notify(path, kind, now)

    def _on_raw(self, path: str, kind: ChangeKind) -> None:
        if self._loop is None or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._debouncer.notify, path, kind)

    def _schedule(self, root: WatchRoot) -> Any:
        if not os.access(root.path, os.R_OK | os.X_OK):
            raise WatchError(f"{root.path} is not readable")
        try:
            return self._observer.schedule(self._handler, str(root.path), recursive=root.recursive)
        except OSError as exc:
            raise WatchError(f"cannot watch {root.path}: {exc}") from exc

    def _register_pending(self) -> None:
        failures: list[str] = []
        for root in list(self._pending_roots):
            if not root.path.is_dir():
                continue
            try:
                watch = self._schedule(root)
            except WatchError as exc:
                logger.warning("Watch registration failed", extra={"root": str(root.path), "error": str(exc)})
                failures.append(str(exc))
                continue
            self._watches[root] = watch
            self._pending_roots.remove(root)
            logger.info("Watching directory", extra={"root": str(root.path), "recursive": root.recursive})
        self._set_degraded(bool(failures), "; ".join(failures))

    def _check_registered(self) -> None:
        """Move roots that vanished or became unreadable back to pending."""

        for root, watch in list(self._watches.items()):
            if root.path.is_dir() and os.access(root.path, os.R_OK | os.X_OK):
                continue
            try:
                self._observer.unschedule(watch)
            except (KeyError, OSError) as exc:
                logger.debug("Unschedule failed", extra={"root": str(root.path), "error": str(exc)})
            del self._watches[root]
            self._pending_roots.append(root)

    def _set_degraded(self, degraded: bool, reason: str) -> None:
        if degraded == self._degraded and reason == self._degraded_reason:
            return
        self._degraded = degraded
        self._degraded_reason = reason
        self._bus.post(WatcherStatus(degraded=degraded, reason=reason))


__all__ = ["DebouncedWatcher", "WatchError", "WatchRoot", "watch_roots"]
