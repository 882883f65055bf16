"""Event-loop wiring for the dashboard and the headless worker runner."""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Callable

from rich.console import Console
from rich.live import Live

from . import __version__
from .actions import (
    Action,
    DeleteArtifact,
    DismissWorker,
    KillWorker,
    Quit,
    RefreshIntegration,
    Reload,
    SpawnWorker,
)
from .config import AssociateSettings
from .data.git import GitClient
from .events import (
    ActionCompleted,
    EventBus,
    GitStatus,
    PlanFile,
    ProcessExited,
    ProcessLine,
    ReloadCompleted,
    SessionIndex,
    TeamConfig,
    Tick,
    TodoFile,
)
from .integrations import Fetcher, discover_integrations
from .keys import KeyboardReader
from .paths import ClaudeLayout
from .polling import RemotePollScheduler
from .processes import Completed, ProcessSpawnError, ProcessSupervisor, describe_state
from .project import ProjectConfig
from .reload import DataLoader, ReloadExecutor
from .render import build_dashboard
from .state import DashboardState
from .watcher import DebouncedWatcher, WatchError, watch_roots

logger = logging.getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when the dashboard cannot start its event loop components."""


def configure_logging(level: str, log_file: Path | None = None) -> None:
    """Configure root logging; records go to ``log_file`` when given."""

    kwargs = {}
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        kwargs["filename"] = str(log_file)
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
        **kwargs,
    )


def initial_reloads(project: ProjectConfig) -> list[Reload]:
    tabs = project.tabs
    reloads = []
    if tabs.sessions:
        reloads.append(Reload(SessionIndex()))
    if tabs.teams:
        reloads.append(Reload(TeamConfig("")))
    if tabs.todos:
        reloads.append(Reload(TodoFile("")))
    if tabs.plans:
        reloads.append(Reload(PlanFile("")))
    if tabs.git:
        reloads.append(Reload(GitStatus()))
    return reloads


class Dashboard:
    """Owns the producers and runs the single consumer of the event bus."""

    def __init__(
        self,
        settings: AssociateSettings,
        project_dir: Path,
        project: ProjectConfig,
        *,
        console: Console | None = None,
    ) -> None:
        self.settings = settings
        self.project_dir = Path(project_dir).resolve()
        self.project = project
        self.console = console or Console()
        self.layout = ClaudeLayout.for_project(settings.claude_home, self.project_dir)

        self.bus: EventBus | None = None
        self.state: DashboardState | None = None
        self.executor: ReloadExecutor | None = None
        self.watcher: DebouncedWatcher | None = None
        self.scheduler: RemotePollScheduler | None = None
        self.supervisor: ProcessSupervisor | None = None
        self.keyboard: KeyboardReader | None = None
        self._tasks: list[asyncio.Task] = []

    async def start(self, fetchers: list[Fetcher] | None = None) -> None:
        settings = self.settings
        project = self.project
        self.bus = EventBus()
        self.supervisor = ProcessSupervisor(self.bus, self.project_dir, settings.claude_path)

        if fetchers is None:
            fetchers = await discover_integrations(
                project,
                self.project_dir,
                linear_api_key=settings.linear_api_key,
            )
        self.state = DashboardState(
            self.layout,
            self.supervisor,
            tabs=project.tabs,
            integrations=[(fetcher.integration_id, fetcher.title) for fetcher in fetchers],
            tail_lines=project.tail_lines(settings.tail_lines),
        )
        loader = DataLoader(
            self.layout,
            self.state.reader,
            self.state.subagent_reader,
            GitClient(self.project_dir),
        )
        self.executor = ReloadExecutor(self.bus, loader)

        self.watcher = DebouncedWatcher(
            self.layout,
            self.bus,
            watch_roots(self.layout, project.tabs),
            debounce=settings.debounce_ms / 1000,
            retry_interval=settings.watch_retry,
        )
        try:
            self.watcher.start()
        except WatchError as exc:
            raise StartupError(str(exc)) from exc

        self.scheduler = RemotePollScheduler(
            self.bus,
            fetchers,
            interval=settings.poll_interval,
            timeout=settings.fetch_timeout,
        )
        self.scheduler.start()

        self.keyboard = KeyboardReader(self.bus)
        if not self.keyboard.start():
            logger.warning("Keyboard input unavailable; press Ctrl+C to exit")

        self._tasks = [
            asyncio.create_task(self.watcher.run()),
            asyncio.create_task(self._tick(project.tick_rate(settings.tick_rate_ms) / 1000)),
        ]
        for action in initial_reloads(project):
            self.executor.submit(action)

        logger.info(
            "Dashboard started",
            extra={
                "version": __version__,
                "project": str(self.project_dir),
                "encoded": self.layout.encoded_project,
                "integrations": [fetcher.integration_id for fetcher in fetchers],
            },
        )

    async def _tick(self, interval: float) -> None:
        assert self.bus is not None
        while True:
            await asyncio.sleep(interval)
            self.bus.post(Tick(time.monotonic()))

    def dispatch(self, event) -> Action | None:
        """Apply one event and release the executor slot of a finished read."""

        assert self.state is not None and self.executor is not None
        try:
            return self.state.apply(event)
        finally:
            if isinstance(event, ReloadCompleted):
                self.executor.release(event.domain, event.mode)

    async def execute(self, action: Action) -> bool:
        """Carry out ``action``; False means the dashboard should exit."""

        assert self.bus is not None and self.executor is not None
        assert self.scheduler is not None and self.supervisor is not None
        if isinstance(action, Quit):
            return False
        if isinstance(action, Reload):
            self.executor.submit(action)
        elif isinstance(action, RefreshIntegration):
            try:
                started = self.scheduler.trigger(action.integration_id, manual=True)
            except KeyError:
                self.bus.post(ActionCompleted(action, error=f"unknown integration {action.integration_id}"))
            else:
                if not started:
                    self.bus.post(ActionCompleted(action, error="refresh already in progress"))
        elif isinstance(action, SpawnWorker):
            try:
                worker = await self.supervisor.spawn(action.prompt, action.label, action.title)
            except ProcessSpawnError as exc:
                logger.warning("Worker spawn failed", extra={"label": action.label, "error": str(exc)})
                self.bus.post(ActionCompleted(action, error=str(exc)))
            else:
                self.bus.post(ActionCompleted(action, result=worker.id))
        elif isinstance(action, KillWorker):
            if not self.supervisor.kill(action.worker_id):
                self.bus.post(ActionCompleted(action, error="worker is not running"))
        elif isinstance(action, DismissWorker):
            if not self.supervisor.dismiss(action.worker_id):
                self.bus.post(ActionCompleted(action, error="only finished workers can be dismissed"))
        elif isinstance(action, DeleteArtifact):
            self.executor.run_delete(action)
        return True

    async def handle(self, event) -> bool:
        """Dispatch one event and execute its action; False means exit.

        A failure while handling an event is logged and shown on the status
        line; it never ends the loop.
        """

        assert self.state is not None
        try:
            action = self.dispatch(event)
            if action is not None:
                return await self.execute(action)
        except Exception as exc:
            logger.exception("Failed to handle event", extra={"event": type(event).__name__})
            self.state.set_status(f"Internal error: {exc}", error=True)
        return True

    async def consume(self, render: Callable[[], None] | None = None) -> None:
        """Apply events until a :class:`Quit`; redraw once per drained batch."""

        assert self.bus is not None
        while True:
            event = await self.bus.get()
            while event is not None:
                if not await self.handle(event):
                    return
                event = self.bus.get_nowait()
            if render is not None:
                render()

    async def run(self) -> None:
        await self.start()
        assert self.state is not None
        state = self.state
        try:
            with Live(console=self.console, auto_refresh=False, screen=True, transient=True) as live:

                def render() -> None:
                    live.update(build_dashboard(state, live.console.size.height), refresh=True)

                render()
                await self.consume(render)
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        if self.keyboard is not None:
            self.keyboard.stop()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        if self.watcher is not None:
            self.watcher.stop()
        if self.scheduler is not None:
            await self.scheduler.stop()
        if self.executor is not None:
            await self.executor.stop()
        if self.supervisor is not None:
            await self.supervisor.shutdown()
        logger.info("Dashboard stopped")


async def run_worker(
    prompt: str,
    cwd: Path,
    executable: str | None = None,
    emit: Callable[[str], None] = print,
) -> int:
    """Run one worker without the dashboard, emitting its parsed progress.

    Returns 0 when the worker completed and 1 otherwise.
    """

    bus = EventBus()
    supervisor = ProcessSupervisor(bus, cwd, executable)
    try:
        worker = await supervisor.spawn(prompt, "headless", prompt[:60])
    except ProcessSpawnError as exc:
        emit(f"error: {exc}")
        return 1
    try:
        while True:
            event = await bus.get()
            if isinstance(event, ProcessLine):
                before = worker.progress_count
                supervisor.handle_line(event)
                added = worker.progress_count - before
                if added:
                    for item in list(worker.parsed_output)[-added:]:
                        emit(item.render())
            elif isinstance(event, ProcessExited):
                supervisor.handle_exit(event)
                break
    finally:
        await supervisor.shutdown()
    emit(describe_state(worker.state))
    return 0 if isinstance(worker.state, Completed) else 1


__all__ = ["Dashboard", "StartupError", "configure_logging", "initial_reloads", "run_worker"]
