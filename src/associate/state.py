"""Dashboard state and its single dispatch entry point."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from .actions import (
    CONTINUE,
    DIFF,
    FULL,
    OPEN,
    Action,
    DeleteArtifact,
    DismissWorker,
    KillWorker,
    Quit,
    RefreshIntegration,
    Reload,
    SpawnWorker,
)
from .data import (
    FileContent,
    FileEntry,
    GitFileEntry,
    GitSnapshot,
    Plan,
    SessionEntry,
    SubagentInfo,
    Team,
    TeamDetail,
    TodoList,
)
from .data.git import DiffLine
from .events import (
    ActionCompleted,
    BusEvent,
    ChangeEvent,
    ChangeKind,
    FileTree,
    GitStatus,
    KeyPressed,
    PlanFile,
    PollCompleted,
    ProcessExited,
    ProcessLine,
    ReloadCompleted,
    SessionIndex,
    SubagentTranscript,
    TaskFile,
    TeamConfig,
    TeamInbox,
    Tick,
    TodoFile,
    Transcript,
    WatcherStatus,
)
from .integrations import NormalizedIssue, build_prompt, worker_label
from .paths import ClaudeLayout
from .processes import ProcessSupervisor, WorkerProcess, describe_state
from .project import TabsConfig
from .reload import TranscriptLoad, subagent_key
from .transcripts import IncrementalLogReader, ReadResult, TranscriptItem

logger = logging.getLogger(__name__)

STATUS_TTL = 5.0
MAX_TRANSCRIPT_ITEMS = 10_000
FILES_VIEW = "Git:files"


class TabKind(str, Enum):
    SESSIONS = "Sessions"
    TEAMS = "Teams"
    TODOS = "Todos"
    GIT = "Git"
    PLANS = "Plans"
    INTEGRATION = "Integration"
    PROCESSES = "Processes"


class Focus(str, Enum):
    LIST = "list"
    DETAIL = "detail"


@dataclass(frozen=True, slots=True)
class Tab:
    kind: TabKind
    title: str
    integration_id: str | None = None

    @property
    def key(self) -> str:
        return self.integration_id or self.kind.value


@dataclass(slots=True)
class TabView:
    """Navigation state shared by every tab."""

    list_index: int = 0
    detail_index: int = 0
    focus: Focus = Focus.LIST

    def move(self, delta: int, length: int, detail_length: int) -> None:
        if self.focus is Focus.LIST:
            self.list_index = _clamp(self.list_index + delta, length)
        else:
            self.detail_index = _clamp(self.detail_index + delta, detail_length)

    def jump(self, to_end: bool, length: int, detail_length: int) -> None:
        if self.focus is Focus.LIST:
            self.list_index = max(length - 1, 0) if to_end else 0
        else:
            self.detail_index = max(detail_length - 1, 0) if to_end else 0


@dataclass(slots=True)
class StatusLine:
    message: str
    error: bool = False
    expires_at: float | None = None


@dataclass(slots=True)
class IntegrationState:
    integration_id: str
    title: str
    issues: list[NormalizedIssue] = field(default_factory=list)
    error: str | None = None
    loaded: bool = False


def _clamp(value: int, length: int) -> int:
    if length <= 0:
        return 0
    return min(max(value, 0), length - 1)


class DashboardState:
    """Everything the dashboard shows, mutated only by :meth:`apply`.

    ``apply`` returns at most one :class:`Action`. For a filesystem
    :class:`ChangeEvent` that action is always a :class:`Reload` of the
    event's own domain, so an unrelated change never causes a read.
    """

    def __init__(
        self,
        layout: ClaudeLayout,
        supervisor: ProcessSupervisor,
        *,
        tabs: TabsConfig | None = None,
        integrations: list[tuple[str, str]] | None = None,
        tail_lines: int = 200,
    ) -> None:
        self.layout = layout
        self.supervisor = supervisor
        self.tab_config = tabs or TabsConfig()
        self.reader = IncrementalLogReader(tail_lines)
        self.subagent_reader = IncrementalLogReader(tail_lines)
        self.integrations: dict[str, IntegrationState] = {
            integration_id: IntegrationState(integration_id, title)
            for integration_id, title in (integrations or [])
        }

        self.active_tab = 0
        self.views: dict[str, TabView] = {}
        self.show_help = False
        self.confirm_delete: DeleteArtifact | None = None
        self.status: StatusLine | None = None
        self.watcher_degraded = False
        self.now = 0.0

        self.sessions: list[SessionEntry] = []
        self.active_sessions: set[str] = set()
        self.follow = True
        self.loaded_session: str | None = None
        self.transcript: list[TranscriptItem] = []
        self.transcript_skipped = 0
        self.subagents: list[SubagentInfo] = []
        self.subagent_index: int | None = None
        self.subagent_transcript: list[TranscriptItem] = []
        self._opening_session: str | None = None
        self._opening_subagent: str | None = None
        self._failed_session: str | None = None

        self.teams: list[Team] = []
        self.team_detail: TeamDetail | None = None
        self._requested_team: str | None = None

        self.todos: list[TodoList] = []
        self.plans: list[Plan] = []

        self.git: GitSnapshot | None = None
        self.diff: list[DiffLine] = []
        self.diff_entry: GitFileEntry | None = None
        self._requested_diff: GitFileEntry | None = None

        self.browsing = False
        self.file_entries: list[FileEntry] = []
        self.expanded: set[Path] = set()
        self.file_content: FileContent | None = None

    # ------------------------------------------------------------------
    # Tabs and selection
    # ------------------------------------------------------------------
    @property
    def tabs(self) -> list[Tab]:
        tabs: list[Tab] = []
        config = self.tab_config
        if config.sessions:
            tabs.append(Tab(TabKind.SESSIONS, "Sessions"))
        if config.teams:
            tabs.append(Tab(TabKind.TEAMS, "Teams"))
        if config.todos:
            tabs.append(Tab(TabKind.TODOS, "Todos"))
        if config.git:
            tabs.append(Tab(TabKind.GIT, "Git"))
        if config.plans:
            tabs.append(Tab(TabKind.PLANS, "Plans"))
        for integration in self.integrations.values():
            tabs.append(Tab(TabKind.INTEGRATION, integration.title, integration.integration_id))
        if self.supervisor.workers:
            tabs.append(Tab(TabKind.PROCESSES, "Processes"))
        return tabs

    @property
    def tab(self) -> Tab | None:
        tabs = self.tabs
        if not tabs:
            return None
        self.active_tab = _clamp(self.active_tab, len(tabs))
        return tabs[self.active_tab]

    def view(self, tab: Tab | None = None) -> TabView:
        tab = tab or self.tab
        key = tab.key if tab is not None else ""
        if tab is not None and tab.kind is TabKind.GIT and self.browsing:
            key = FILES_VIEW
        return self.views.setdefault(key, TabView())

    def select_tab(self, kind: TabKind, integration_id: str | None = None) -> bool:
        for index, tab in enumerate(self.tabs):
            if tab.kind is kind and (integration_id is None or tab.integration_id == integration_id):
                self.active_tab = index
                return True
        return False

    def selected_session(self) -> SessionEntry | None:
        if not self.sessions:
            return None
        view = self.views.setdefault(TabKind.SESSIONS.value, TabView())
        view.list_index = _clamp(view.list_index, len(self.sessions))
        return self.sessions[view.list_index]

    def selected_team(self) -> Team | None:
        if not self.teams:
            return None
        view = self.views.setdefault(TabKind.TEAMS.value, TabView())
        view.list_index = _clamp(view.list_index, len(self.teams))
        return self.teams[view.list_index]

    def selected_member(self) -> str | None:
        team = self.selected_team()
        if team is None or not team.config.members:
            return None
        view = self.views[TabKind.TEAMS.value]
        return team.config.members[_clamp(view.detail_index, len(team.config.members))].name

    def selected_todo(self) -> TodoList | None:
        if not self.todos:
            return None
        view = self.views.setdefault(TabKind.TODOS.value, TabView())
        return self.todos[_clamp(view.list_index, len(self.todos))]

    def selected_plan(self) -> Plan | None:
        if not self.plans:
            return None
        view = self.views.setdefault(TabKind.PLANS.value, TabView())
        return self.plans[_clamp(view.list_index, len(self.plans))]

    def selected_git_entry(self) -> GitFileEntry | None:
        files = self.git.files() if self.git is not None else []
        if not files:
            return None
        view = self.views.setdefault(TabKind.GIT.value, TabView())
        return files[_clamp(view.list_index, len(files))]

    def selected_file_entry(self) -> FileEntry | None:
        if not self.file_entries:
            return None
        view = self.views.setdefault(FILES_VIEW, TabView())
        return self.file_entries[_clamp(view.list_index, len(self.file_entries))]

    def selected_issue(self, integration_id: str) -> NormalizedIssue | None:
        issues = self.integrations[integration_id].issues
        if not issues:
            return None
        view = self.views.setdefault(integration_id, TabView())
        return issues[_clamp(view.list_index, len(issues))]

    def selected_worker(self) -> WorkerProcess | None:
        workers = self.supervisor.workers
        if not workers:
            return None
        view = self.views.setdefault(TabKind.PROCESSES.value, TabView())
        return workers[_clamp(view.list_index, len(workers))]

    def visible_transcript(self) -> list[TranscriptItem]:
        return self.subagent_transcript if self.subagent_index is not None else self.transcript

    def _lengths(self, tab: Tab) -> tuple[int, int]:
        """Return ``(list length, detail length)`` of ``tab``."""

        if tab.kind is TabKind.SESSIONS:
            return len(self.sessions), len(self.visible_transcript())
        if tab.kind is TabKind.TEAMS:
            team = self.selected_team()
            return len(self.teams), len(team.config.members) if team else 0
        if tab.kind is TabKind.TODOS:
            todo = self.selected_todo()
            return len(self.todos), len(todo.items) if todo else 0
        if tab.kind is TabKind.GIT:
            if self.browsing:
                content = self.file_content
                return len(self.file_entries), len(content.lines) if content else 0
            return (len(self.git.files()) if self.git else 0), len(self.diff)
        if tab.kind is TabKind.PLANS:
            plan = self.selected_plan()
            return len(self.plans), len(plan.lines) if plan else 0
        if tab.kind is TabKind.INTEGRATION:
            issue = self.selected_issue(tab.integration_id)
            return len(self.integrations[tab.integration_id].issues), len(issue.body.splitlines()) if issue else 0
        worker = self.selected_worker()
        return len(self.supervisor.workers), len(worker.parsed_output) if worker else 0

    # ------------------------------------------------------------------
    # Status line
    # ------------------------------------------------------------------
    def set_status(self, message: str, *, error: bool = False, sticky: bool = False) -> None:
        expires = None if sticky else self.now + STATUS_TTL
        self.status = StatusLine(message, error, expires)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------
    def apply(self, event: BusEvent) -> Action | None:
        if isinstance(event, ChangeEvent):
            return self._on_change(event)
        if isinstance(event, ReloadCompleted):
            self._on_reload(event)
            return None
        if isinstance(event, KeyPressed):
            return self._on_key(event.key)
        if isinstance(event, Tick):
            return self._on_tick(event.at)
        if isinstance(event, PollCompleted):
            self._on_poll(event)
            return None
        if isinstance(event, ProcessLine):
            self.supervisor.handle_line(event)
            return None
        if isinstance(event, ProcessExited):
            worker = self.supervisor.handle_exit(event)
            if worker is not None:
                self.set_status(f"Worker {worker.label}: {describe_state(worker.state)}")
            return None
        if isinstance(event, ActionCompleted):
            return self._on_action_completed(event)
        if isinstance(event, WatcherStatus):
            self.watcher_degraded = event.degraded
            if event.degraded:
                self.set_status(f"Watcher degraded: {event.reason}", error=True, sticky=True)
            else:
                self.set_status("Watcher recovered")
            return None
        raise TypeError(f"unsupported event {event!r}")

    # -- filesystem changes -------------------------------------------
    def _on_change(self, event: ChangeEvent) -> Reload | None:
        domain = event.domain
        if isinstance(domain, SessionIndex):
            return Reload(domain)

        if isinstance(domain, Transcript):
            session_id = domain.session_id
            if event.kind is ChangeKind.REMOVED:
                self._forget_session(session_id)
                return None
            if self._failed_session == session_id:
                self._failed_session = None
            # A change during an open is read after the open commits its cursor.
            if session_id in self.reader or session_id == self._opening_session:
                return Reload(domain, CONTINUE)
            self._mark_active(session_id)
            return None

        if isinstance(domain, SubagentTranscript):
            return self._on_subagent_change(domain, event.kind)

        if isinstance(domain, TeamConfig):
            return Reload(domain)

        if isinstance(domain, (TaskFile, TeamInbox)):
            team = self.selected_team()
            if team is not None and team.dir_name == domain.team_id:
                return Reload(domain, target=team)
            return None

        if isinstance(domain, (TodoFile, PlanFile, GitStatus)):
            return Reload(domain)
        return None

    def _forget_session(self, session_id: str) -> None:
        """Drop a session whose transcript was deleted."""

        self.reader.evict(session_id)
        self.active_sessions.discard(session_id)
        if self.loaded_session == session_id:
            self._clear_transcript()
        if self._opening_session == session_id:
            self._opening_session = None
        if self._failed_session == session_id:
            self._failed_session = None
        previous = self.selected_session()
        self.sessions = [entry for entry in self.sessions if entry.session_id != session_id]
        view = self.views.setdefault(TabKind.SESSIONS.value, TabView())
        if previous is not None and previous.session_id != session_id:
            view.list_index = [entry.session_id for entry in self.sessions].index(previous.session_id)
        else:
            view.list_index = _clamp(view.list_index, len(self.sessions))

    def _mark_active(self, session_id: str) -> None:
        self.active_sessions.add(session_id)
        if any(entry.session_id == session_id for entry in self.sessions):
            return
        placeholder = SessionEntry(session_id=session_id, modified=datetime.now(timezone.utc))
        self.sessions.insert(0, placeholder)
        view = self.views.setdefault(TabKind.SESSIONS.value, TabView())
        if not self.follow and len(self.sessions) > 1:
            view.list_index += 1

    def _on_subagent_change(self, domain: SubagentTranscript, kind: ChangeKind) -> Reload | None:
        if domain.session_id != self.loaded_session:
            return None
        key = subagent_key(domain.session_id, domain.agent_id)
        if kind is ChangeKind.REMOVED:
            self.subagent_reader.evict(key)
            current = self._current_subagent()
            self.subagents = [info for info in self.subagents if info.agent_id != domain.agent_id]
            if current is not None and current.agent_id == domain.agent_id:
                self.subagent_index = None
                self.subagent_transcript = []
            elif current is not None:
                self.subagent_index = self.subagents.index(current)
            return None
        if key in self.subagent_reader:
            return Reload(domain, CONTINUE)
        if all(info.agent_id != domain.agent_id for info in self.subagents):
            path = self.layout.subagents_dir(domain.session_id) / f"agent-{domain.agent_id}.jsonl"
            self.subagents.append(SubagentInfo(domain.agent_id, path))
            self.subagents.sort(key=lambda info: info.agent_id)
        return None

    def _clear_transcript(self) -> None:
        if self.loaded_session is not None:
            self.reader.evict(self.loaded_session)
        for info in self.subagents:
            self.subagent_reader.evict(subagent_key(self.loaded_session or "", info.agent_id))
        self.loaded_session = None
        self.transcript = []
        self.transcript_skipped = 0
        self.subagents = []
        self.subagent_index = None
        self.subagent_transcript = []

    # -- read results -------------------------------------------------
    def _on_reload(self, event: ReloadCompleted) -> None:
        domain = event.domain
        if event.error is not None:
            self._on_reload_error(event)
            return

        if isinstance(domain, SessionIndex):
            self._install_sessions(event.payload)
        elif isinstance(domain, Transcript):
            self._install_transcript(domain.session_id, event.mode, event.payload)
        elif isinstance(domain, SubagentTranscript):
            self._install_subagent(domain, event.mode, event.payload)
        elif isinstance(domain, TeamConfig):
            self.teams = event.payload
            team = self.selected_team()
            if team is None or (self.team_detail is not None and self.team_detail.team_id != team.dir_name):
                self.team_detail = None
        elif isinstance(domain, (TaskFile, TeamInbox)):
            detail: TeamDetail = event.payload
            if self._requested_team == detail.team_id:
                self._requested_team = None
            team = self.selected_team()
            if team is not None and team.dir_name == detail.team_id:
                self.team_detail = detail
        elif isinstance(domain, TodoFile):
            self.todos = event.payload
        elif isinstance(domain, PlanFile):
            self.plans = event.payload
        elif isinstance(domain, FileTree):
            if event.mode == OPEN:
                self.file_content = event.payload
                self.views.setdefault(FILES_VIEW, TabView()).detail_index = 0
            else:
                self._install_file_tree(event.payload)
        elif isinstance(domain, GitStatus):
            if event.mode == DIFF:
                self._requested_diff = None
                self.diff = event.payload
                self.diff_entry = self.selected_git_entry()
            else:
                self.git = event.payload
                if self.selected_git_entry() != self.diff_entry:
                    self.diff_entry = None
                    self.diff = []

    def _on_reload_error(self, event: ReloadCompleted) -> None:
        domain = event.domain
        if isinstance(domain, Transcript) and domain.session_id == self._opening_session:
            self._opening_session = None
        if isinstance(domain, Transcript) and event.mode == OPEN:
            self._failed_session = domain.session_id
        if isinstance(domain, SubagentTranscript):
            self._opening_subagent = None
        if isinstance(domain, (TaskFile, TeamInbox)):
            self._requested_team = None
        if isinstance(domain, GitStatus) and event.mode == DIFF:
            self._requested_diff = None
        self.set_status(f"{domain.label}: {event.error}", error=True)

    def _install_file_tree(self, entries: list[FileEntry]) -> None:
        self.file_entries = entries
        view = self.views.setdefault(FILES_VIEW, TabView())
        if view.list_index >= len(entries):
            view.list_index = 0

    def _install_sessions(self, entries: list[SessionEntry]) -> None:
        previous = self.selected_session()
        known = {entry.session_id for entry in entries}
        placeholders = [
            entry for entry in self.sessions if entry.session_id in self.active_sessions and entry.session_id not in known
        ]
        self.sessions = placeholders + entries
        view = self.views.setdefault(TabKind.SESSIONS.value, TabView())
        if self.follow or previous is None:
            view.list_index = 0
        else:
            ids = [entry.session_id for entry in self.sessions]
            view.list_index = ids.index(previous.session_id) if previous.session_id in ids else 0

    def _install_transcript(self, session_id: str, mode: str, payload: TranscriptLoad) -> None:
        result = payload.result
        if mode == OPEN:
            if self._opening_session == session_id:
                self._opening_session = None
            if self._failed_session == session_id:
                self._failed_session = None
            selected = self.selected_session()
            if selected is None or selected.session_id != session_id:
                return
            if self.loaded_session is not None and self.loaded_session != session_id:
                self._clear_transcript()
            self.reader.commit(result)
            self.loaded_session = session_id
            self.active_sessions.discard(session_id)
            self.transcript = result.items()[-MAX_TRANSCRIPT_ITEMS:]
            self.transcript_skipped = result.skipped
            self.subagents = payload.subagents or []
            self.subagent_index = None
            self.subagent_transcript = []
            self._scroll_transcript()
            return

        if session_id != self.loaded_session or not self.reader.commit(result):
            logger.debug("Dropping stale transcript read", extra={"session_id": session_id})
            return
        self._extend(result, main=True)

    def _install_subagent(self, domain: SubagentTranscript, mode: str, result: ReadResult) -> None:
        current = self._current_subagent()
        if mode == OPEN:
            self._opening_subagent = None
            if current is None or current.agent_id != domain.agent_id or domain.session_id != self.loaded_session:
                return
            self.subagent_reader.commit(result)
            self.subagent_transcript = result.items()[-MAX_TRANSCRIPT_ITEMS:]
            self._scroll_transcript()
            return
        if current is None or current.agent_id != domain.agent_id or not self.subagent_reader.commit(result):
            return
        self._extend(result, main=False)

    def _extend(self, result: ReadResult, *, main: bool) -> None:
        items = result.items()
        if main:
            self.transcript_skipped = result.skipped if result.reset else self.transcript_skipped + result.skipped
            self.transcript = (items if result.reset else self.transcript + items)[-MAX_TRANSCRIPT_ITEMS:]
        else:
            self.subagent_transcript = (items if result.reset else self.subagent_transcript + items)[
                -MAX_TRANSCRIPT_ITEMS:
            ]
        if result.reset:
            self.set_status("Transcript was truncated; reloaded")
        self._scroll_transcript()

    def _scroll_transcript(self) -> None:
        if self.follow:
            view = self.views.setdefault(TabKind.SESSIONS.value, TabView())
            view.detail_index = max(len(self.visible_transcript()) - 1, 0)

    def _current_subagent(self) -> SubagentInfo | None:
        if self.subagent_index is None or self.subagent_index >= len(self.subagents):
            return None
        return self.subagents[self.subagent_index]

    # -- polling and actions -------------------------------------------
    def _on_poll(self, event: PollCompleted) -> None:
        integration = self.integrations.get(event.integration_id)
        if integration is None:
            return
        if event.ok:
            integration.issues = list(event.issues)
            integration.error = None
            integration.loaded = True
            if event.manual:
                self.set_status(f"{integration.title}: {len(integration.issues)} items")
            return
        integration.error = event.error
        self.set_status(f"{integration.title}: {event.error}", error=True)

    def _on_action_completed(self, event: ActionCompleted) -> Action | None:
        action = event.action
        if isinstance(action, SpawnWorker):
            if event.error is not None:
                self.set_status(f"Failed to spawn worker: {event.error}", error=True)
                return None
            self.select_tab(TabKind.PROCESSES)
            view = self.view()
            view.list_index = max(len(self.supervisor.workers) - 1, 0)
            view.detail_index = 0
            self.set_status(f"Spawned worker {action.label}")
            return None
        if isinstance(action, DeleteArtifact):
            if event.error is not None:
                self.set_status(f"Delete {action.description}: {event.error}", error=True)
                return None
            self.set_status(f"Deleted {action.description}")
            return Reload(action.refresh) if action.refresh is not None else None
        if isinstance(action, (KillWorker, DismissWorker, RefreshIntegration)) and event.error is not None:
            self.set_status(event.error, error=True)
        return None

    # -- ticks ----------------------------------------------------------
    def _on_tick(self, now: float) -> Action | None:
        self.now = now
        if self.status is not None and self.status.expires_at is not None and now >= self.status.expires_at:
            self.status = None
        return self._reconcile()

    def _reconcile(self) -> Reload | None:
        """Request the one read that brings a view in line with its selection."""

        if self.tab_config.sessions:
            if self.follow and self.sessions:
                self.views.setdefault(TabKind.SESSIONS.value, TabView()).list_index = 0
            selected = self.selected_session()
            if (
                selected is not None
                and selected.session_id != self.loaded_session
                and selected.session_id != self._failed_session
                and self._opening_session is None
            ):
                self._opening_session = selected.session_id
                return Reload(Transcript(selected.session_id), OPEN)
            current = self._current_subagent()
            if current is not None and self._opening_subagent is None:
                key = subagent_key(self.loaded_session or "", current.agent_id)
                if key not in self.subagent_reader:
                    self._opening_subagent = key
                    return Reload(SubagentTranscript(self.loaded_session or "", current.agent_id), OPEN)

        if self.tab_config.teams:
            team = self.selected_team()
            if (
                team is not None
                and (self.team_detail is None or self.team_detail.team_id != team.dir_name)
                and self._requested_team != team.dir_name
            ):
                self._requested_team = team.dir_name
                return Reload(TaskFile(team.dir_name, ""), target=team)

        if self.tab_config.git:
            entry = self.selected_git_entry()
            if entry is not None and entry != self.diff_entry and self._requested_diff != entry:
                self._requested_diff = entry
                return Reload(GitStatus(), DIFF, target=entry)
        return None

    # -- keys -------------------------------------------------------------
    def _on_key(self, key: str) -> Action | None:
        if self.confirm_delete is not None:
            pending, self.confirm_delete = self.confirm_delete, None
            if key == "y":
                return pending
            self.set_status("Delete cancelled")
            return None
        if self.show_help:
            self.show_help = False
            return Quit() if key == "q" else None

        if key == "q":
            return Quit()
        if key == "?":
            self.show_help = True
            return None
        if len(key) == 1 and key in "123456789":
            index = int(key) - 1
            if index < len(self.tabs):
                self.active_tab = index
            return None
        if key in ("tab", "backtab"):
            count = len(self.tabs)
            if count:
                step = 1 if key == "tab" else -1
                self.active_tab = (self.active_tab + step) % count
            return None

        tab = self.tab
        if tab is None:
            return None
        view = self.view(tab)
        length, detail_length = self._lengths(tab)

        if key in ("j", "down", "k", "up"):
            delta = 1 if key in ("j", "down") else -1
            before = view.list_index
            view.move(delta, length, detail_length)
            if tab.kind is TabKind.SESSIONS and view.focus is Focus.LIST and view.list_index != before:
                self.follow = False
            if tab.kind is TabKind.SESSIONS and view.focus is Focus.DETAIL and delta < 0:
                self.follow = False
            if tab.kind is TabKind.TEAMS and view.focus is Focus.LIST:
                view.detail_index = 0
            return None
        if key in ("h", "left"):
            view.focus = Focus.LIST
            return None
        if key in ("l", "right"):
            view.focus = Focus.DETAIL
            return None
        if key in ("g", "G"):
            view.jump(key == "G", length, detail_length)
            if tab.kind is TabKind.SESSIONS and view.focus is Focus.LIST:
                self.follow = key == "g" and self.follow
            return None
        if key == "f":
            self.follow = not self.follow
            if self.follow:
                self._scroll_transcript()
            self.set_status("Follow mode on" if self.follow else "Follow mode off")
            return None
        if tab.kind is TabKind.GIT and key == "b":
            return self._toggle_browse()
        if tab.kind is TabKind.GIT and key == "backspace" and self.browsing:
            return self._browse_up(view)
        if key == "enter":
            return self._select(tab, view)
        if key == "s":
            return self._switch(tab)
        if key == "r":
            return self._refresh(tab)
        if key == "p" and tab.kind is TabKind.INTEGRATION:
            issue = self.selected_issue(tab.integration_id)
            if issue is None:
                return None
            return SpawnWorker(build_prompt(issue), worker_label(issue), issue.title)
        if key == "x" and tab.kind is TabKind.PROCESSES:
            worker = self.selected_worker()
            if worker is not None and not worker.terminal:
                return KillWorker(worker.id)
            return None
        if key == "D" and tab.kind is TabKind.PROCESSES:
            worker = self.selected_worker()
            if worker is not None and worker.terminal:
                return DismissWorker(worker.id)
            self.set_status("Only finished workers can be dismissed")
            return None
        if key == "d":
            self._request_delete(tab, view)
            return None
        return None

    def _select(self, tab: Tab, view: TabView) -> Action | None:
        if tab.kind is TabKind.SESSIONS:
            selected = self.selected_session()
            if selected is None:
                return None
            self.follow = view.list_index == 0 and self.follow
            view.focus = Focus.DETAIL
            if selected.session_id == self.loaded_session:
                return None
            self._failed_session = None
            self._opening_session = selected.session_id
            return Reload(Transcript(selected.session_id), OPEN)
        if tab.kind is TabKind.TEAMS:
            team = self.selected_team()
            if team is None:
                return None
            view.focus = Focus.DETAIL
            self._requested_team = team.dir_name
            return Reload(TaskFile(team.dir_name, ""), target=team)
        if tab.kind is TabKind.GIT and self.browsing:
            return self._open_file_entry(view)
        if tab.kind is TabKind.GIT:
            entry = self.selected_git_entry()
            if entry is None:
                return None
            view.focus = Focus.DETAIL
            self._requested_diff = entry
            return Reload(GitStatus(), DIFF, target=entry)
        view.focus = Focus.DETAIL
        return None

    def _switch(self, tab: Tab) -> Action | None:
        if tab.kind is TabKind.PROCESSES:
            worker = self.selected_worker()
            if worker is None or worker.captured_session_id is None:
                self.set_status("Worker has no session yet")
                return None
            session_id = worker.captured_session_id
            if not self.select_tab(TabKind.SESSIONS):
                return None
            if all(entry.session_id != session_id for entry in self.sessions):
                self._mark_active(session_id)
            ids = [entry.session_id for entry in self.sessions]
            self.follow = False
            self.view().list_index = ids.index(session_id)
            if session_id == self.loaded_session:
                return None
            self._opening_session = session_id
            return Reload(Transcript(session_id), OPEN)

        if tab.kind is not TabKind.SESSIONS or not self.subagents:
            return None
        previous = self._current_subagent()
        if previous is not None:
            self.subagent_reader.evict(subagent_key(self.loaded_session or "", previous.agent_id))
        if self.subagent_index is None:
            self.subagent_index = 0
        elif self.subagent_index + 1 < len(self.subagents):
            self.subagent_index += 1
        else:
            self.subagent_index = None
            self.subagent_transcript = []
            self._scroll_transcript()
            self.set_status("Main transcript")
            return None
        current = self.subagents[self.subagent_index]
        self.subagent_transcript = []
        self.set_status(f"Subagent {current.agent_id}")
        key = subagent_key(self.loaded_session or "", current.agent_id)
        self.subagent_reader.evict(key)
        self._opening_subagent = key
        return Reload(SubagentTranscript(self.loaded_session or "", current.agent_id), OPEN)

    def _refresh(self, tab: Tab) -> Action | None:
        if tab.kind is TabKind.INTEGRATION:
            self.set_status(f"Refreshing {tab.title}...")
            return RefreshIntegration(tab.integration_id)
        if tab.kind is TabKind.SESSIONS:
            return Reload(SessionIndex())
        if tab.kind is TabKind.TEAMS:
            return Reload(TeamConfig(""))
        if tab.kind is TabKind.TODOS:
            return Reload(TodoFile(""))
        if tab.kind is TabKind.PLANS:
            return Reload(PlanFile(""))
        if tab.kind is TabKind.GIT and self.browsing:
            return self._file_tree_reload()
        if tab.kind is TabKind.GIT:
            return Reload(GitStatus(), FULL)
        return None

    # -- file browser -----------------------------------------------------
    def _file_tree_reload(self) -> Reload:
        return Reload(FileTree(), FULL, target=frozenset(self.expanded))

    def _toggle_browse(self) -> Action | None:
        self.browsing = not self.browsing
        if not self.browsing:
            self.set_status("Git status")
            return None
        self.set_status("Browsing files")
        return self._file_tree_reload()

    def _open_file_entry(self, view: TabView) -> Action | None:
        entry = self.selected_file_entry()
        if entry is None:
            return None
        if entry.is_dir:
            if entry.path in self.expanded:
                self.expanded.discard(entry.path)
            else:
                self.expanded.add(entry.path)
            return self._file_tree_reload()
        view.focus = Focus.DETAIL
        return Reload(FileTree(), OPEN, target=entry.path)

    def _browse_up(self, view: TabView) -> Action | None:
        """Collapse the selected directory, or move to the parent of the selection."""

        entry = self.selected_file_entry()
        if entry is None or view.focus is not Focus.LIST:
            return None
        if entry.is_dir and entry.path in self.expanded:
            self.expanded.discard(entry.path)
            return self._file_tree_reload()
        if entry.depth > 0:
            for index, candidate in enumerate(self.file_entries):
                if candidate.path == entry.path.parent:
                    view.list_index = index
                    break
        return None

    def _request_delete(self, tab: Tab, view: TabView) -> None:
        if view.focus is not Focus.LIST:
            return
        target: DeleteArtifact | None = None
        if tab.kind is TabKind.SESSIONS:
            session = self.selected_session()
            if session is not None:
                target = DeleteArtifact(
                    self.layout.transcript_path(session.session_id),
                    f"session {session.session_id}",
                    refresh=SessionIndex(),
                )
        elif tab.kind is TabKind.TODOS:
            todo = self.selected_todo()
            if todo is not None:
                target = DeleteArtifact(todo.path, f"todo {todo.filename}", refresh=TodoFile(todo.file_id))
        elif tab.kind is TabKind.PLANS:
            plan = self.selected_plan()
            if plan is not None:
                target = DeleteArtifact(plan.path, f"plan {plan.filename}", refresh=PlanFile(plan.path.stem))
        elif tab.kind is TabKind.TEAMS:
            team = self.selected_team()
            if team is not None:
                target = DeleteArtifact(
                    self.layout.teams_dir / team.dir_name,
                    f"team {team.display_name()}",
                    recursive=True,
                    refresh=TeamConfig(team.dir_name),
                )
        if target is None:
            return
        self.confirm_delete = target
        self.set_status(f"Delete {target.description}? (y/n)", sticky=True)


__all__ = [
    "DashboardState",
    "Focus",
    "IntegrationState",
    "STATUS_TTL",
    "StatusLine",
    "Tab",
    "TabKind",
    "TabView",
]
