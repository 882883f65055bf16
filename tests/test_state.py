from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from associate.actions import (
    CONTINUE,
    DIFF,
    FULL,
    OPEN,
    DeleteArtifact,
    Quit,
    RefreshIntegration,
    Reload,
    SpawnWorker,
)
from associate.data import EntryKind, FileEntry, Plan, SessionEntry, Team
from associate.data.filebrowser import read_file_content
from associate.data.git import parse_porcelain
from associate.data.teams import TeamConfigFile
from associate.events import (
    ActionCompleted,
    ChangeEvent,
    ChangeKind,
    EventBus,
    FileTree,
    GitStatus,
    KeyPressed,
    PlanFile,
    PollCompleted,
    ReloadCompleted,
    SessionIndex,
    TaskFile,
    TeamConfig,
    TeamInbox,
    Tick,
    TodoFile,
    Transcript,
    WatcherStatus,
)
from associate.integrations import NormalizedIssue, build_prompt
from associate.paths import ClaudeLayout
from associate.processes import ProcessSupervisor
from associate.reload import TranscriptLoad
from associate.state import DashboardState, Focus, TabKind


def make_state(tmp_path: Path, **kwargs) -> DashboardState:
    layout = ClaudeLayout.for_project(tmp_path / ".claude", tmp_path / "proj")
    layout.projects_dir.mkdir(parents=True)
    supervisor = ProcessSupervisor(EventBus(), tmp_path, "claude")
    return DashboardState(layout, supervisor, **kwargs)


def entry(session_id: str, stamp: float) -> SessionEntry:
    return SessionEntry(session_id=session_id, modified=datetime.fromtimestamp(stamp, timezone.utc))


def user_line(text: str) -> str:
    return json.dumps({"type": "user", "message": {"content": text}}) + "\n"


def press(state: DashboardState, *keys: str):
    result = None
    for key in keys:
        result = state.apply(KeyPressed(key))
    return result


def install_sessions(state: DashboardState, *ids: str) -> None:
    entries = [entry(session_id, 1_000 - index) for index, session_id in enumerate(ids)]
    state.apply(ReloadCompleted(SessionIndex(), FULL, payload=entries))


def open_transcript(state: DashboardState, session_id: str, *lines: str) -> Path:
    path = state.layout.transcript_path(session_id)
    path.write_text("".join(user_line(line) for line in lines), encoding="utf-8")
    result = state.reader.open(session_id, path)
    state.apply(ReloadCompleted(Transcript(session_id), OPEN, payload=TranscriptLoad(result, [])))
    return path


def test_change_events_only_reload_their_own_domain(tmp_path: Path) -> None:
    state = make_state(tmp_path)

    assert state.apply(ChangeEvent(SessionIndex(), ChangeKind.MODIFIED)) == Reload(SessionIndex())
    assert state.apply(ChangeEvent(TodoFile("t1"), ChangeKind.CREATED)) == Reload(TodoFile("t1"))
    assert state.apply(ChangeEvent(PlanFile("p1"), ChangeKind.REMOVED)) == Reload(PlanFile("p1"))
    assert state.apply(ChangeEvent(TeamConfig("alpha"), ChangeKind.MODIFIED)) == Reload(TeamConfig("alpha"))
    assert state.apply(ChangeEvent(GitStatus(), ChangeKind.MODIFIED)) == Reload(GitStatus())
    # No team is selected, so task and inbox changes are not read.
    assert state.apply(ChangeEvent(TaskFile("alpha", "1"), ChangeKind.MODIFIED)) is None
    assert state.apply(ChangeEvent(TeamInbox("alpha", "bob"), ChangeKind.MODIFIED)) is None


def test_task_changes_reload_only_the_selected_team(tmp_path: Path) -> None:
    state = make_state(tmp_path)
    teams = [Team("alpha", TeamConfigFile()), Team("beta", TeamConfigFile(name="Beta"))]
    state.apply(ReloadCompleted(TeamConfig(""), FULL, payload=teams))

    action = state.apply(ChangeEvent(TaskFile("alpha", "1"), ChangeKind.MODIFIED))

    assert action == Reload(TaskFile("alpha", "1"), target=teams[0])
    assert state.apply(ChangeEvent(TeamInbox("beta", "bob"), ChangeKind.MODIFIED)) is None


def test_active_and_unloaded_sessions(tmp_path: Path) -> None:
    state = make_state(tmp_path)
    install_sessions(state, "s1", "s2")
    path = open_transcript(state, "s1", "hi")

    assert state.loaded_session == "s1"
    assert [item.text for item in state.transcript] == ["hi"]

    assert state.apply(ChangeEvent(Transcript("s1"), ChangeKind.MODIFIED)) == Reload(Transcript("s1"), CONTINUE)
    assert state.apply(ChangeEvent(Transcript("s2"), ChangeKind.MODIFIED)) is None
    assert "s2" in state.active_sessions
    assert state.apply(ChangeEvent(Transcript("s3"), ChangeKind.CREATED)) is None
    assert [session.session_id for session in state.sessions] == ["s3", "s1", "s2"]

    with path.open("a", encoding="utf-8") as fh:
        fh.write(user_line("more"))
    appended = state.reader.continue_from(state.reader.cursor("s1"))
    state.apply(ReloadCompleted(Transcript("s1"), CONTINUE, payload=TranscriptLoad(appended)))
    assert [item.text for item in state.transcript] == ["hi", "more"]

    # The same read again no longer matches the cursor and is dropped.
    state.apply(ReloadCompleted(Transcript("s1"), CONTINUE, payload=TranscriptLoad(appended)))
    assert len(state.transcript) == 2

    # The placeholder survives an index reload until its session shows up.
    install_sessions(state, "s1", "s2")
    assert [session.session_id for session in state.sessions] == ["s3", "s1", "s2"]


def test_removed_transcript_clears_loaded_session(tmp_path: Path) -> None:
    state = make_state(tmp_path)
    install_sessions(state, "s1")
    open_transcript(state, "s1", "hi")

    assert state.apply(ChangeEvent(Transcript("s1"), ChangeKind.REMOVED)) is None

    assert state.loaded_session is None
    assert state.transcript == []
    assert "s1" not in state.reader
    assert state.sessions == []
    assert state.apply(Tick(1.0)) is None


def test_open_result_for_unselected_session_is_ignored(tmp_path: Path) -> None:
    state = make_state(tmp_path)
    install_sessions(state, "s1", "s2")

    open_transcript(state, "s2", "late")

    assert state.loaded_session is None
    assert "s2" not in state.reader


def test_tick_reconciles_selection(tmp_path: Path) -> None:
    state = make_state(tmp_path)
    install_sessions(state, "s1", "s2")

    assert state.apply(Tick(1.0)) == Reload(Transcript("s1"), OPEN)
    assert state.apply(Tick(2.0)) is None

    open_transcript(state, "s1", "hi")
    state.apply(ReloadCompleted(GitStatus(), FULL, payload=parse_porcelain(" M app.py\n")))
    action = state.apply(Tick(3.0))
    assert action.domain == GitStatus() and action.mode == DIFF
    assert action.target.path == "app.py"
    assert state.apply(Tick(4.0)) is None


def test_tick_requests_selected_team_detail(tmp_path: Path) -> None:
    state = make_state(tmp_path)
    team = Team("alpha", TeamConfigFile())
    state.apply(ReloadCompleted(TeamConfig(""), FULL, payload=[team]))

    assert state.apply(Tick(1.0)) == Reload(TaskFile("alpha", ""), target=team)
    assert state.apply(Tick(2.0)) is None


def test_follow_mode_tracks_newest_session(tmp_path: Path) -> None:
    state = make_state(tmp_path)
    install_sessions(state, "s1", "s2")
    open_transcript(state, "s1", "hi")

    state.apply(ChangeEvent(Transcript("s9"), ChangeKind.CREATED))
    assert state.apply(Tick(1.0)) == Reload(Transcript("s9"), OPEN)

    press(state, "j")
    assert state.follow is False
    assert state.selected_session().session_id == "s1"
    press(state, "f")
    assert state.follow is True
    assert state.status.message == "Follow mode on"


def test_navigation_keys_and_tabs(tmp_path: Path) -> None:
    state = make_state(tmp_path)
    install_sessions(state, "s1", "s2")

    assert [tab.kind for tab in state.tabs] == [
        TabKind.SESSIONS,
        TabKind.TEAMS,
        TabKind.TODOS,
        TabKind.GIT,
        TabKind.PLANS,
    ]
    assert press(state, "down") is None
    assert state.view().list_index == 1
    assert press(state, "j") is None
    assert state.view().list_index == 1

    assert press(state, "enter") == Reload(Transcript("s2"), OPEN)
    assert state.view().focus is Focus.DETAIL
    press(state, "h")
    assert state.view().focus is Focus.LIST
    press(state, "g")
    assert state.view().list_index == 0

    press(state, "tab")
    assert state.tab.kind is TabKind.TEAMS
    press(state, "backtab", "backtab")
    assert state.tab.kind is TabKind.PLANS
    press(state, "3")
    assert state.tab.kind is TabKind.TODOS
    press(state, "9")
    assert state.tab.kind is TabKind.TODOS
    assert press(state, "r") == Reload(TodoFile(""))


def test_help_overlay_swallows_one_key(tmp_path: Path) -> None:
    state = make_state(tmp_path)

    assert press(state, "?") is None
    assert state.show_help
    assert press(state, "tab") is None
    assert not state.show_help
    assert state.active_tab == 0
    assert press(state, "q") == Quit()


def test_delete_requires_confirmation(tmp_path: Path) -> None:
    state = make_state(tmp_path)
    path = tmp_path / "migrate.md"
    state.apply(ReloadCompleted(PlanFile(""), FULL, payload=[Plan("migrate.md", path, "Migrate", 0.0)]))
    state.select_tab(TabKind.PLANS)

    assert press(state, "d") is None
    assert state.status.message == "Delete plan migrate.md? (y/n)"
    assert state.status.expires_at is None
    assert press(state, "n") is None
    assert state.confirm_delete is None
    assert state.status.message == "Delete cancelled"

    expected = DeleteArtifact(path, "plan migrate.md", refresh=PlanFile("migrate"))
    assert press(state, "d", "y") == expected

    assert state.apply(ActionCompleted(expected)) == Reload(PlanFile("migrate"))
    assert state.status.message == "Deleted plan migrate.md"
    assert state.apply(ActionCompleted(expected, error="permission denied")) is None
    assert state.status.error


def test_delete_is_ignored_in_detail_focus(tmp_path: Path) -> None:
    state = make_state(tmp_path)
    install_sessions(state, "s1")
    press(state, "l")

    assert press(state, "d") is None
    assert state.confirm_delete is None


def test_integration_polls_and_spawn(tmp_path: Path) -> None:
    state = make_state(tmp_path, integrations=[("jira:WID", "Jira WID")])
    issue = NormalizedIssue(source="Jira", key="WID-9", title="Fix login")

    state.apply(PollCompleted("jira:WID", issues=(issue,)))
    assert state.select_tab(TabKind.INTEGRATION, "jira:WID")
    assert state.integrations["jira:WID"].loaded

    assert press(state, "p") == SpawnWorker(build_prompt(issue), "Jira WID-9", "Fix login")
    assert press(state, "r") == RefreshIntegration("jira:WID")
    assert state.status.message == "Refreshing Jira WID..."

    state.apply(PollCompleted("jira:WID", error="acli: not logged in"))
    assert state.integrations["jira:WID"].issues == [issue]
    assert state.status.message == "Jira WID: acli: not logged in"
    assert state.status.error

    state.apply(PollCompleted("jira:WID", issues=(), manual=True))
    assert state.status.message == "Jira WID: 0 items"
    assert state.integrations["jira:WID"].error is None


def test_spawn_failure_reaches_status_line(tmp_path: Path) -> None:
    state = make_state(tmp_path)

    state.apply(ActionCompleted(SpawnWorker("prompt", "Jira WID-9"), error="claude not found"))

    assert state.status.message == "Failed to spawn worker: claude not found"
    assert state.status.error
    assert state.tab.kind is TabKind.SESSIONS


def test_reload_error_sets_status(tmp_path: Path) -> None:
    state = make_state(tmp_path)

    state.apply(ReloadCompleted(TodoFile(""), FULL, error="bad json"))

    assert state.status.message == "Todos: bad json"
    assert state.status.error


def test_status_expires_unless_sticky(tmp_path: Path) -> None:
    state = make_state(tmp_path)

    state.apply(Tick(10.0))
    state.set_status("saved")
    state.apply(Tick(14.0))
    assert state.status.message == "saved"
    state.apply(Tick(15.0))
    assert state.status is None

    state.apply(WatcherStatus(True, "too many watches"))
    state.apply(Tick(100.0))
    assert state.watcher_degraded
    assert state.status.message == "Watcher degraded: too many watches"

    state.apply(WatcherStatus(False))
    assert not state.watcher_degraded
    assert state.status.message == "Watcher recovered"


def test_unknown_event_is_rejected(tmp_path: Path) -> None:
    state = make_state(tmp_path)

    with pytest.raises(TypeError):
        state.apply(object())


def test_removed_transcript_moves_selection_to_a_remaining_session(tmp_path: Path) -> None:
    state = make_state(tmp_path)
    install_sessions(state, "s1", "s2")
    path = open_transcript(state, "s1", "hi")
    path.unlink()

    assert state.apply(ChangeEvent(Transcript("s1"), ChangeKind.REMOVED)) is None

    assert [session.session_id for session in state.sessions] == ["s2"]
    assert state.selected_session().session_id == "s2"
    assert state.apply(Tick(1.0)) == Reload(Transcript("s2"), OPEN)


def test_removing_an_unselected_session_keeps_the_selection(tmp_path: Path) -> None:
    state = make_state(tmp_path)
    install_sessions(state, "s1", "s2", "s3")
    state.follow = False
    press(state, "j", "j")

    state.apply(ChangeEvent(Transcript("s2"), ChangeKind.REMOVED))

    assert [session.session_id for session in state.sessions] == ["s1", "s3"]
    assert state.selected_session().session_id == "s3"


def test_failed_open_waits_for_a_change_or_reselect(tmp_path: Path) -> None:
    state = make_state(tmp_path)
    install_sessions(state, "s1")

    assert state.apply(Tick(1.0)) == Reload(Transcript("s1"), OPEN)
    state.apply(ReloadCompleted(Transcript("s1"), OPEN, error="s1.jsonl not found"))
    assert state.status.message == "Transcript: s1.jsonl not found"
    assert state.apply(Tick(2.0)) is None
    assert state.apply(Tick(3.0)) is None

    assert state.apply(ChangeEvent(Transcript("s1"), ChangeKind.CREATED)) is None
    assert state.apply(Tick(4.0)) == Reload(Transcript("s1"), OPEN)

    state.apply(ReloadCompleted(Transcript("s1"), OPEN, error="s1.jsonl not found"))
    assert state.apply(Tick(5.0)) is None
    assert press(state, "enter") == Reload(Transcript("s1"), OPEN)


def test_change_during_open_is_read_after_the_open(tmp_path: Path) -> None:
    state = make_state(tmp_path)
    install_sessions(state, "s1")
    assert state.apply(Tick(1.0)) == Reload(Transcript("s1"), OPEN)

    path = state.layout.transcript_path("s1")
    path.write_text(user_line("a"), encoding="utf-8")
    result = state.reader.open("s1", path)
    with path.open("a", encoding="utf-8") as handle:
        handle.write(user_line("b"))

    assert state.apply(ChangeEvent(Transcript("s1"), ChangeKind.MODIFIED)) == Reload(Transcript("s1"), CONTINUE)
    assert "s1" not in state.active_sessions

    state.apply(ReloadCompleted(Transcript("s1"), OPEN, payload=TranscriptLoad(result, [])))
    more = state.reader.continue_from(state.reader.cursor("s1"))
    state.apply(ReloadCompleted(Transcript("s1"), CONTINUE, payload=TranscriptLoad(more)))

    assert [item.text for item in state.transcript] == ["a", "b"]


@pytest.mark.parametrize("key", ["²", "٣", "0"])
def test_non_tab_digits_are_ignored(tmp_path: Path, key: str) -> None:
    state = make_state(tmp_path)
    press(state, "3")

    assert press(state, key) is None
    assert state.tab.kind is TabKind.TODOS


def test_git_tab_browses_project_files(tmp_path: Path) -> None:
    state = make_state(tmp_path)
    root = tmp_path / "proj"
    (root / "src").mkdir(parents=True)
    (root / "README.md").write_text("# Title\nbody\n", encoding="utf-8")
    src = FileEntry("src", root / "src", EntryKind.DIRECTORY, 0, 0)
    readme = FileEntry("README.md", root / "README.md", EntryKind.FILE, 13, 0)
    app = FileEntry("app.py", root / "src" / "app.py", EntryKind.FILE, 3, 1)
    state.select_tab(TabKind.GIT)

    assert press(state, "b") == Reload(FileTree(), FULL, target=frozenset())
    assert state.browsing
    state.apply(ReloadCompleted(FileTree(), FULL, payload=[src, readme]))

    assert press(state, "enter") == Reload(FileTree(), FULL, target=frozenset({root / "src"}))
    state.apply(ReloadCompleted(FileTree(), FULL, payload=[src, app, readme]))
    press(state, "j")
    assert state.selected_file_entry() == app
    assert press(state, "backspace") is None
    assert state.selected_file_entry() == src
    assert press(state, "backspace") == Reload(FileTree(), FULL, target=frozenset())
    state.apply(ReloadCompleted(FileTree(), FULL, payload=[src, readme]))

    press(state, "j")
    assert press(state, "enter") == Reload(FileTree(), OPEN, target=root / "README.md")
    assert state.view().focus is Focus.DETAIL
    state.apply(ReloadCompleted(FileTree(), OPEN, payload=read_file_content(root / "README.md")))
    assert [line.text for line in state.file_content.lines] == ["# Title", "body"]
    assert state._lengths(state.tab) == (2, 2)
    assert press(state, "r") == Reload(FileTree(), FULL, target=frozenset())

    assert press(state, "b") is None
    assert not state.browsing
    assert state.view().focus is Focus.LIST


def test_shrunken_file_tree_resets_selection(tmp_path: Path) -> None:
    state = make_state(tmp_path)
    entries = [FileEntry(name, tmp_path / name, EntryKind.FILE, 0, 0) for name in ("a", "b", "c")]
    state.select_tab(TabKind.GIT)
    press(state, "b")
    state.apply(ReloadCompleted(FileTree(), FULL, payload=entries))
    press(state, "G")

    state.apply(ReloadCompleted(FileTree(), FULL, payload=entries[:1]))

    assert state.selected_file_entry() == entries[0]
    state.apply(ReloadCompleted(FileTree(), OPEN, error="a not found"))
    assert state.status.message == "Files: a not found"
