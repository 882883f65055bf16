from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from associate.data import (
    AgentStatus,
    InboxMessage,
    LineKind,
    LoadError,
    Task,
    TaskStatus,
    derive_agent_status,
    find_subagents,
    load_inbox,
    load_plans,
    load_sessions,
    load_tasks,
    load_team_detail,
    load_teams,
    load_todos,
)


def write_json(path: Path, payload) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def touch(path: Path, stamp: float) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("{}\n", encoding="utf-8")
    os.utime(path, (stamp, stamp))
    return path


def test_load_sessions_merges_index_and_scan(tmp_path: Path) -> None:
    project = tmp_path / "-home-me-proj"
    touch(project / "old.jsonl", 1_000)
    touch(project / "indexed.jsonl", 2_000)
    touch(project / "fresh.jsonl", 3_000)
    touch(project / "side.jsonl", 2_500)
    write_json(
        project / "sessions-index.json",
        {
            "entries": [
                {"sessionId": "indexed", "summary": "Refactor  parser", "modified": "2026-03-01T10:00:00Z"},
                {"sessionId": "old", "firstPrompt": "hello", "modified": 500},
                {"sessionId": "gone", "summary": "deleted transcript"},
                {"sessionId": "side", "isSidechain": True},
                {"summary": "no id"},
            ]
        },
    )

    sessions = load_sessions(project)

    ids = [entry.session_id for entry in sessions]
    assert ids == ["indexed", "fresh", "old"]
    assert sessions[0].display_title() == "Refactor parser"
    assert sessions[2].display_title() == "hello"
    assert sessions[1].display_title() == "fresh"


def test_load_sessions_without_index_or_directory(tmp_path: Path) -> None:
    assert load_sessions(tmp_path / "missing") == []

    touch(tmp_path / "a.jsonl", 100)
    touch(tmp_path / "b.jsonl", 200)
    assert [entry.session_id for entry in load_sessions(tmp_path)] == ["b", "a"]


def test_load_sessions_reports_corrupt_index(tmp_path: Path) -> None:
    touch(tmp_path / "a.jsonl", 100)
    (tmp_path / "sessions-index.json").write_text("{oops", encoding="utf-8")

    with pytest.raises(LoadError):
        load_sessions(tmp_path)


def test_inbox_messages_are_newest_first_and_formatted(tmp_path: Path) -> None:
    write_json(
        tmp_path / "teams" / "alpha" / "inboxes" / "lead.json",
        [
            {"from": "bob", "text": "hi", "timestamp": "2026-01-01T10:00:00Z"},
            {
                "from": "bob",
                "text": json.dumps({"type": "idle_notification", "from": "bob"}),
                "timestamp": "2026-01-01T11:00:00Z",
            },
            {"from": "amy", "text": json.dumps({"type": "task_assignment", "taskId": "4", "subject": "Write docs"})},
        ],
    )

    messages = load_inbox(tmp_path, "alpha", "lead")

    assert [message.sender for message in messages] == ["bob", "bob", "amy"]
    assert messages[0].message_type == "idle_notification"
    assert messages[0].display_text() == "bob is idle"
    assert messages[1].display_text() == "hi"
    assert messages[2].display_text() == "[Task #4] Write docs"
    assert load_inbox(tmp_path, "alpha", "nobody") == []


def test_inbox_that_is_not_a_list_is_an_error(tmp_path: Path) -> None:
    write_json(tmp_path / "teams" / "alpha" / "inboxes" / "lead.json", {"messages": []})

    with pytest.raises(LoadError):
        load_inbox(tmp_path, "alpha", "lead")


def test_load_tasks_sorts_numerically_and_skips_bad_files(tmp_path: Path) -> None:
    tasks_dir = tmp_path / "tasks" / "alpha"
    write_json(tasks_dir / "10.json", {"id": 10, "subject": "ten", "status": "completed"})
    write_json(tasks_dir / "2.json", {"id": "2", "subject": "two", "status": "in_progress", "owner": "bob"})
    write_json(tasks_dir / "3.json", {"id": "3", "subject": "three", "status": "weird", "blockedBy": [2]})
    (tasks_dir / "broken.json").write_text("{", encoding="utf-8")

    tasks = load_tasks(tmp_path, "alpha")

    assert [task.id for task in tasks] == ["2", "3", "10"]
    assert tasks[1].status is TaskStatus.PENDING
    assert tasks[1].blocked_by == ["2"] and tasks[1].is_blocked
    assert load_tasks(tmp_path, "missing") == []


def test_derive_agent_status() -> None:
    idle = InboxMessage.from_raw({"from": "bob", "text": json.dumps({"type": "idle_notification"})})
    done = InboxMessage.from_raw({"from": "amy", "text": json.dumps({"type": "shutdown_approved"})})
    chat = InboxMessage.from_raw({"from": "cat", "text": "on it"})
    working = Task(id="1", status="in_progress", owner="dan")

    inbox = [idle, done, chat]
    assert derive_agent_status("bob", inbox, [working]) is AgentStatus.IDLE
    assert derive_agent_status("amy", inbox, []) is AgentStatus.SHUT_DOWN
    assert derive_agent_status("cat", inbox, []) is AgentStatus.WORKING
    assert derive_agent_status("dan", inbox, [working]) is AgentStatus.WORKING
    assert derive_agent_status("eve", inbox, []) is AgentStatus.STARTING


def test_load_teams_and_detail(tmp_path: Path) -> None:
    write_json(
        tmp_path / "teams" / "beta" / "config.json",
        {
            "name": "Beta Squad",
            "members": [
                {"name": "lead", "agentType": "team-lead"},
                {"name": "bob", "agentType": "general-purpose"},
                "garbage",
            ],
        },
    )
    write_json(tmp_path / "teams" / "alpha" / "config.json", {"members": []})
    write_json(
        tmp_path / "teams" / "beta" / "inboxes" / "lead.json",
        [{"from": "bob", "text": json.dumps({"type": "idle_notification"})}],
    )
    write_json(tmp_path / "tasks" / "beta" / "1.json", {"id": 1, "subject": "Ship", "owner": "bob"})

    teams = load_teams(tmp_path)

    assert [team.display_name() for team in teams] == ["alpha", "Beta Squad"]
    beta = teams[1]
    assert [member.name for member in beta.config.members] == ["lead", "bob"]
    assert beta.config.lead().name == "lead"

    detail = load_team_detail(tmp_path, beta)
    assert detail.team_id == "beta"
    assert [task.subject for task in detail.tasks] == ["Ship"]
    assert detail.statuses == {"lead": AgentStatus.STARTING, "bob": AgentStatus.IDLE}
    assert detail.inboxes["bob"] == []


def test_load_teams_reports_invalid_config(tmp_path: Path) -> None:
    write_json(tmp_path / "teams" / "alpha" / "config.json", {"name": ["not", "a", "string"]})

    with pytest.raises(LoadError):
        load_teams(tmp_path)


def test_load_todos_skips_empty_lists(tmp_path: Path) -> None:
    todos = tmp_path / "todos"
    write_json(todos / "empty.json", [])
    write_json(todos / "not-a-list.json", {"content": "x"})
    first = write_json(todos / "s1-agent-s1.json", [{"content": "Write tests", "status": "completed"}])
    second = write_json(
        todos / ("x" * 40 + ".json"),
        [{"content": "Fix bug", "status": "in_progress", "activeForm": "Fixing bug"}, {"status": "pending"}],
    )
    os.utime(first, (100, 100))
    os.utime(second, (200, 200))

    lists = load_todos(tmp_path)

    assert [todo.file_id for todo in lists] == ["x" * 40, "s1-agent-s1"]
    assert lists[0].display_name() == "x" * 27 + "..."
    assert [item.icon for item in lists[0].items] == ["[=]", "[ ]"]
    assert lists[0].items[1].display_text() == "(empty)"
    assert lists[0].items[0].active_form == "Fixing bug"


def test_load_plans_titles_and_lines(tmp_path: Path) -> None:
    plans = tmp_path / "plans"
    plans.mkdir()
    (plans / "migrate.md").write_text(
        "intro\n# Migrate storage\n```py\n# not a heading\n```\n## Step 1\n", encoding="utf-8"
    )
    (plans / "untitled.md").write_text("no heading here\n", encoding="utf-8")

    loaded = {plan.display_name(): plan for plan in load_plans(tmp_path)}

    migrate = loaded["migrate"]
    assert migrate.title == "Migrate storage"
    assert [line.kind for line in migrate.lines] == [
        LineKind.NORMAL,
        LineKind.HEADING,
        LineKind.CODE_FENCE,
        LineKind.CODE,
        LineKind.CODE_FENCE,
        LineKind.HEADING,
    ]
    assert loaded["untitled"].title == "untitled"


def test_find_subagents(tmp_path: Path) -> None:
    subagents = tmp_path / "s1" / "subagents"
    touch(subagents / "agent-b2.jsonl", 1)
    touch(subagents / "agent-a1.jsonl", 1)
    touch(subagents / "notes.txt", 1)

    assert [info.agent_id for info in find_subagents(tmp_path, "s1")] == ["a1", "b2"]
    assert find_subagents(tmp_path, "s2") == []
