from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from associate.commands import (
    CommandNotFoundError,
    CommandResult,
    CommandRunner,
    CommandTimeoutError,
    FakeCommandRunner,
    is_available,
    sanitize_environment,
)


def write_script(path: Path, body: str) -> Path:
    path.write_text(f"#!/bin/sh\n{body}\n", encoding="utf-8")
    path.chmod(0o755)
    return path


def test_command_runner_executes_script(tmp_path: Path) -> None:
    script = write_script(tmp_path / "gh", "echo 'gh version 2.40.0'")

    runner = CommandRunner("gh", script)
    result = asyncio.run(runner.run("--version"))

    assert result.ok
    assert "gh version 2.40.0" in result.stdout
    assert result.args == (str(script), "--version")


def test_command_runner_passes_arguments_and_cwd(tmp_path: Path) -> None:
    script = write_script(tmp_path / "git", 'echo "$@"; pwd')
    workdir = tmp_path / "repo"
    workdir.mkdir()

    runner = CommandRunner("git", script, cwd=workdir)
    result = asyncio.run(runner.run("status", "--porcelain"))

    lines = result.stdout.splitlines()
    assert lines[0] == "status --porcelain"
    assert Path(lines[1]).resolve() == workdir.resolve()


def test_command_runner_reports_failure(tmp_path: Path) -> None:
    script = write_script(tmp_path / "acli", "echo 'not logged in' >&2; exit 3")

    result = asyncio.run(CommandRunner("acli", script).run("jira"))

    assert not result.ok
    assert result.returncode == 3
    assert "not logged in" in result.stderr


def test_command_runner_times_out(tmp_path: Path) -> None:
    script = write_script(tmp_path / "slow", "sleep 5")

    with pytest.raises(CommandTimeoutError):
        asyncio.run(CommandRunner("slow", script).run(timeout=0.2))


def test_command_not_found(tmp_path: Path) -> None:
    with pytest.raises(CommandNotFoundError):
        CommandRunner("gh", tmp_path / "missing")


def test_fake_command_runner_records_invocations() -> None:
    fake = FakeCommandRunner(
        [
            CommandResult(args=("pr", "list"), returncode=0, stdout="[]", stderr=""),
        ]
    )

    first = asyncio.run(fake.run("pr", "list"))
    second = asyncio.run(fake.run("issue", "list"))

    assert first.stdout == "[]"
    assert second.ok and second.stdout == ""
    assert fake.invocations == [("pr", "list"), ("issue", "list")]


def test_sanitize_environment_for_child_tools(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PYTHONPATH", "value")
    monkeypatch.setenv("CLAUDECODE", "1")
    monkeypatch.setenv("HOME", "/home/me")
    env = sanitize_environment({"EXTRA": "1", "NO_COLOR": "0"})
    assert "PYTHONPATH" not in env
    assert "CLAUDECODE" not in env
    assert env["HOME"] == "/home/me"
    assert env["GIT_TERMINAL_PROMPT"] == "0"
    assert env["EXTRA"] == "1"
    assert env["NO_COLOR"] == "0"


def test_is_available_uses_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    write_script(tmp_path / "acli", "exit 0")
    monkeypatch.setenv("PATH", str(tmp_path))

    assert is_available("acli")
    assert not is_available("gh")
