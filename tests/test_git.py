from __future__ import annotations

import asyncio
from pathlib import Path

from associate.commands import CommandResult, FakeCommandRunner
from associate.data.git import (
    DiffKind,
    GitClient,
    GitFileEntry,
    Section,
    parse_diff,
    parse_porcelain,
    untracked_preview,
)

PORCELAIN = """\
M  staged.py
 M unstaged.py
MM both.py
R  old.py -> new.py
?? notes.txt
A  "with space.txt"
!! ignored.log
"""


def ok(stdout: str) -> CommandResult:
    return CommandResult(args=("git",), returncode=0, stdout=stdout, stderr="")


def test_parse_porcelain_sections() -> None:
    snapshot = parse_porcelain(PORCELAIN)

    assert [(entry.path, entry.status) for entry in snapshot.staged] == [
        ("staged.py", "M"),
        ("both.py", "M"),
        ("new.py", "R"),
        ("with space.txt", "A"),
    ]
    assert [entry.path for entry in snapshot.unstaged] == ["unstaged.py", "both.py"]
    assert snapshot.untracked == [GitFileEntry("notes.txt", Section.UNTRACKED, "?")]
    assert len(snapshot.files()) == 7
    assert parse_porcelain("").is_empty()


def test_parse_diff_kinds() -> None:
    diff = "diff --git a/x b/x\nindex 1..2\n--- a/x\n+++ b/x\n@@ -1 +1 @@\n-old\n+new\n same"

    kinds = [line.kind for line in parse_diff(diff)]

    assert kinds == [
        DiffKind.HEADER,
        DiffKind.HEADER,
        DiffKind.HEADER,
        DiffKind.HEADER,
        DiffKind.HUNK,
        DiffKind.REMOVE,
        DiffKind.ADD,
        DiffKind.CONTEXT,
    ]


def test_untracked_preview_rules(tmp_path: Path) -> None:
    (tmp_path / "small.txt").write_text("a\nb\n", encoding="utf-8")
    (tmp_path / "long.txt").write_text("".join(f"{n}\n" for n in range(500)), encoding="utf-8")
    (tmp_path / "blob.bin").write_bytes(b"\x89PNG\0\0data")
    (tmp_path / "huge.txt").write_bytes(b"x" * (1_048_576 + 1))

    small = untracked_preview(tmp_path, "small.txt")
    assert [line.text for line in small] == ["new file: small.txt", "+a", "+b"]

    long = untracked_preview(tmp_path, "long.txt")
    assert len(long) == 202
    assert long[-1].text == "... (truncated at 200 lines)"

    assert untracked_preview(tmp_path, "blob.bin")[0].text == "(binary file)"
    assert untracked_preview(tmp_path, "huge.txt")[0].text == "(file too large to display)"


def test_git_client_status_reads_branch(tmp_path: Path) -> None:
    runner = FakeCommandRunner([ok(" M app.py\n"), ok("feature/x\n")], name="git")
    client = GitClient(tmp_path, runner)

    snapshot = asyncio.run(client.status())

    assert snapshot.available
    assert snapshot.branch == "feature/x"
    assert [entry.path for entry in snapshot.unstaged] == ["app.py"]
    assert runner.invocations == [("status", "--porcelain"), ("rev-parse", "--abbrev-ref", "HEAD")]


def test_git_client_outside_repository(tmp_path: Path) -> None:
    failure = CommandResult(args=("git",), returncode=128, stdout="", stderr="fatal: not a git repository")
    client = GitClient(tmp_path, FakeCommandRunner([failure], name="git"))

    snapshot = asyncio.run(client.status())

    assert not snapshot.available
    assert snapshot.is_empty()


def test_git_client_diff_arguments(tmp_path: Path) -> None:
    runner = FakeCommandRunner([ok("+added\n"), ok("-removed\n")], name="git")
    client = GitClient(tmp_path, runner)

    staged = asyncio.run(client.diff(GitFileEntry("a.py", Section.STAGED, "M")))
    unstaged = asyncio.run(client.diff(GitFileEntry("b.py", Section.UNSTAGED, "M")))

    assert runner.invocations == [("diff", "--cached", "--", "a.py"), ("diff", "--", "b.py")]
    assert staged[0].kind is DiffKind.ADD
    assert unstaged[0].kind is DiffKind.REMOVE


def test_git_client_lists_ignored_paths(tmp_path: Path) -> None:
    runner = FakeCommandRunner([ok("build/\n.env\n")], name="git")
    client = GitClient(tmp_path, runner)

    ignored = asyncio.run(client.ignored())

    assert ignored == {tmp_path / "build", tmp_path / ".env"}
    assert runner.invocations == [("ls-files", "--others", "--ignored", "--exclude-standard", "--directory")]


def test_git_client_ignores_nothing_outside_repository(tmp_path: Path) -> None:
    failure = CommandResult(args=("git",), returncode=128, stdout="", stderr="fatal: not a git repository")
    client = GitClient(tmp_path, FakeCommandRunner([failure], name="git"))

    assert asyncio.run(client.ignored()) == set()
