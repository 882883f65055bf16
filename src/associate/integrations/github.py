"""GitHub pull requests and issues through the ``gh`` CLI."""

from __future__ import annotations

import logging
from typing import Any

from ..commands import CommandRunner
from .base import FetchError, NormalizedIssue, run_json

logger = logging.getLogger(__name__)

PR_FIELDS = (
    "number,title,state,author,url,createdAt,updatedAt,headRefName,baseRefName,"
    "isDraft,additions,deletions,reviewDecision,assignees,labels"
)
ISSUE_FIELDS = "number,title,state,url,createdAt,updatedAt,author,labels,assignees,body,milestone"
LIST_LIMIT = "100"


def parse_repo_url(url: str) -> str | None:
    """Return ``owner/repo`` for a GitHub SSH or HTTPS remote URL."""

    url = url.strip()
    for prefix in ("git@github.com:", "https://github.com/", "ssh://git@github.com/"):
        if url.startswith(prefix):
            return url[len(prefix):].removesuffix(".git").rstrip("/") or None
    return None


def _login(value: Any) -> str:
    if isinstance(value, dict):
        login = value.get("login")
        return login if isinstance(login, str) else ""
    return ""


def _names(values: Any, key: str) -> tuple[str, ...]:
    if not isinstance(values, list):
        return ()
    return tuple(item[key] for item in values if isinstance(item, dict) and isinstance(item.get(key), str))


def normalize_pr(raw: dict[str, Any]) -> NormalizedIssue:
    extra = {
        "Branch": str(raw.get("headRefName") or ""),
        "Base": str(raw.get("baseRefName") or ""),
        "Changes": f"+{raw.get('additions', 0)} -{raw.get('deletions', 0)}",
    }
    if raw.get("reviewDecision"):
        extra["Review Status"] = str(raw["reviewDecision"])
    if raw.get("isDraft"):
        extra["Draft"] = "yes"
    number = raw.get("number")
    return NormalizedIssue(
        source="GitHub PR",
        key=f"#{number}",
        title=str(raw.get("title") or ""),
        state=raw.get("state"),
        url=raw.get("url"),
        body=(
            f"GitHub PR #{number} - {raw.get('title', '')}\n"
            f"Branch: {extra['Branch']} -> {extra['Base']}\n"
            f"Additions: {raw.get('additions', 0)}, Deletions: {raw.get('deletions', 0)}"
        ),
        labels=_names(raw.get("labels"), "name"),
        assignees=_names(raw.get("assignees"), "login"),
        author=_login(raw.get("author")),
        updated_at=raw.get("updatedAt"),
        extra=extra,
    )


def normalize_issue(raw: dict[str, Any]) -> NormalizedIssue:
    extra = {"State": str(raw.get("state") or "")}
    milestone = raw.get("milestone")
    if isinstance(milestone, dict) and milestone.get("title"):
        extra["Milestone"] = str(milestone["title"])
    return NormalizedIssue(
        source="GitHub Issue",
        key=f"#{raw.get('number')}",
        title=str(raw.get("title") or ""),
        state=raw.get("state"),
        url=raw.get("url"),
        body=raw.get("body"),
        labels=_names(raw.get("labels"), "name"),
        assignees=_names(raw.get("assignees"), "login"),
        author=_login(raw.get("author")),
        updated_at=raw.get("updatedAt"),
        extra=extra,
    )


def _sorted(issues: list[NormalizedIssue]) -> list[NormalizedIssue]:
    return sorted(issues, key=lambda issue: issue.updated_at.timestamp() if issue.updated_at else 0.0, reverse=True)


class GitHubPullRequests:
    """Open pull requests of one repository."""

    title = "PRs"

    def __init__(self, repo: str, runner: CommandRunner | None = None) -> None:
        self.repo = repo
        self.integration_id = f"github-prs:{repo}"
        self._runner = runner

    async def fetch(self) -> list[NormalizedIssue]:
        runner = self._runner or CommandRunner("gh")
        raw = await run_json(
            runner,
            "pr", "list", "--repo", self.repo, "--state", "open",
            "--limit", LIST_LIMIT, "--json", PR_FIELDS,
        )
        if not isinstance(raw, list):
            raise FetchError("gh pr list returned no list")
        return _sorted([normalize_pr(item) for item in raw if isinstance(item, dict)])


class GitHubIssues:
    """Open issues of one repository."""

    title = "Issues"

    def __init__(self, repo: str, runner: CommandRunner | None = None, state: str = "open") -> None:
        self.repo = repo
        self.state = state
        self.integration_id = f"github-issues:{repo}"
        self._runner = runner

    async def fetch(self) -> list[NormalizedIssue]:
        runner = self._runner or CommandRunner("gh")
        raw = await run_json(
            runner,
            "issue", "list", "--repo", self.repo, "--state", self.state,
            "--limit", LIST_LIMIT, "--json", ISSUE_FIELDS,
        )
        if not isinstance(raw, list):
            raise FetchError("gh issue list returned no list")
        return _sorted([normalize_issue(item) for item in raw if isinstance(item, dict)])


__all__ = [
    "GitHubIssues",
    "GitHubPullRequests",
    "normalize_issue",
    "normalize_pr",
    "parse_repo_url",
]
