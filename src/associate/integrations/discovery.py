"""Decide which tracker tabs exist from the project config and installed CLIs."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from ..commands import CommandRunner, CommandRunnerError, is_available
from ..project import ProjectConfig
from .base import Fetcher
from .github import GitHubIssues, GitHubPullRequests, parse_repo_url
from .jira import JiraIssues
from .linear import LinearIssues

logger = logging.getLogger(__name__)

PROBE_TIMEOUT = 10.0


async def detect_github_repo(cwd: Path, runner: CommandRunner | None = None) -> str | None:
    """Read ``owner/repo`` from the ``origin`` remote of ``cwd`` or its nearest enclosing repo."""

    directory = Path(cwd)
    candidates = [directory, *(parent for parent in directory.parents if (parent / ".git").exists())]
    for candidate in candidates[:2]:
        try:
            git = runner or CommandRunner("git")
            result = await git.run("remote", "get-url", "origin", timeout=PROBE_TIMEOUT, cwd=candidate)
        except CommandRunnerError:
            return None
        if result.ok:
            return parse_repo_url(result.stdout)
    return None


async def repo_has_issues(repo: str, runner: CommandRunner | None = None) -> bool:
    try:
        gh = runner or CommandRunner("gh")
        result = await gh.run(
            "repo", "view", repo, "--json", "hasIssuesEnabled", "--jq", ".hasIssuesEnabled",
            timeout=PROBE_TIMEOUT,
        )
    except CommandRunnerError:
        return False
    return result.ok and result.stdout.strip() == "true"


async def discover_integrations(
    config: ProjectConfig,
    cwd: Path,
    *,
    linear_api_key: str | None = None,
    available: Callable[[str], bool] = is_available,
    git_runner: CommandRunner | None = None,
    gh_runner: CommandRunner | None = None,
) -> list[Fetcher]:
    """Return the fetchers to poll, in tab order."""

    fetchers: list[Fetcher] = []

    if available("gh"):
        repo = config.github.repo or await detect_github_repo(cwd, git_runner)
        if repo:
            fetchers.append(GitHubPullRequests(repo, runner=gh_runner))
            issues_repo = config.github.issues_repo or repo
            if config.github.issues_enabled and await repo_has_issues(issues_repo, gh_runner):
                fetchers.append(GitHubIssues(issues_repo, runner=gh_runner))
        else:
            logger.info("No GitHub repository detected", extra={"cwd": str(cwd)})

    if config.jira is not None and available("acli"):
        fetchers.append(JiraIssues(config.jira.project, config.jira.jql))

    if config.linear is not None:
        api_key = linear_api_key or config.linear.api_key
        if api_key:
            fetchers.append(LinearIssues(api_key, config.linear.username, config.linear.team))
        else:
            logger.warning("Linear configured without an API key")

    logger.info("Integrations enabled", extra={"integrations": [f.integration_id for f in fetchers]})
    return fetchers


__all__ = ["detect_github_repo", "discover_integrations", "repo_has_issues"]
