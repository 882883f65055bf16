"""Remote issue-tracker integrations."""

from .base import FetchError, Fetcher, NormalizedIssue
from .discovery import detect_github_repo, discover_integrations, repo_has_issues
from .github import GitHubIssues, GitHubPullRequests
from .jira import JiraIssues
from .linear import LinearIssues
from .prompts import build_prompt, worker_label

__all__ = [
    "FetchError",
    "Fetcher",
    "GitHubIssues",
    "GitHubPullRequests",
    "JiraIssues",
    "LinearIssues",
    "NormalizedIssue",
    "build_prompt",
    "detect_github_repo",
    "discover_integrations",
    "repo_has_issues",
    "worker_label",
]
