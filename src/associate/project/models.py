"""Models for the per-project ``.assoc.yaml`` configuration."""

from __future__ import annotations

import re

from pydantic import BaseModel, Field, field_validator

_JIRA_KEY = re.compile(r"^[A-Z][A-Z0-9_]*$")


class GithubConfig(BaseModel):
    """GitHub repository used by the pull request and issue tabs."""

    repo: str | None = Field(default=None, description="owner/repo; overrides git remote detection.")
    issues_repo: str | None = Field(default=None, description="Repository for the issues tab.")
    issues_enabled: bool = Field(default=True, description="Show the GitHub issues tab.")


class JiraConfig(BaseModel):
    project: str | None = Field(default=None, description="Project key used to scope the default JQL.")
    jql: str | None = Field(default=None, description="Custom JQL replacing the default query.")

    @field_validator("project")
    @classmethod
    def _validate_project_key(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if not _JIRA_KEY.match(normalized):
            raise ValueError(f"invalid Jira project key {value!r}: must match [A-Z][A-Z0-9_]+")
        return normalized


class LinearConfig(BaseModel):
    api_key: str | None = Field(default=None, description="Linear API key; LINEAR_API_KEY wins when unset.")
    username: str | None = Field(default=None, description="Filter by assignee email instead of the viewer.")
    team: str | None = Field(default=None, description="Restrict issues to a team key.")


class DisplayConfig(BaseModel):
    tick_rate: int | None = Field(default=None, description="Redraw tick in milliseconds.")
    tail_lines: int | None = Field(default=None, description="Lines loaded from the end of a transcript.")

    @field_validator("tick_rate", "tail_lines")
    @classmethod
    def _validate_positive(cls, value: int | None) -> int | None:
        if value is not None and value < 1:
            raise ValueError("display values must be >= 1")
        return value


class TabsConfig(BaseModel):
    """Enable or disable the file-backed tabs (and their watched directories)."""

    sessions: bool = True
    teams: bool = True
    todos: bool = True
    git: bool = True
    plans: bool = True


class ProjectConfig(BaseModel):
    """Configuration describing which integrations a project uses."""

    github: GithubConfig = Field(default_factory=GithubConfig)
    jira: JiraConfig | None = None
    linear: LinearConfig | None = None
    display: DisplayConfig = Field(default_factory=DisplayConfig)
    tabs: TabsConfig = Field(default_factory=TabsConfig)

    def tick_rate(self, default: int) -> int:
        return self.display.tick_rate or default

    def tail_lines(self, default: int) -> int:
        return self.display.tail_lines or default


__all__ = [
    "DisplayConfig",
    "GithubConfig",
    "JiraConfig",
    "LinearConfig",
    "ProjectConfig",
    "TabsConfig",
]
