"""Team configs plus the per-team detail shown when a team is selected."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .files import LoadError, read_json
from .inboxes import InboxMessage, load_inbox
from .tasks import Task, TaskStatus, load_tasks

logger = logging.getLogger(__name__)


class TeamMember(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str
    agent_id: str | None = Field(default=None, alias="agentId")
    agent_type: str | None = Field(default=None, alias="agentType")
    model: str | None = None
    color: str | None = None


class TeamConfigFile(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str = ""
    description: str = ""
    members: list[TeamMember] = Field(default_factory=list)
    lead_agent_id: str | None = Field(default=None, alias="leadAgentId")
    lead_session_id: str | None = Field(default=None, alias="leadSessionId")

    @field_validator("name", "description", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("members", mode="before")
    @classmethod
    def _drop_bad_members(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, dict) and isinstance(item.get("name"), str)]

    def is_lead(self, member: TeamMember) -> bool:
        if self.lead_agent_id is not None and member.agent_id == self.lead_agent_id:
            return True
        return (member.agent_type or "").lower() in {"team-lead", "lead"}

    def lead(self) -> TeamMember | None:
        for member in self.members:
            if self.is_lead(member):
                return member
        return self.members[0] if self.members else None


@dataclass(slots=True)
class Team:
    dir_name: str
    config: TeamConfigFile

    def display_name(self) -> str:
        return self.config.name or self.dir_name


class AgentStatus(str, Enum):
    STARTING = "starting"
    WORKING = "working"
    IDLE = "idle"
    SHUT_DOWN = "shut down"

    @property
    def icon(self) -> str:
        return {
            AgentStatus.STARTING: "[~]",
            AgentStatus.WORKING: "[>]",
            AgentStatus.IDLE: "[z]",
            AgentStatus.SHUT_DOWN: "[x]",
        }[self]


def derive_agent_status(member: str, lead_inbox: list[InboxMessage], tasks: list[Task]) -> AgentStatus:
    """Infer what a member is doing from the lead's inbox and the task list.

    ``lead_inbox`` is ordered most recent first.
    """

    latest = next((msg for msg in lead_inbox if msg.sender == member), None)
    if latest is not None:
        if latest.message_type == "shutdown_approved":
            return AgentStatus.SHUT_DOWN
        if latest.message_type == "idle_notification":
            return AgentStatus.IDLE
    if any(task.owner == member and task.status is TaskStatus.IN_PROGRESS for task in tasks):
        return AgentStatus.WORKING
    if latest is None:
        return AgentStatus.STARTING
    return AgentStatus.WORKING


@dataclass(slots=True)
class TeamDetail:
    team_id: str
    tasks: list[Task] = field(default_factory=list)
    inboxes: dict[str, list[InboxMessage]] = field(default_factory=dict)
    statuses: dict[str, AgentStatus] = field(default_factory=dict)


def load_teams(claude_home: Path) -> list[Team]:
    """Load every ``teams/<dir>/config.json``, sorted by display name."""

    teams_dir = Path(claude_home) / "teams"
    if not teams_dir.is_dir():
        return []

    teams = []
    for config_path in teams_dir.glob("*/config.json"):
        try:
            config = TeamConfigFile.model_validate(read_json(config_path))
        except FileNotFoundError:
            continue
        except ValidationError as exc:
            raise LoadError(f"invalid team config {config_path.parent.name}: {exc.error_count()} errors") from exc
        teams.append(Team(dir_name=config_path.parent.name, config=config))
    teams.sort(key=lambda team: team.display_name().lower())
    return teams


def load_team_detail(claude_home: Path, team: Team) -> TeamDetail:
    """Load tasks and member inboxes of one team and derive member statuses."""

    tasks = load_tasks(claude_home, team.dir_name)
    inboxes: dict[str, list[InboxMessage]] = {}
    for member in team.config.members:
        try:
            inboxes[member.name] = load_inbox(claude_home, team.dir_name, member.name)
        except LoadError as exc:
            logger.warning("Skipping inbox", extra={"team": team.dir_name, "member": member.name, "error": str(exc)})
            inboxes[member.name] = []

    lead = team.config.lead()
    lead_inbox = inboxes.get(lead.name, []) if lead is not None else []
    statuses = {
        member.name: derive_agent_status(member.name, lead_inbox, tasks) for member in team.config.members
    }
    return TeamDetail(team_id=team.dir_name, tasks=tasks, inboxes=inboxes, statuses=statuses)


__all__ = [
    "AgentStatus",
    "Team",
    "TeamConfigFile",
    "TeamDetail",
    "TeamMember",
    "derive_agent_status",
    "load_team_detail",
    "load_teams",
]
