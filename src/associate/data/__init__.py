"""Loaders for the agent tool's on-disk state and the project's git status."""

from .files import LoadError
from .filebrowser import ContentKind, EntryKind, FileContent, FileEntry, build_tree, read_file_content
from .git import GitClient, GitFileEntry, GitSnapshot
from .inboxes import InboxMessage, load_inbox
from .plans import LineKind, Plan, load_plans
from .sessions import SessionEntry, load_sessions
from .subagents import SubagentInfo, find_subagents
from .tasks import Task, TaskStatus, load_tasks
from .teams import AgentStatus, Team, TeamDetail, derive_agent_status, load_team_detail, load_teams
from .todos import TodoItem, TodoList, load_todos

__all__ = [
    "AgentStatus",
    "ContentKind",
    "EntryKind",
    "FileContent",
    "FileEntry",
    "GitClient",
    "GitFileEntry",
    "GitSnapshot",
    "InboxMessage",
    "LineKind",
    "LoadError",
    "Plan",
    "SessionEntry",
    "SubagentInfo",
    "Task",
    "TaskStatus",
    "Team",
    "TeamDetail",
    "TodoItem",
    "TodoList",
    "build_tree",
    "derive_agent_status",
    "find_subagents",
    "load_inbox",
    "load_plans",
    "load_sessions",
    "load_tasks",
    "load_team_detail",
    "load_teams",
    "load_todos",
    "read_file_content",
]
