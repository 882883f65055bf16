"""Headless worker processes spawned by the dashboard."""

from .models import (
    Completed,
    Failed,
    Killed,
    ProgressItem,
    Running,
    SessionCaptured,
    Starting,
    TextSnippet,
    ToolCall,
    WorkerState,
    describe_state,
)
from .stream import ParsedLine, parse_stream_line
from .supervisor import ProcessSpawnError, ProcessSupervisor, WorkerProcess, worker_command

__all__ = [
    "Completed",
    "Failed",
    "Killed",
    "ParsedLine",
    "ProcessSpawnError",
    "ProcessSupervisor",
    "ProgressItem",
    "Running",
    "SessionCaptured",
    "Starting",
    "TextSnippet",
    "ToolCall",
    "WorkerProcess",
    "WorkerState",
    "describe_state",
    "parse_stream_line",
    "worker_command",
]
