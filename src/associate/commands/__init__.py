"""External CLI execution utilities."""

from .runner import (
    CommandNotFoundError,
    CommandResult,
    CommandRunner,
    CommandRunnerError,
    CommandTimeoutError,
    FakeCommandRunner,
    resolve_executable,
)
from .utils import is_available, sanitize_environment

__all__ = [
    "CommandNotFoundError",
    "CommandResult",
    "CommandRunner",
    "CommandRunnerError",
    "CommandTimeoutError",
    "FakeCommandRunner",
    "is_available",
    "resolve_executable",
    "sanitize_environment",
]
