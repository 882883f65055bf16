"""Environment and lookup helpers for the CLIs the dashboard runs."""

from __future__ import annotations

import os
import shutil
from typing import Mapping

# The dashboard may itself run inside an agent session or a virtualenv;
# neither should leak into the tools it starts.
_STRIPPED_VARS = {
    "CLAUDECODE",
    "PYTHONHOME",
    "PYTHONPATH",
    "VIRTUAL_ENV",
}

# Output is parsed, never shown to a user, so prompts and colour are off.
_NON_INTERACTIVE = {
    "GH_PROMPT_DISABLED": "1",
    "GIT_TERMINAL_PROMPT": "0",
    "NO_COLOR": "1",
}


def sanitize_environment(additional: Mapping[str, str] | None = None) -> dict[str, str]:
    """Return the environment for a child CLI process."""

    env = {key: value for key, value in os.environ.items() if key not in _STRIPPED_VARS}
    env.update(_NON_INTERACTIVE)
    if additional:
        env.update(additional)
    return env


def is_available(command: str) -> bool:
    return shutil.which(command) is not None


__all__ = ["is_available", "sanitize_environment"]
