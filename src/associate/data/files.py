"""Shared helpers for reading the agent tool's JSON files."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any


class LoadError(RuntimeError):
    """Raised when a whole-file domain cannot be read or parsed."""


def read_json(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise
    except (OSError, UnicodeDecodeError) as exc:
        raise LoadError(f"cannot read {path.name}: {exc}") from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise LoadError(f"invalid JSON in {path.name}: {exc.msg} (line {exc.lineno})") from exc


def mtime(path: Path) -> float:
    try:
        return path.stat().st_mtime
    except OSError:
        return 0.0


__all__ = ["LoadError", "mtime", "read_json"]
