"""Project configuration loading utilities."""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import ProjectConfig

CONFIG_FILENAMES = (".assoc.yaml", ".assoc.yml")


class ProjectConfigError(RuntimeError):
    """Raised when the project configuration file cannot be parsed."""


def find_project_config(project_dir: Path) -> Path | None:
    for name in CONFIG_FILENAMES:
        candidate = Path(project_dir) / name
        if candidate.is_file():
            return candidate
    return None


def load_project_config(project_dir: Path) -> ProjectConfig:
    """Load ``.assoc.yaml`` from the project directory.

    A missing file yields the defaults. A file that exists but does not parse
    or validate is an error: silently ignoring it would hide typos in
    integration settings.
    """

    path = find_project_config(project_dir)
    if path is None:
        return ProjectConfig()

    try:
        document = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ProjectConfigError(f"Failed to parse YAML in {path}: {exc}") from exc

    if document is None:
        return ProjectConfig()
    if not isinstance(document, dict):
        raise ProjectConfigError(f"{path} must contain a mapping at the top level")

    try:
        return ProjectConfig.model_validate(document)
    except ValidationError as exc:
        raise ProjectConfigError(f"Project config validation error in {path}: {exc}") from exc


__all__ = ["CONFIG_FILENAMES", "ProjectConfigError", "find_project_config", "load_project_config"]
