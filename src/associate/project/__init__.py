"""Per-project configuration models and loader exports."""

from .loader import ProjectConfigError, find_project_config, load_project_config
from .models import ProjectConfig, TabsConfig

__all__ = [
    "ProjectConfig",
    "ProjectConfigError",
    "TabsConfig",
    "find_project_config",
    "load_project_config",
]
