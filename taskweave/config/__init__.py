from .loader import load_project
from .types import ConfigError, ProjectConfig, TaskConfig

__all__ = ["load_project", "ProjectConfig", "TaskConfig", "ConfigError"]
