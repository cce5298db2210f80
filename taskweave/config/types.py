from collections.abc import Iterator
from dataclasses import dataclass


@dataclass
class TaskConfig:
    """One shell task as declared in a project file."""

    id: str
    command: str
    deps: list[str]
    env: dict[str, str]
    working_dir: str | None
    timeout_ms: float | None = None


@dataclass
class ProjectConfig:
    """Tasks plus the run settings a project file may override."""

    tasks: dict[str, TaskConfig]
    concurrency_limit: int | None = None
    on_failure: str = "stop_dependents"

    def __iter__(self) -> Iterator[TaskConfig]:
        return (self.tasks[task_id] for task_id in self.tasks_ids())

    def __len__(self) -> int:
        return len(self.tasks)

    def tasks_ids(self) -> list[str]:
        return sorted(self.tasks)


class ConfigError(Exception):
    pass


class UnsupportedConfigFormatError(ConfigError):
    pass
