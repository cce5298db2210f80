from .collector import ResultCollector, collect
from .scheduler import Scheduler, run
from .shell import CommandFailedError, CommandResult, ShellCommand, shell_task, tasks_from_project
from .types import (
    FailurePolicy,
    RunReport,
    TaskError,
    TaskEvent,
    TaskExecutionError,
    TaskOutcome,
    TaskState,
    TaskTimeoutError,
)

__all__ = [
    "Scheduler",
    "run",
    "ResultCollector",
    "collect",
    "ShellCommand",
    "CommandResult",
    "CommandFailedError",
    "shell_task",
    "tasks_from_project",
    "FailurePolicy",
    "RunReport",
    "TaskOutcome",
    "TaskEvent",
    "TaskState",
    "TaskError",
    "TaskExecutionError",
    "TaskTimeoutError",
]
