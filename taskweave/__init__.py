from .executor import FailurePolicy, RunReport, Scheduler, TaskOutcome, TaskState, collect, run
from .graph import CycleError, DuplicateIdError, GraphError, Task, TaskGraph, UnknownDependencyError, task

__all__ = [
    "Task",
    "task",
    "TaskGraph",
    "Scheduler",
    "run",
    "collect",
    "FailurePolicy",
    "RunReport",
    "TaskOutcome",
    "TaskState",
    "GraphError",
    "CycleError",
    "DuplicateIdError",
    "UnknownDependencyError",
]
