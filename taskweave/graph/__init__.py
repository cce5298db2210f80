from .dag import TaskGraph
from .task import Executor, Task, task
from .types import CycleError, DuplicateIdError, GraphError, UnknownDependencyError

__all__ = [
    "TaskGraph",
    "Task",
    "task",
    "Executor",
    "GraphError",
    "CycleError",
    "DuplicateIdError",
    "UnknownDependencyError",
]
