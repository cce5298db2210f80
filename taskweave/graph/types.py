class GraphError(Exception):
    pass


class DuplicateIdError(GraphError):
    def __init__(self, task_id: str):
        super().__init__(f"Duplicate task id: {task_id}")
        self.task_id = task_id


class UnknownDependencyError(GraphError):
    def __init__(self, task_id: str, missing: str):
        super().__init__(f"Task '{task_id}' has unknown dependency '{missing}'")
        self.task_id = task_id
        self.missing = missing


class CycleError(GraphError):
    def __init__(self, cycle: list[str]):
        super().__init__("Cycle detected: " + " -> ".join(cycle))
        self.cycle = cycle
