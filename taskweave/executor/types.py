from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any


class TaskState(Enum):
    PENDING = "pending"
    READY = "ready"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskState.SUCCEEDED, TaskState.FAILED, TaskState.SKIPPED)


class FailurePolicy(Enum):
    STOP_DEPENDENTS = "stop_dependents"
    STOP_ALL = "stop_all"


class TaskError(Exception):
    def __init__(self, task_id: str, *args: object) -> None:
        super().__init__(*args)
        self.task_id = task_id


class TaskExecutionError(TaskError):
    def __init__(self, task_id: str, original: BaseException):
        super().__init__(task_id, f"Task '{task_id}' failed: {original!r}")
        self.original = original


class TaskTimeoutError(TaskError, TimeoutError):
    def __init__(self, task_id: str, timeout_ms: float):
        super().__init__(task_id, f"Task '{task_id}' timed out after {timeout_ms:g}ms")
        self.timeout_ms = timeout_ms


@dataclass(frozen=True)
class TaskEvent:
    task_id: str
    state: TaskState
    timestamp_ms: float
    result: Any = None
    error: TaskError | None = None


@dataclass(frozen=True)
class TaskOutcome:
    state: TaskState
    result: Any = None
    error: TaskError | None = None
    started_at_ms: float | None = None
    finished_at_ms: float | None = None

    @property
    def duration_ms(self) -> float | None:
        if self.started_at_ms is None or self.finished_at_ms is None:
            return None
        return self.finished_at_ms - self.started_at_ms


@dataclass(frozen=True)
class RunReport:
    outcomes: Mapping[str, TaskOutcome]
    finish_order: tuple[str, ...]
    total_duration_ms: float
    overall_succeeded: bool

    def _ids_in(self, state: TaskState) -> tuple[str, ...]:
        return tuple(tid for tid in sorted(self.outcomes) if self.outcomes[tid].state == state)

    @property
    def succeeded(self) -> tuple[str, ...]:
        return tuple(
            tid for tid in self.finish_order if self.outcomes[tid].state == TaskState.SUCCEEDED
        )

    @property
    def failed(self) -> tuple[str, ...]:
        return tuple(
            tid for tid in self.finish_order if self.outcomes[tid].state == TaskState.FAILED
        )

    @property
    def skipped(self) -> tuple[str, ...]:
        return self._ids_in(TaskState.SKIPPED)

    @property
    def results(self) -> dict[str, Any]:
        return {tid: self.outcomes[tid].result for tid in self.succeeded}

    @property
    def errors(self) -> dict[str, TaskError]:
        out = {}
        for tid in self.failed:
            error = self.outcomes[tid].error
            assert error is not None
            out[tid] = error
        return out

    def to_dict(self) -> dict[str, Any]:
        outcomes = {}
        for tid in sorted(self.outcomes):
            outcome = self.outcomes[tid]
            outcomes[tid] = {
                "state": outcome.state.value,
                "result": _jsonable(outcome.result),
                "error": str(outcome.error) if outcome.error is not None else None,
                "started_at_ms": outcome.started_at_ms,
                "finished_at_ms": outcome.finished_at_ms,
            }

        return {
            "outcomes": outcomes,
            "finish_order": list(self.finish_order),
            "total_duration_ms": self.total_duration_ms,
            "overall_succeeded": self.overall_succeeded,
        }


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Mapping):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(v) for v in value]
    if hasattr(value, "to_dict"):
        return _jsonable(value.to_dict())
    return repr(value)
