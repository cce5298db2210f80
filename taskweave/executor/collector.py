from __future__ import annotations

from collections.abc import Iterable
from types import MappingProxyType

from .types import RunReport, TaskEvent, TaskOutcome, TaskState


class ResultCollector:
    """Accumulates scheduler events into a :class:`RunReport`.

    Events for one task must arrive in lifecycle order (``RUNNING`` before its
    terminal event). Any task id seen only as ``PENDING`` or ``READY`` is
    reported in that state.
    """

    def __init__(self) -> None:
        self._states: dict[str, TaskState] = {}
        self._started: dict[str, float] = {}
        self._finished: dict[str, float] = {}
        self._results: dict[str, object] = {}
        self._errors: dict[str, object] = {}

    def add(self, event: TaskEvent) -> None:
        tid = event.task_id
        self._states[tid] = event.state

        match event.state:
            case TaskState.RUNNING:
                self._started[tid] = event.timestamp_ms
            case TaskState.SUCCEEDED:
                self._finished[tid] = event.timestamp_ms
                self._results[tid] = event.result
            case TaskState.FAILED:
                self._finished[tid] = event.timestamp_ms
                self._errors[tid] = event.error
            case _:
                pass

    def report(self) -> RunReport:
        outcomes = {}
        for tid, state in self._states.items():
            outcomes[tid] = TaskOutcome(
                state=state,
                result=self._results.get(tid),
                error=self._errors.get(tid),  # type: ignore[arg-type]
                started_at_ms=self._started.get(tid),
                finished_at_ms=self._finished.get(tid),
            )

        finish_order = tuple(
            sorted(self._finished, key=lambda tid: (self._finished[tid], tid))
        )

        if self._started and self._finished:
            total = max(self._finished.values()) - min(self._started.values())
        else:
            total = 0.0

        overall = all(state != TaskState.FAILED for state in self._states.values())

        return RunReport(
            outcomes=MappingProxyType(outcomes),
            finish_order=finish_order,
            total_duration_ms=total,
            overall_succeeded=overall,
        )


def collect(events: Iterable[TaskEvent]) -> RunReport:
    collector = ResultCollector()
    for event in events:
        collector.add(event)
    return collector.report()
