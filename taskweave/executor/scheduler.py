"""Concurrent, dependency-aware execution of a :class:`TaskGraph`.

A single coordinating coroutine owns every task-state transition. Each ready
task is launched as its own asyncio task (plain functions go to a worker
thread), and the coordinator suspends only while waiting for the next
in-flight task to settle or for the nearest timeout deadline.

Timeouts are advisory: an overdue task is recorded as failed at its deadline
and its asyncio task is cancelled, but work running in a worker thread cannot
be interrupted and keeps running in the background until it returns. Its
result is discarded. Each run owns its thread pool and does not join it on
exit, so neither `run` nor `run_sync` waits for abandoned thread work.
"""

from __future__ import annotations

import asyncio
import contextvars
import functools
import inspect
import logging
import time
from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from taskweave.graph import Task, TaskGraph

from .collector import ResultCollector
from .types import (
    FailurePolicy,
    RunReport,
    TaskError,
    TaskEvent,
    TaskExecutionError,
    TaskState,
    TaskTimeoutError,
)

logger = logging.getLogger(__name__)

Observer = Callable[[TaskEvent], None]


@dataclass(frozen=True)
class _Settled:
    task_id: str
    finished_at_ms: float
    result: Any = None
    error: BaseException | None = None


class Scheduler:
    def __init__(
        self,
        concurrency_limit: int | None = None,
        on_failure: FailurePolicy = FailurePolicy.STOP_DEPENDENTS,
        observer: Observer | None = None,
    ) -> None:
        if concurrency_limit is not None and concurrency_limit < 1:
            raise ValueError("concurrency_limit must be at least 1")

        self.concurrency_limit = concurrency_limit
        self.on_failure = FailurePolicy(on_failure)
        self.observer = observer

    async def run(self, graph: TaskGraph) -> RunReport:
        """Run every task in ``graph`` and return the consolidated report.

        Task failures never propagate out of this call; they are recorded in
        the report and their dependents are skipped.
        """
        return await _Run(self, graph).execute()

    def run_sync(self, graph: TaskGraph) -> RunReport:
        return asyncio.run(self.run(graph))


async def run(
    graph: TaskGraph,
    *,
    concurrency_limit: int | None = None,
    on_failure: FailurePolicy = FailurePolicy.STOP_DEPENDENTS,
    observer: Observer | None = None,
) -> RunReport:
    return await Scheduler(concurrency_limit, on_failure, observer).run(graph)


class _Run:
    """State of one scheduler invocation. Never shared between runs."""

    def __init__(self, scheduler: Scheduler, graph: TaskGraph) -> None:
        self.graph = graph
        self.limit = scheduler.concurrency_limit
        self.policy = scheduler.on_failure
        self.observer = scheduler.observer

        self.states: dict[str, TaskState] = {tid: TaskState.PENDING for tid in graph}
        self.waiting: dict[str, set[str]] = {
            tid: set(graph.dependencies_of(tid)) for tid in graph
        }
        self.ready: list[str] = []
        self.results: dict[str, Any] = {}
        self.in_flight: dict[asyncio.Task[_Settled], str] = {}
        self.deadlines: dict[str, float] = {}
        self.abandoned: set[asyncio.Task[_Settled]] = set()
        self.collector = ResultCollector()
        self.pool = ThreadPoolExecutor(max_workers=self.limit, thread_name_prefix="taskweave")
        self.t0 = 0.0

    def _now(self) -> float:
        return (time.monotonic() - self.t0) * 1000

    async def execute(self) -> RunReport:
        self.t0 = time.monotonic()
        logger.debug("Starting run of %d tasks", len(self.graph))

        for tid in self.graph.roots():
            self._mark_ready(tid)

        try:
            while True:
                self._dispatch()
                if not self.in_flight:
                    break

                done, _ = await asyncio.wait(
                    self.in_flight,
                    timeout=self._next_timeout(),
                    return_when=asyncio.FIRST_COMPLETED,
                )
                settled = [self._settled_from(fut) for fut in done]
                settled.extend(self._expire_overdue())

                for item in sorted(settled, key=lambda s: (s.finished_at_ms, s.task_id)):
                    self._settle(item)
        finally:
            # Timed-out thread work may still be running; never join it here.
            self.pool.shutdown(wait=False, cancel_futures=True)

        report = self.collector.report()
        logger.info(
            "Run finished in %.1fms: %d succeeded, %d failed, %d skipped",
            report.total_duration_ms,
            len(report.succeeded),
            len(report.failed),
            len(report.skipped),
        )
        return report

    def _dispatch(self) -> None:
        self.ready.sort()
        while self.ready and (self.limit is None or len(self.in_flight) < self.limit):
            tid = self.ready.pop(0)
            task = self.graph.get(tid)
            inputs = MappingProxyType(
                {dep: self.results[dep] for dep in self.graph.dependencies_of(tid)}
            )

            now = self._now()
            if task.timeout_ms is not None:
                self.deadlines[tid] = now + task.timeout_ms
            self._transition(tid, TaskState.RUNNING, now)
            logger.debug("Dispatched %s", tid)

            fut = asyncio.create_task(self._invoke(task, inputs), name=f"taskweave:{tid}")
            self.in_flight[fut] = tid

    async def _invoke(self, task: Task, inputs: Mapping[str, Any]) -> _Settled:
        try:
            if _is_async(task.run):
                result = await task.run(inputs)
            else:
                loop = asyncio.get_running_loop()
                call = functools.partial(contextvars.copy_context().run, task.run, inputs)
                result = await loop.run_in_executor(self.pool, call)
                if inspect.isawaitable(result):
                    result = await result
        except Exception as exc:
            return _Settled(task.id, self._now(), error=exc)
        return _Settled(task.id, self._now(), result=result)

    def _next_timeout(self) -> float | None:
        pending = [self.deadlines[tid] for tid in self.in_flight.values() if tid in self.deadlines]
        if not pending:
            return None
        return max(0.0, (min(pending) - self._now()) / 1000)

    def _settled_from(self, fut: asyncio.Task[_Settled]) -> _Settled:
        tid = self.in_flight.pop(fut)
        if fut.cancelled():
            settled = _Settled(tid, self._now(), error=asyncio.CancelledError())
        else:
            settled = fut.result()

        deadline = self.deadlines.get(tid)
        if deadline is not None and settled.finished_at_ms > deadline:
            return self._timed_out(tid, deadline)
        return settled

    def _expire_overdue(self) -> list[_Settled]:
        now = self._now()
        expired = []
        for fut, tid in list(self.in_flight.items()):
            deadline = self.deadlines.get(tid)
            if deadline is None or deadline > now:
                continue

            del self.in_flight[fut]
            fut.cancel()
            self.abandoned.add(fut)
            fut.add_done_callback(self.abandoned.discard)
            expired.append(self._timed_out(tid, deadline))
        return expired

    def _timed_out(self, tid: str, deadline: float) -> _Settled:
        timeout_ms = self.graph.get(tid).timeout_ms
        assert timeout_ms is not None
        return _Settled(tid, deadline, error=TaskTimeoutError(tid, timeout_ms))

    def _settle(self, settled: _Settled) -> None:
        tid = settled.task_id
        if settled.error is None:
            self.results[tid] = settled.result
            self._transition(tid, TaskState.SUCCEEDED, settled.finished_at_ms, result=settled.result)
            logger.debug("Task %s succeeded", tid)

            for dependent in self.graph.dependents_of(tid):
                self.waiting[dependent].discard(tid)
                if not self.waiting[dependent] and self.states[dependent] == TaskState.PENDING:
                    self._mark_ready(dependent)
            return

        error = settled.error
        if not isinstance(error, TaskError):
            wrapped = TaskExecutionError(tid, error)
            wrapped.__cause__ = error
            error = wrapped

        self._transition(tid, TaskState.FAILED, settled.finished_at_ms, error=error)
        logger.warning("Task %s failed: %s", tid, error)

        if self.policy == FailurePolicy.STOP_ALL:
            self._skip_all(settled.finished_at_ms)
        else:
            self._skip_dependents(tid, settled.finished_at_ms)

    def _skip_dependents(self, tid: str, now: float) -> None:
        stack = list(self.graph.dependents_of(tid))
        while stack:
            dependent = stack.pop()
            if self.states[dependent] != TaskState.PENDING:
                continue
            self._skip(dependent, now)
            stack.extend(self.graph.dependents_of(dependent))

    def _skip_all(self, now: float) -> None:
        self.ready.clear()
        for tid in sorted(self.states):
            if self.states[tid] in (TaskState.PENDING, TaskState.READY):
                self._skip(tid, now)

    def _skip(self, tid: str, now: float) -> None:
        self._transition(tid, TaskState.SKIPPED, now)
        logger.warning("Task %s skipped", tid)

    def _mark_ready(self, tid: str) -> None:
        self.ready.append(tid)
        self._transition(tid, TaskState.READY, self._now())

    def _transition(
        self,
        tid: str,
        state: TaskState,
        timestamp_ms: float,
        *,
        result: Any = None,
        error: TaskError | None = None,
    ) -> None:
        self.states[tid] = state
        event = TaskEvent(tid, state, timestamp_ms, result, error)
        self.collector.add(event)

        if self.observer is None:
            return
        try:
            self.observer(event)
        except Exception:
            logger.exception("Observer raised on %s event for %s", state.value, tid)


def _is_async(fn: Callable[..., Any]) -> bool:
    if inspect.iscoroutinefunction(fn):
        return True
    call = getattr(type(fn), "__call__", None)
    return call is not None and inspect.iscoroutinefunction(call)
