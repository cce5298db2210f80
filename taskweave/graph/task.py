from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

Executor = Callable[[Mapping[str, Any]], Any]


@dataclass(frozen=True)
class Task:
    """A named unit of work.

    ``run`` receives a read-only mapping of the results of exactly the tasks
    listed in ``depends_on``. It may be a plain function, which the scheduler
    runs in a worker thread, or a coroutine function.
    """

    id: str
    run: Executor = field(compare=False)
    depends_on: frozenset[str] = frozenset()
    timeout_ms: float | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or len(self.id.strip()) < 1:
            raise ValueError(f"Task id must be a non-empty string, got {self.id!r}")

        if not callable(self.run):
            raise ValueError(f"{self.id}: run must be callable")

        if isinstance(self.depends_on, str):
            raise ValueError(f"{self.id}: depends_on must be a collection of ids")

        # frozen dataclass: normalise through object.__setattr__
        object.__setattr__(self, "depends_on", frozenset(self.depends_on))

        if self.timeout_ms is not None and self.timeout_ms <= 0:
            raise ValueError(f"{self.id}: timeout_ms must be positive")


def task(
    id: str,
    run: Executor,
    depends_on: Iterable[str] = (),
    timeout_ms: float | None = None,
) -> Task:
    return Task(id, run, frozenset(depends_on), timeout_ms)
