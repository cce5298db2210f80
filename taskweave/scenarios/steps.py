from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

# Decides, when a step runs, whether it should fail. Receives the step name.
FaultPolicy = Callable[[str], bool]


class StepFailedError(Exception):
    def __init__(self, step: str, message: str):
        super().__init__(f"{step}: {message}")
        self.step = step
        self.message = message


def random_faults(rate: float | Mapping[str, float], seed: int | None = None) -> FaultPolicy:
    """Fail steps at random, at one ``rate`` or a per-step mapping of rates.

    A fixed ``seed`` makes the sequence of decisions reproducible.
    """
    rng = random.Random(seed)

    def decide(step: str) -> bool:
        step_rate = rate if isinstance(rate, (int, float)) else rate.get(step, 0.0)
        return rng.random() < step_rate

    return decide


def simulated_step(
    name: str,
    duration_ms: float,
    value: Any = None,
    *,
    fail: bool = False,
    faults: FaultPolicy | None = None,
    error: str = "injected failure",
) -> Callable[[Mapping[str, Any]], Awaitable[Any]]:
    """Executor that waits ``duration_ms`` then returns ``value`` or fails.

    ``value`` may be a callable, in which case it is called with the
    dependency results and its return value is the step's result. It may
    raise :class:`StepFailedError` to fail on its own terms.
    """

    async def step(inputs: Mapping[str, Any]) -> Any:
        await asyncio.sleep(duration_ms / 1000)
        if fail or (faults is not None and faults(name)):
            raise StepFailedError(name, error)
        if callable(value):
            return value(inputs)
        return value

    step.__name__ = f"step_{name}"
    return step
