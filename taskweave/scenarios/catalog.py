from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from taskweave.graph import Task

from .steps import FaultPolicy, StepFailedError, simulated_step

Builder = Callable[..., list[Task]]


@dataclass(frozen=True)
class Scenario:
    name: str
    description: str
    build: Builder


@dataclass(frozen=True)
class _Injection:
    fail: frozenset[str]
    faults: FaultPolicy | None
    scale: float


def _step(
    task_id: str,
    duration_ms: float,
    value: Any,
    inject: _Injection,
    *,
    deps: Iterable[str] = (),
    error: str = "injected failure",
) -> Task:
    run = simulated_step(
        task_id,
        duration_ms * inject.scale,
        value,
        fail=task_id in inject.fail,
        faults=inject.faults,
        error=error,
    )
    return Task(task_id, run, frozenset(deps))


def sequential_queue(
    fail: Iterable[str] = (), scale: float = 1.0, faults: FaultPolicy | None = None
) -> list[Task]:
    """Requests served one at a time, in arrival order."""
    inject = _Injection(frozenset(fail), faults, scale)
    requests = [("request-1", 800), ("request-2", 1200), ("request-3", 600)]

    tasks = []
    previous: tuple[str, ...] = ()
    for task_id, duration in requests:
        tasks.append(_step(task_id, duration, {"served": task_id}, inject, deps=previous))
        previous = (task_id,)
    return tasks


def parallel_delivery(
    fail: Iterable[str] = (), scale: float = 1.0, faults: FaultPolicy | None = None
) -> list[Task]:
    """Independent deliveries launched together; finish order follows duration."""
    inject = _Injection(frozenset(fail), faults, scale)
    packages = [("package-1", 1500), ("package-2", 900), ("package-3", 1800), ("package-4", 700)]
    return [
        _step(task_id, duration, {"delivered": task_id}, inject, error="delivery failed")
        for task_id, duration in packages
    ]


DEFAULT_FORM = {"email": "darcy@example.com", "document": "123456789", "name": "darcy rubio"}
TAKEN_NAMES = frozenset({"Ana López"})

_DOCUMENT = re.compile(r"\d{6,10}")


def _check_email(email: str) -> Callable[[Mapping[str, Any]], dict[str, Any]]:
    def check(inputs: Mapping[str, Any]) -> dict[str, Any]:
        if "@" not in email or len(email) <= 5:
            raise StepFailedError("email", "invalid email")
        return {"valid": True, "value": email}

    return check


def _check_document(document: str) -> Callable[[Mapping[str, Any]], dict[str, Any]]:
    def check(inputs: Mapping[str, Any]) -> dict[str, Any]:
        if _DOCUMENT.fullmatch(document) is None:
            raise StepFailedError("document", "document does not match format")
        return {"valid": True, "value": document}

    return check


def _check_availability(name: str) -> Callable[[Mapping[str, Any]], dict[str, Any]]:
    def check(inputs: Mapping[str, Any]) -> dict[str, Any]:
        if name in TAKEN_NAMES:
            raise StepFailedError("availability", "name already registered")
        return {"valid": True, "value": name}

    return check


def form_validation(
    fail: Iterable[str] = (),
    scale: float = 1.0,
    faults: FaultPolicy | None = None,
    form: Mapping[str, str] | None = None,
) -> list[Task]:
    """Three field validations in parallel. Every failure shows up in report.errors.

    ``form`` needs ``email``, ``document`` and ``name`` keys. ``fail`` forces
    a validation to fail whatever the input.
    """
    form = {**DEFAULT_FORM, **(form or {})}
    inject = _Injection(frozenset(fail), faults, scale)
    return [
        _step("email", 800, _check_email(form["email"]), inject, error="invalid email"),
        _step(
            "document",
            1100,
            _check_document(form["document"]),
            inject,
            error="document does not match format",
        ),
        _step(
            "availability",
            600,
            _check_availability(form["name"]),
            inject,
            error="name already registered",
        ),
    ]


def _invoice(inputs: Mapping[str, Any]) -> dict[str, Any]:
    return {"invoice": "INV-" + str(inputs["costs"]["total"]), "units": inputs["stock"]["units"]}


def order_pipeline(
    fail: Iterable[str] = (), scale: float = 1.0, faults: FaultPolicy | None = None
) -> list[Task]:
    """stock -> costs -> invoice, with recommendations branching off costs.

    The invoice does not wait for recommendations.
    """
    inject = _Injection(frozenset(fail), faults, scale)
    return [
        _step("stock", 700, {"units": 23}, inject, error="insufficient stock"),
        _step("costs", 900, {"total": 42500}, inject, deps=["stock"]),
        _step(
            "recommendations",
            1500,
            {"items": ["family combo", "premium dessert"]},
            inject,
            deps=["costs"],
        ),
        _step(
            "invoice",
            500,
            _invoice,
            inject,
            deps=["stock", "costs"],
            error="invoicing service error",
        ),
    ]


def _recommend(inputs: Mapping[str, Any]) -> dict[str, Any]:
    history = inputs["history"]["actions"]
    if "purchase" in history:
        items = ["premium offer", "next purchase discount"]
    else:
        items = ["welcome", "getting started guide"]
    return {"items": items, "based_on": [inputs["user"]["name"], len(history)]}


def service_integration(
    fail: Iterable[str] = (), scale: float = 1.0, faults: FaultPolicy | None = None
) -> list[Task]:
    """availability, user and history in parallel; recommendations needs user and history."""
    inject = _Injection(frozenset(fail), faults, scale)
    return [
        _step("availability", 600, {"available": True}, inject, error="availability timeout"),
        _step("user", 1000, {"name": "mario"}, inject, error="user not found"),
        _step("history", 800, {"actions": ["login", "purchase"]}, inject, error="database down"),
        _step(
            "recommendations",
            1200,
            _recommend,
            inject,
            deps=["user", "history"],
            error="recommendation engine not responding",
        ),
    ]


SCENARIOS: dict[str, Scenario] = {
    s.name: s
    for s in [
        Scenario("queue", "Sequential request queue", sequential_queue),
        Scenario("delivery", "Parallel package delivery", parallel_delivery),
        Scenario("validation", "Parallel form validation", form_validation),
        Scenario("order", "Order pipeline with a non-blocking branch", order_pipeline),
        Scenario("integration", "Service integration with partial dependency", service_integration),
    ]
}
