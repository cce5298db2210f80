from .catalog import (
    DEFAULT_FORM,
    SCENARIOS,
    TAKEN_NAMES,
    Scenario,
    form_validation,
    order_pipeline,
    parallel_delivery,
    sequential_queue,
    service_integration,
)
from .steps import FaultPolicy, StepFailedError, random_faults, simulated_step

__all__ = [
    "SCENARIOS",
    "Scenario",
    "DEFAULT_FORM",
    "TAKEN_NAMES",
    "sequential_queue",
    "parallel_delivery",
    "form_validation",
    "order_pipeline",
    "service_integration",
    "simulated_step",
    "random_faults",
    "FaultPolicy",
    "StepFailedError",
]
