"""
Decide how to cancel or advance a pipeline step.

Each step is classified into a StepKind and the kind selects the link
to call and the payload to send. Nothing here performs the PUT itself;
see services.executions for that.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict

from cloudmanager.src.errors import LinkMissingError, UnsupportedStepError
from cloudmanager.src.models.hal import REL_STEP_ADVANCE, REL_STEP_CANCEL
from cloudmanager.src.models.step import StepMetrics, StepState, StepStatus

logger = logging.getLogger(__name__)

class StepKind(str, Enum):
    APPROVAL = "approval"
    MANAGED = "managed"
    SCHEDULE = "schedule"
    DEPLOY = "deploy"
    GATE = "gate"  # Quality gates and any other overridable step

CANCEL_BODIES: Dict[StepKind, Dict[str, Any]] = {
    StepKind.APPROVAL: {"approved": False},
    StepKind.MANAGED: {"start": False},
}

ADVANCE_BODIES: Dict[StepKind, Dict[str, Any]] = {
    StepKind.APPROVAL: {"approved": True},
    StepKind.MANAGED: {"start": True},
    StepKind.DEPLOY: {"resume": True},
}

MetricsFetcher = Callable[[StepState], Awaitable[StepMetrics]]

@dataclass(frozen=True)
class TransitionPlan:
    """Link and payload for a step transition."""
    href: str
    body: Dict[str, Any] = field(default_factory=dict)

def classify_step(step: StepState) -> StepKind:
    try:
        return StepKind(step.action)
    except ValueError:
        return StepKind.GATE

def _resolve(step: StepState, rel: str, name: str) -> str:
    href = step.link(rel)
    if not href:
        raise LinkMissingError(name, f"the current step ({step.action})")
    return href

def plan_cancel(step: StepState) -> TransitionPlan:
    """Build the request that stops `step`."""
    kind = classify_step(step)

    if kind in CANCEL_BODIES:
        body = dict(CANCEL_BODIES[kind])
        return TransitionPlan(_resolve(step, REL_STEP_CANCEL, "cancel"), body)

    if step.status == StepStatus.WAITING:
        if kind == StepKind.DEPLOY:
            # A waiting deployment is only halted through its advance endpoint
            return TransitionPlan(
                _resolve(step, REL_STEP_ADVANCE, "advance"), {"resume": False}
            )
        if kind != StepKind.SCHEDULE:
            return TransitionPlan(
                _resolve(step, REL_STEP_CANCEL, "cancel"), {"override": False}
            )

    return TransitionPlan(_resolve(step, REL_STEP_CANCEL, "cancel"), {"cancel": True})

async def plan_advance(step: StepState, fetch_metrics: MetricsFetcher) -> TransitionPlan:
    """
    Build the request that moves `step` forward.

    Quality gates are advanced by overriding every failed important
    metric, which needs a metrics lookup through `fetch_metrics`.
    """
    kind = classify_step(step)

    if kind == StepKind.SCHEDULE:
        raise UnsupportedStepError(step.action)

    href = _resolve(step, REL_STEP_ADVANCE, "advance")

    if kind in ADVANCE_BODIES:
        return TransitionPlan(href, dict(ADVANCE_BODIES[kind]))

    results = await fetch_metrics(step)
    overrides = [
        {**metric.model_dump(by_alias=True, exclude_unset=True), "override": True}
        for metric in results.metrics
        if metric.is_failed_important()
    ]
    logger.debug(f"Overriding {len(overrides)} failed metric(s) on {step.action}")
    return TransitionPlan(href, {"metrics": overrides})
