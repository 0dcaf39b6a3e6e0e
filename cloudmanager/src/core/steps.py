"""
Step selection within a pipeline execution.
"""

from typing import Dict, Optional, Tuple

from cloudmanager.src.models.step import Execution, StepState, StepStatus

SECURITY_GATE = "security"
PERFORMANCE_GATE = "performance"

PERFORMANCE_ACTIONS = ("loadTest", "assetsTest", "reportPerformanceTest")

# Gate name -> (action, environment type)
DEPLOY_GATES: Dict[str, Tuple[str, str]] = {
    "devDeploy": ("deploy", "dev"),
    "stageDeploy": ("deploy", "stage"),
    "prodDeploy": ("deploy", "prod"),
}

def get_current_step(execution: Optional[Execution]) -> Optional[StepState]:
    """Find the first step that is not finished."""
    if execution is None:
        return None
    return next(
        (s for s in execution.step_states if s.status != StepStatus.FINISHED),
        None,
    )

def get_waiting_step(execution: Optional[Execution]) -> Optional[StepState]:
    """Find the first step waiting for input."""
    if execution is None:
        return None
    return next(
        (s for s in execution.step_states if s.status == StepStatus.WAITING),
        None,
    )

def find_step(execution: Execution, selector: str) -> Optional[StepState]:
    """
    Find a step by action name or gate name.

    Gate names map onto one or more underlying actions; any other
    selector is matched against the step action verbatim.
    """
    steps = execution.step_states

    if selector == SECURITY_GATE:
        return next((s for s in steps if s.action == "securityTest"), None)

    if selector == PERFORMANCE_GATE:
        # Several performance steps may exist, the report comes last
        candidates = [s for s in steps if s.action in PERFORMANCE_ACTIONS]
        return candidates[-1] if candidates else None

    if selector in DEPLOY_GATES:
        action, environment_type = DEPLOY_GATES[selector]
        return next(
            (
                s for s in steps
                if s.action == action and s.environment_type == environment_type
            ),
            None,
        )

    return next((s for s in steps if s.action == selector), None)
