from cloudmanager.src.core.clock import Clock, is_near_utc_midnight
from cloudmanager.src.core.steps import (
    find_step,
    get_current_step,
    get_waiting_step,
)
from cloudmanager.src.core.transitions import (
    StepKind,
    TransitionPlan,
    classify_step,
    plan_cancel,
    plan_advance,
)
from cloudmanager.src.core.tail import (
    TailState,
    TailCursor,
    TailPolicy,
    TailEngine,
)

__all__ = [
    "Clock",
    "is_near_utc_midnight",
    "find_step",
    "get_current_step",
    "get_waiting_step",
    "StepKind",
    "TransitionPlan",
    "classify_step",
    "plan_cancel",
    "plan_advance",
    "TailState",
    "TailCursor",
    "TailPolicy",
    "TailEngine",
]
