from cloudmanager.src.models.hal import HalResource
from cloudmanager.src.models.step import (
    StepStatus,
    CommandStatus,
    StepState,
    Execution,
    Metric,
    StepMetrics,
    Environment,
    CommandExecution,
    LogDownload,
)

__all__ = [
    "HalResource",
    "StepStatus",
    "CommandStatus",
    "StepState",
    "Execution",
    "Metric",
    "StepMetrics",
    "Environment",
    "CommandExecution",
    "LogDownload",
]
