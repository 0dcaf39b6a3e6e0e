"""
Execution, step and command models.
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from enum import Enum

from cloudmanager.src.models.hal import HalResource

class StepStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    RUNNING = "RUNNING"
    WAITING = "WAITING"
    FINISHED = "FINISHED"
    ERROR = "ERROR"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    ROLLING_BACK = "ROLLING_BACK"
    ROLLED_BACK = "ROLLED_BACK"

class CommandStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

class StepState(HalResource):
    action: str = ""
    environment_type: Optional[str] = Field(default=None, alias="environmentType")
    status: str = ""

class Execution(HalResource):
    program_id: Optional[str] = Field(default=None, alias="programId")
    pipeline_id: Optional[str] = Field(default=None, alias="pipelineId")
    status: Optional[str] = None

    @property
    def step_states(self) -> List[StepState]:
        return self.embedded_array("stepStates", StepState)

class Metric(BaseModel):
    kpi: Optional[str] = None
    severity: Optional[str] = None
    passed: Optional[bool] = None
    actual_value: Any = Field(default=None, alias="actualValue")
    expected_value: Any = Field(default=None, alias="expectedValue")
    comparator: Optional[str] = None

    class Config:
        populate_by_name = True
        extra = "allow"

    def is_failed_important(self) -> bool:
        return self.severity == "important" and self.passed is False

class StepMetrics(BaseModel):
    metrics: List[Metric] = []

    class Config:
        extra = "allow"

class Environment(HalResource):
    program_id: Optional[str] = Field(default=None, alias="programId")
    name: Optional[str] = None
    type: Optional[str] = None
    available_log_options: List[Dict[str, Any]] = Field(
        default_factory=list, alias="availableLogOptions"
    )

class CommandExecution(HalResource):
    status: str = ""
    type: Optional[str] = None
    command: Optional[str] = None

class LogDownload(HalResource):
    """One day of a service log in an environment logs listing."""
    service: Optional[str] = None
    name: Optional[str] = None
    date: Optional[str] = None

    def file_name(self, index: Optional[int] = None) -> str:
        suffix = "" if index is None else f"-{index}"
        return f"{self.service}-{self.name}-{self.date}{suffix}.log"
