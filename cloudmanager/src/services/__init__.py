from cloudmanager.src.services.executions import (
    find_step_state,
    get_quality_gate_results,
    cancel_current_execution,
    advance_current_execution,
    get_execution_step_log,
    tail_execution_step_log,
)
from cloudmanager.src.services.logs import download_logs, list_available_log_options, tail_log
from cloudmanager.src.services.commerce import (
    CommerceLogDecoder,
    commerce_log_transform,
    tail_commerce_command_log,
)
from cloudmanager.src.api.resources import get_command_execution as get_commerce_command_execution
from cloudmanager.src.api.resources import list_command_executions as list_commerce_command_executions

__all__ = [
    "find_step_state",
    "get_quality_gate_results",
    "cancel_current_execution",
    "advance_current_execution",
    "get_execution_step_log",
    "tail_execution_step_log",
    "download_logs",
    "list_available_log_options",
    "tail_log",
    "CommerceLogDecoder",
    "commerce_log_transform",
    "tail_commerce_command_log",
    "get_commerce_command_execution",
    "list_commerce_command_executions",
]
