from cloudmanager.src.api.client import CloudManagerClient
from cloudmanager.src.api.resources import (
    find_program,
    find_pipeline,
    get_current_execution,
    get_execution,
    find_environment,
    get_tailing_url,
    refresh_step_state,
    get_step_metrics,
    get_log_redirect,
    get_command_execution,
    list_command_executions,
    get_environment_logs,
)

__all__ = [
    "CloudManagerClient",
    "find_program",
    "find_pipeline",
    "get_current_execution",
    "get_execution",
    "find_environment",
    "get_tailing_url",
    "refresh_step_state",
    "get_step_metrics",
    "get_log_redirect",
    "get_command_execution",
    "list_command_executions",
    "get_environment_logs",
]
