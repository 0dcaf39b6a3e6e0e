"""
Pipeline execution control - cancel/advance steps, quality gates and step logs.
"""

import asyncio
import logging
from typing import Optional

from cloudmanager.src.api.client import CloudManagerClient
from cloudmanager.src.api.resources import (
    get_current_execution,
    get_execution,
    get_log_redirect,
    get_step_metrics,
    refresh_step_state,
)
from cloudmanager.src.core.steps import find_step, get_current_step, get_waiting_step
from cloudmanager.src.core.tail import Sink, TailCursor, TailPolicy
from cloudmanager.src.core.transitions import TransitionPlan, plan_advance, plan_cancel
from cloudmanager.src.errors import (
    CurrentStepNotFoundError,
    LinkMissingError,
    RequestError,
    StepNotFoundError,
    StepNotRunningError,
    TransitionError,
    WaitingStepNotFoundError,
)
from cloudmanager.src.models.hal import REL_SELF, REL_STEP_LOGS
from cloudmanager.src.models.step import StepMetrics, StepState, StepStatus

logger = logging.getLogger(__name__)

async def find_step_state(
    client: CloudManagerClient,
    program_id: str,
    pipeline_id: str,
    execution_id: str,
    action: str,
) -> StepState:
    """Find a step of an execution by action or gate name."""
    execution = await get_execution(client, program_id, pipeline_id, execution_id)
    step = find_step(execution, action)
    if step is None:
        raise StepNotFoundError(action, execution_id)
    return step

async def get_quality_gate_results(
    client: CloudManagerClient,
    program_id: str,
    pipeline_id: str,
    execution_id: str,
    action: str,
) -> StepMetrics:
    step = await find_step_state(client, program_id, pipeline_id, execution_id, action)
    return await get_step_metrics(client, step)

async def _submit(client: CloudManagerClient, plan: TransitionPlan, action: str):
    await client.put_json(plan.href, plan.body, action, error_class=TransitionError)

async def cancel_current_execution(
    client: CloudManagerClient, program_id: str, pipeline_id: str
) -> StepState:
    """
    Stop the current execution of a pipeline through its first
    unfinished step. Returns the step the request was sent to.
    """
    execution = await get_current_execution(client, program_id, pipeline_id)
    step = get_current_step(execution)
    if step is None:
        raise CurrentStepNotFoundError(pipeline_id)

    plan = plan_cancel(step)
    logger.info(f"Cancelling {step.action} step {step.id} of pipeline {pipeline_id}")
    await _submit(client, plan, "Cannot cancel execution")
    return step

async def advance_current_execution(
    client: CloudManagerClient, program_id: str, pipeline_id: str
) -> StepState:
    """Resume the waiting step of the current execution of a pipeline."""
    execution = await get_current_execution(client, program_id, pipeline_id)
    step = get_waiting_step(execution)
    if step is None:
        raise WaitingStepNotFoundError(pipeline_id)

    plan = await plan_advance(step, lambda s: get_step_metrics(client, s))
    logger.info(f"Advancing {step.action} step {step.id} of pipeline {pipeline_id}")
    await _submit(client, plan, "Cannot advance execution")
    return step

def _step_logs(step: StepState, log_file: Optional[str]):
    href = step.link(REL_STEP_LOGS)
    if not href:
        raise LinkMissingError("logs", f"step {step.action}")
    params = {"file": log_file} if log_file else None
    return href, params

async def get_execution_step_log(
    client: CloudManagerClient,
    program_id: str,
    pipeline_id: str,
    execution_id: str,
    action: str,
    sink: Sink,
    log_file: Optional[str] = None,
):
    """Download the complete log of a step into `sink`."""
    step = await find_step_state(client, program_id, pipeline_id, execution_id, action)
    href, params = _step_logs(step, log_file)
    url = await get_log_redirect(client, href, params=params)

    async with client.files.stream("GET", url) as response:
        if not response.is_success:
            raise RequestError(
                url, response.status_code, response.reason_phrase,
                action="Cannot download log",
            )
        async for chunk in response.aiter_bytes():
            sink.write(chunk)

class StepWatch:
    """Re-fetches a step after each read and keeps the latest copy."""

    def __init__(self, client: CloudManagerClient, step: StepState):
        self.client = client
        self.step = step
        self.href = step.link(REL_SELF)

    async def __call__(self) -> bool:
        self.step = await refresh_step_state(self.client, self.href)
        return self.step.status == StepStatus.RUNNING

async def tail_execution_step_log(
    client: CloudManagerClient,
    program_id: str,
    pipeline_id: str,
    action: str,
    sink: Sink,
    log_file: Optional[str] = None,
    cancel: Optional[asyncio.Event] = None,
) -> StepState:
    """
    Stream the log of a running step of the current execution until
    the step stops running. Returns the last fetched step state.
    """
    execution = await get_current_execution(client, program_id, pipeline_id)
    step = find_step(execution, action)
    if step is None:
        raise StepNotFoundError(action, execution.id)
    if step.status != StepStatus.RUNNING:
        raise StepNotRunningError(action, execution.id)

    href, params = _step_logs(step, log_file)
    url = await get_log_redirect(client, href, params=params)

    watch = StepWatch(client, step)
    policy = TailPolicy(
        backoff=client.settings.step_log_backoff,
        not_found_is_transient=True,
    )
    await client.tail_engine().follow(
        TailCursor(target_url=url),
        sink,
        policy,
        is_active=watch,
        cancel=cancel,
    )
    return watch.step
