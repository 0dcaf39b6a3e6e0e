"""
Resource discovery over HAL links.

Resolves program, pipeline, environment and command identifiers to
resources by walking links from the API root.
"""

import logging
import re
from typing import List, Optional
from urllib.parse import quote, urlencode

from cloudmanager.src.api.client import CloudManagerClient
from cloudmanager.src.errors import (
    CommerceNotSupportedError,
    EnvironmentNotFoundError,
    LinkMissingError,
    LogsNotFoundError,
    NoLogRedirectError,
    NoLogUrlError,
    PipelineNotFoundError,
    ProgramNotFoundError,
    TailLinkNotFoundError,
)
from cloudmanager.src.models.hal import (
    HalResource,
    REL_COMMERCE_COMMAND_EXECUTION_ID,
    REL_COMMERCE_COMMAND_EXECUTIONS,
    REL_COMMERCE_LOGS,
    REL_ENVIRONMENTS,
    REL_EXECUTION,
    REL_EXECUTION_ID,
    REL_LOGS,
    REL_LOGS_TAIL,
    REL_PIPELINES,
    REL_SELF,
    REL_STEP_METRICS,
)
from cloudmanager.src.models.step import (
    CommandExecution,
    Environment,
    Execution,
    StepMetrics,
    StepState,
)

logger = logging.getLogger(__name__)

BASE_PATH = "/api/programs"

_QUERY_TEMPLATE = re.compile(r"\{([?&])([\w,]*)\}")
_PATH_VARIABLE = re.compile(r"\{(\w+)\}")

def _form_query(match, values) -> str:
    pairs = [
        (name, values[name])
        for name in match.group(2).split(",")
        if values.get(name) is not None
    ]
    if not pairs:
        return ""
    return match.group(1) + urlencode(pairs, quote_via=quote)

def expand_href(href: str, **values) -> str:
    """
    Expand a templated link.

    Only the forms the API emits are handled: simple `{name}` path
    variables and form-style query expressions such as
    `{?service,name,days}`. Variables without a value expand to nothing.
    """
    href = _QUERY_TEMPLATE.sub(lambda m: _form_query(m, values), href)
    return _PATH_VARIABLE.sub(
        lambda m: quote(str(values.get(m.group(1), "")), safe=""), href
    )

async def list_programs(client: CloudManagerClient) -> List[HalResource]:
    result = await client.get_json(BASE_PATH, "Cannot retrieve programs")
    return HalResource.model_validate(result or {}).embedded_array("programs")

async def find_program(client: CloudManagerClient, program_id: str) -> HalResource:
    programs = await list_programs(client)
    program = next((p for p in programs if p.id == str(program_id)), None)
    if program is None:
        raise ProgramNotFoundError(program_id)

    result = await client.get_json(program.link(REL_SELF), "Cannot retrieve program")
    return HalResource.model_validate(result)

async def find_pipeline(
    client: CloudManagerClient, program_id: str, pipeline_id: str
) -> HalResource:
    program = await find_program(client, program_id)
    result = await client.get_json(program.link(REL_PIPELINES), "Cannot retrieve pipelines")
    pipelines = HalResource.model_validate(result or {}).embedded_array("pipelines")

    pipeline = next((p for p in pipelines if p.id == str(pipeline_id)), None)
    if pipeline is None:
        raise PipelineNotFoundError(pipeline_id, program_id)
    return pipeline

async def get_current_execution(
    client: CloudManagerClient, program_id: str, pipeline_id: str
) -> Execution:
    pipeline = await find_pipeline(client, program_id, pipeline_id)
    result = await client.get_json(pipeline.link(REL_EXECUTION), "Cannot get execution")
    return Execution.model_validate(result)

async def get_execution(
    client: CloudManagerClient, program_id: str, pipeline_id: str, execution_id: str
) -> Execution:
    pipeline = await find_pipeline(client, program_id, pipeline_id)
    href = expand_href(pipeline.link(REL_EXECUTION_ID), executionId=execution_id)
    result = await client.get_json(href, "Cannot get execution")
    return Execution.model_validate(result)

async def list_environments(client: CloudManagerClient, program_id: str) -> List[Environment]:
    program = await find_program(client, program_id)
    result = await client.get_json(program.link(REL_ENVIRONMENTS), "Cannot find environments")
    return HalResource.model_validate(result or {}).embedded_array("environments", Environment)

async def find_environment(
    client: CloudManagerClient, program_id: str, environment_id: str
) -> Environment:
    environments = await list_environments(client, program_id)
    environment = next((e for e in environments if e.id == str(environment_id)), None)
    if environment is None:
        raise EnvironmentNotFoundError(environment_id, program_id)
    return environment

async def get_environment_logs(
    client: CloudManagerClient,
    environment: Environment,
    service: str,
    name: str,
    days: int = 1,
) -> HalResource:
    href = environment.link(REL_LOGS)
    if not href:
        raise LinkMissingError(
            "logs", f"environment {environment.id} for program {environment.program_id}"
        )

    query = {"service": service, "name": name, "days": days}
    if _QUERY_TEMPLATE.search(href):
        result = await client.get_json(expand_href(href, **query), "Cannot get logs")
    else:
        result = await client.get_json(href, "Cannot get logs", params=query)
    return HalResource.model_validate(result or {})

async def get_tailing_url(
    client: CloudManagerClient, program_id: str, environment: Environment, service: str, name: str
) -> str:
    """URL of today's log segment for a service/log name."""
    logs = await get_environment_logs(client, environment, service, name, days=1)
    downloads = logs.embedded_array("downloads")
    if not downloads:
        raise LogsNotFoundError(environment.id, program_id)

    href = downloads[0].link(REL_LOGS_TAIL)
    if not href:
        raise TailLinkNotFoundError(environment.id, program_id)
    return href

async def refresh_step_state(client: CloudManagerClient, href: str) -> StepState:
    result = await client.get_json(href, "Cannot refresh step state")
    return StepState.model_validate(result)

async def get_step_metrics(client: CloudManagerClient, step: StepState) -> StepMetrics:
    href = step.link(REL_STEP_METRICS)
    if not href:
        raise LinkMissingError("metrics", f"step {step.action}")
    result = await client.get_json(href, "Cannot get metrics")
    return StepMetrics.model_validate(result or {})

async def get_log_redirect(
    client: CloudManagerClient, href: str, params: Optional[dict] = None
) -> str:
    """Resolve a log link to the signed URL it redirects to."""
    response = await client.request("GET", href, "Cannot get log", params=params)
    body = response.json()
    redirect = body.get("redirect") if isinstance(body, dict) else None
    if not redirect:
        raise NoLogRedirectError(str(response.url), body)
    return redirect

async def get_command_execution(
    client: CloudManagerClient,
    program_id: str,
    environment_id: str,
    command_execution_id: str,
) -> CommandExecution:
    environment = await find_environment(client, program_id, environment_id)
    href = environment.link(REL_COMMERCE_COMMAND_EXECUTION_ID)
    if not href:
        raise CommerceNotSupportedError(environment_id)

    href = expand_href(href, commandExecutionId=command_execution_id)
    result = await client.get_json(href, "Could not get Commerce Command Execution")
    return CommandExecution.model_validate(result)

async def list_command_executions(
    client: CloudManagerClient,
    program_id: str,
    environment_id: str,
    type: Optional[str] = None,
    status: Optional[str] = None,
    command: Optional[str] = None,
) -> List[CommandExecution]:
    """Command executions of an environment, optionally filtered."""
    environment = await find_environment(client, program_id, environment_id)
    href = environment.link(REL_COMMERCE_COMMAND_EXECUTIONS)
    if not href:
        raise CommerceNotSupportedError(environment_id)

    filters = [
        f"{field}=={value}"
        for field, value in (("type", type), ("status", status), ("command", command))
        if value
    ]
    params = {"property": filters} if filters else None
    result = await client.get_json(
        href, "Could not get Commerce Command Executions", params=params
    )
    return HalResource.model_validate(result or {}).embedded_array(
        "commandExecutions", CommandExecution
    )

def command_log_href(environment: Environment, command_execution_id: str) -> str:
    href = environment.link(REL_COMMERCE_LOGS)
    if not href:
        raise NoLogUrlError(environment.id)
    return expand_href(href, commandExecutionId=command_execution_id)
