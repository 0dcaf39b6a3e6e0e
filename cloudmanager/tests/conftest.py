"""Shared fixtures: fake clock, HAL payload builders and a mock HTTP router."""

import asyncio
from datetime import datetime, timezone

import httpx
import pytest

from cloudmanager.src.api.client import CloudManagerClient
from cloudmanager.src.models.hal import (
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
    REL_STEP_ADVANCE,
    REL_STEP_CANCEL,
    REL_STEP_LOGS,
    REL_STEP_METRICS,
)

BASE_URL = "https://cloudmanager.adobe.io"
EXECUTION_PATH = "/api/program/4/pipeline/7/execution/1000"

STEP_RELS = {
    "self": REL_SELF,
    "cancel": REL_STEP_CANCEL,
    "advance": REL_STEP_ADVANCE,
    "logs": REL_STEP_LOGS,
    "metrics": REL_STEP_METRICS,
}

class FakeClock:
    """Clock that never waits and records every requested sleep."""

    def __init__(self, now=None):
        self.current = now or datetime(2021, 9, 8, 12, 0, tzinfo=timezone.utc)
        self.sleeps = []

    def now(self):
        return self.current

    async def sleep(self, seconds, cancel=None):
        self.sleeps.append(seconds)
        return cancel is not None and cancel.is_set()

class Routes:
    """
    httpx MockTransport handler keyed by (method, url).
    Responses for a route are served in order; the last one repeats.
    """

    def __init__(self):
        self.handlers = {}
        self.calls = []

    def add(self, method, url, *responses):
        if url.startswith("/"):
            url = BASE_URL + url
        self.handlers[(method, url)] = list(responses)

    def __call__(self, request):
        self.calls.append(request)
        queue = self.handlers.get((request.method, str(request.url)))
        if not queue:
            return httpx.Response(404)
        factory = queue.pop(0) if len(queue) > 1 else queue[0]
        return factory(request)

    def requests(self, method, url):
        if url.startswith("/"):
            url = BASE_URL + url
        return [
            r for r in self.calls
            if r.method == method and str(r.url) == url
        ]

def json_body(body, status_code=200):
    return lambda request: httpx.Response(status_code, json=body)

def status(status_code, **kwargs):
    return lambda request: httpx.Response(status_code, **kwargs)

def partial(data: bytes):
    return lambda request: httpx.Response(206, content=data)

def links(**rels):
    return {rel: {"href": href} for rel, href in rels.items()}

def step_json(action, step_status, step_id="1", environment_type=None,
              rels=("self", "cancel", "advance", "logs", "metrics")):
    base = f"{EXECUTION_PATH}/phase/1/step/{step_id}"
    paths = {
        "self": base,
        "cancel": f"{base}/cancel",
        "advance": f"{base}/advance",
        "logs": f"{base}/logs",
        "metrics": f"{base}/metrics",
    }
    step = {
        "id": step_id,
        "action": action,
        "status": step_status,
        "_links": {STEP_RELS[name]: {"href": paths[name]} for name in rels},
    }
    if environment_type:
        step["environmentType"] = environment_type
    return step

def execution_json(*steps, execution_id="1000"):
    return {
        "id": execution_id,
        "programId": "4",
        "pipelineId": "7",
        "status": "RUNNING",
        "_links": links(self=EXECUTION_PATH),
        "_embedded": {"stepStates": list(steps)},
    }

def add_program_tree(routes: Routes):
    """Programs, pipeline 7 and environment 1 of program 4."""
    routes.add("GET", "/api/programs", json_body({
        "_embedded": {"programs": [{"id": "4", "_links": links(self="/api/program/4")}]},
    }))
    routes.add("GET", "/api/program/4", json_body({
        "id": "4",
        "_links": {
            REL_PIPELINES: {"href": "/api/program/4/pipelines"},
            REL_ENVIRONMENTS: {"href": "/api/program/4/environments"},
        },
    }))
    routes.add("GET", "/api/program/4/pipelines", json_body({
        "_embedded": {"pipelines": [{
            "id": "7",
            "_links": {
                REL_EXECUTION: {"href": "/api/program/4/pipeline/7/execution"},
                REL_EXECUTION_ID: {
                    "href": "/api/program/4/pipeline/7/execution/{executionId}",
                    "templated": True,
                },
            },
        }]},
    }))
    routes.add("GET", "/api/program/4/environments", json_body({
        "_embedded": {"environments": [{
            "id": "1",
            "programId": "4",
            "name": "dev",
            "availableLogOptions": [
                {"service": "author", "name": "aemerror"},
                {"service": "publish", "name": "aemaccess"},
            ],
            "_links": {
                REL_LOGS: {
                    "href": "/api/program/4/environment/1/logs{?service,name,days}",
                    "templated": True,
                },
                REL_COMMERCE_COMMAND_EXECUTION_ID: {
                    "href": "/api/program/4/environment/1/runtime/commerce/command-execution/{commandExecutionId}",
                    "templated": True,
                },
                REL_COMMERCE_LOGS: {
                    "href": "/api/program/4/environment/1/runtime/commerce/command-execution/{commandExecutionId}/logs",
                    "templated": True,
                },
                REL_COMMERCE_COMMAND_EXECUTIONS: {
                    "href": "/api/program/4/environment/1/runtime/commerce/command-executions",
                },
            },
        }]},
    }))

def logs_listing(tail_href):
    download = {"service": "author", "name": "aemerror", "date": "2021-09-08", "_links": {}}
    if tail_href:
        download["_links"] = {REL_LOGS_TAIL: {"href": tail_href}}
    return {"_embedded": {"downloads": [download]}}

def run(coro):
    return asyncio.run(coro)

@pytest.fixture
def routes():
    routes = Routes()
    add_program_tree(routes)
    return routes

@pytest.fixture
def clock():
    return FakeClock()

@pytest.fixture
def make_client(routes, clock):
    def _make():
        return CloudManagerClient(
            org_id="org",
            api_key="key",
            access_token="token",
            base_url=BASE_URL,
            transport=httpx.MockTransport(routes),
            clock=clock,
        )
    return _make
