"""
Authenticated HTTP client for the Cloud Manager API.
"""

import json
import logging
from typing import Any, Dict, Optional, Type

import httpx

from cloudmanager.src.config import get_settings
from cloudmanager.src.core.clock import Clock
from cloudmanager.src.core.tail import TailEngine
from cloudmanager.src.errors import ConfigurationError, RequestError

logger = logging.getLogger(__name__)

def _problem_errors(problem: Dict[str, Any]) -> Optional[str]:
    """Flatten the `errors` member of a problem document."""
    errors = problem.get("errors")
    if isinstance(errors, list) and errors:
        return ", ".join(
            e.get("message", str(e)) if isinstance(e, dict) else str(e)
            for e in errors
        )
    if isinstance(errors, dict) and errors:
        parts = []
        for error in errors.values():
            if not isinstance(error, dict):
                parts.append(str(error))
            elif error.get("field") and error.get("message") and error.get("invalidValue"):
                parts.append(f"{error['field']} ({error['invalidValue']}) {error['message']}")
            else:
                parts.append(str(error.get("message", "")))
        return ", ".join(parts)
    return None

def describe_failure(response: httpx.Response) -> Dict[str, Any]:
    """Extract error detail from a failed response body, if it has any."""
    content_type = response.headers.get("content-type", "")
    try:
        if content_type.startswith("application/problem+json"):
            problem = json.loads(response.text)
            errors = _problem_errors(problem)
            if errors:
                title = problem.get("title") or "Error"
                return {"detail": f"{title}: {errors}", "errors": problem.get("errors")}
        elif content_type == "application/json":
            body = json.loads(response.text)
            if isinstance(body, dict) and body.get("message"):
                detail = f"Detail: {body['message']}"
                if body.get("error_code"):
                    detail = f"{detail} (Code: {body['error_code']})"
                return {"detail": detail, "errors": body}
    except ValueError:
        # Body is not useful for the error message
        pass
    return {}

class CloudManagerClient:
    """
    Async client carrying credentials for API calls.

    Log segments live on a separate file store reached through signed
    redirect URLs, so they are fetched with a second client that sends
    no credentials.

    Usage::

        async with CloudManagerClient(org_id, api_key, token) as client:
            await cancel_current_execution(client, "4", "7")
    """

    def __init__(
        self,
        org_id: Optional[str] = None,
        api_key: Optional[str] = None,
        access_token: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        files_transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Optional[Clock] = None,
    ):
        self.settings = get_settings()

        self.org_id = org_id or self.settings.org_id
        self.api_key = api_key or self.settings.api_key
        self.access_token = access_token or self.settings.access_token
        self.base_url = (base_url or self.settings.base_url).rstrip("/")

        missing = [
            name for name, value in (
                ("orgId", self.org_id),
                ("apiKey", self.api_key),
                ("accessToken", self.access_token),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(missing)

        timeout = timeout or self.settings.request_timeout
        self.api = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "x-gw-ims-org-id": self.org_id,
                "X-Api-Key": self.api_key,
                "Authorization": f"Bearer {self.access_token}",
                "Accept": "application/json",
            },
        )
        self.files = httpx.AsyncClient(
            timeout=timeout,
            transport=files_transport or transport,
        )
        self.clock = clock or Clock()

    def tail_engine(self) -> TailEngine:
        return TailEngine(self.files, self.clock)

    async def request(
        self,
        method: str,
        path: str,
        action: str = "Request failed",
        body: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
        error_class: Type[RequestError] = RequestError,
    ) -> httpx.Response:
        """Send an API request; non-success responses raise `error_class`."""
        logger.debug(f"fetch: {method} {path}")

        response = await self.api.request(method, path, json=body, params=params)

        request_id = response.headers.get("x-request-id")
        if request_id:
            logger.debug(f"request id: {request_id}")

        if not response.is_success:
            raise error_class(
                str(response.url),
                response.status_code,
                response.reason_phrase,
                action=action,
                **describe_failure(response),
            )
        return response

    async def get_json(self, path: str, action: str, params: Optional[Dict[str, Any]] = None) -> Any:
        response = await self.request("GET", path, action, params=params)
        return response.json()

    async def put_json(
        self,
        path: str,
        body: Any,
        action: str,
        error_class: Type[RequestError] = RequestError,
    ) -> httpx.Response:
        return await self.request("PUT", path, action, body=body, error_class=error_class)

    async def aclose(self):
        await self.api.aclose()
        await self.files.aclose()

    async def __aenter__(self) -> "CloudManagerClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()
