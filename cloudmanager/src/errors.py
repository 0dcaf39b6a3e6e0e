"""
SDK exception hierarchy.

Every error raised by the SDK derives from CloudManagerError.
"""

from typing import Any, Optional

class CloudManagerError(Exception):
    """Base exception for all SDK errors."""

class ConfigurationError(CloudManagerError):
    """Raised when the client is created without credentials."""

    def __init__(self, missing: list) -> None:
        self.missing = missing
        super().__init__(
            f"SDK initialization error(s). Missing arguments: {', '.join(missing)}"
        )

class RequestError(CloudManagerError):
    """Raised when an API request returns a non-success status."""

    action = "Request failed"

    def __init__(
        self,
        url: str,
        status: int,
        reason: str = "",
        detail: Optional[str] = None,
        errors: Optional[Any] = None,
        action: Optional[str] = None,
    ) -> None:
        if action:
            self.action = action
        self.url = url
        self.status = status
        self.reason = reason
        self.detail = detail
        self.errors = errors
        message = f"{self.action}: {url} ({status} {reason})"
        if detail:
            message = f"{message} - {detail}"
        super().__init__(message)

class TransitionError(RequestError):
    """Raised when a cancel or advance request is rejected."""

    action = "Cannot transition step"

# Not found

class NotFoundError(CloudManagerError):
    """A selector did not resolve to any resource."""

class ProgramNotFoundError(NotFoundError):
    def __init__(self, program_id: str) -> None:
        self.program_id = program_id
        super().__init__(f"Could not find program {program_id}")

class PipelineNotFoundError(NotFoundError):
    def __init__(self, pipeline_id: str, program_id: str) -> None:
        self.pipeline_id = pipeline_id
        self.program_id = program_id
        super().__init__(f"Pipeline {pipeline_id} does not exist in program {program_id}.")

class EnvironmentNotFoundError(NotFoundError):
    def __init__(self, environment_id: str, program_id: str) -> None:
        self.environment_id = environment_id
        self.program_id = program_id
        super().__init__(
            f"Could not find environment {environment_id} for program {program_id}."
        )

class StepNotFoundError(NotFoundError):
    def __init__(self, action: str, execution_id: str) -> None:
        self.action = action
        self.execution_id = execution_id
        super().__init__(
            f"Cannot find step state for action {action} on execution {execution_id}."
        )

class CurrentStepNotFoundError(NotFoundError):
    def __init__(self, pipeline_id: str) -> None:
        self.pipeline_id = pipeline_id
        super().__init__(f"Cannot find a current step for pipeline {pipeline_id}.")

class WaitingStepNotFoundError(NotFoundError):
    def __init__(self, pipeline_id: str) -> None:
        self.pipeline_id = pipeline_id
        super().__init__(f"Cannot find a waiting step for pipeline {pipeline_id}.")

class LogsNotFoundError(NotFoundError):
    def __init__(self, environment_id: str, program_id: str) -> None:
        self.environment_id = environment_id
        self.program_id = program_id
        super().__init__(f"No logs available in {environment_id} for program {program_id}")

class TailLinkNotFoundError(NotFoundError):
    def __init__(self, environment_id: str, program_id: str) -> None:
        self.environment_id = environment_id
        self.program_id = program_id
        super().__init__(
            f"No logs for tailing available in {environment_id} for program {program_id}"
        )

# Missing links

class LinkMissingError(CloudManagerError):
    """A resource was found but lacks the link an operation needs.

    The resource is usually not in a state that supports the operation.
    """

    def __init__(self, rel: str, subject: str, message: Optional[str] = None) -> None:
        self.rel = rel
        self.subject = subject
        super().__init__(message or f"Cannot find a {rel} link for {subject}.")

class NoLogUrlError(LinkMissingError):
    def __init__(self, environment_id: str) -> None:
        self.environment_id = environment_id
        super().__init__(
            "commerce logs",
            f"environment {environment_id}",
            f"Could not get the log url for environment: {environment_id}",
        )

class CommerceNotSupportedError(LinkMissingError):
    def __init__(self, environment_id: str) -> None:
        self.environment_id = environment_id
        super().__init__(
            "commerce command execution",
            f"environment {environment_id}",
            f"Environment {environment_id} does not appear to support Commerce CLI",
        )

# Preconditions

class UnsupportedStepError(CloudManagerError):
    """Raised when advancing a step kind the SDK cannot advance."""

    def __init__(self, action: str) -> None:
        self.action = action
        super().__init__(f"Advancing the step {action} is not supported at present.")

class StepNotRunningError(CloudManagerError):
    def __init__(self, action: str, execution_id: str) -> None:
        self.action = action
        self.execution_id = execution_id
        super().__init__(
            f"The {action} step in execution {execution_id} is not currently running."
        )

class CommandNotRunningError(CloudManagerError):
    def __init__(self, command_execution_id: str) -> None:
        self.command_execution_id = command_execution_id
        super().__init__(
            f"The command associated with execution {command_execution_id} is not running."
        )

class NoLogRedirectError(CloudManagerError):
    def __init__(self, url: str, body: Any) -> None:
        self.url = url
        self.body = body
        super().__init__(f"Log {url} did not contain a redirect. Was {body}.")

class LogSizeError(CloudManagerError):
    def __init__(self, url: str, status: int) -> None:
        self.url = url
        self.status = status
        super().__init__(f"Could not get initial size of {url} ({status})")

# Downloads

class LogDownloadError(CloudManagerError):
    def __init__(self, url: str, path: str, status: int, reason: str = "") -> None:
        self.url = url
        self.path = path
        self.status = status
        self.reason = reason
        super().__init__(f"Could not download {url} to {path} ({status} {reason}).")

class LogUnzipError(CloudManagerError):
    def __init__(self, url: str, path: str) -> None:
        self.url = url
        self.path = path
        super().__init__(f"Could not unzip {url} to {path}.")

# Tailing

class TailError(CloudManagerError):
    """Raised when a tail poll returns an unexpected status."""

    prefix = "Cannot tail log"

    def __init__(self, url: str, status: int, reason: str = "") -> None:
        self.url = url
        self.status = status
        self.reason = reason
        super().__init__(f"{self.prefix}: {url} ({status} {reason})")

class LogNotFoundError(TailError):
    """The tailed log does not exist."""

    prefix = "Log not found"
