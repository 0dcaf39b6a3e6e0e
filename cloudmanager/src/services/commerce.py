"""
Commerce command execution logs.
"""

import asyncio
import json
import logging
from typing import Optional

from cloudmanager.src.api.client import CloudManagerClient
from cloudmanager.src.api.resources import (
    command_log_href,
    find_environment,
    get_command_execution,
    get_log_redirect,
)
from cloudmanager.src.core.tail import Sink, TailCursor, TailPolicy
from cloudmanager.src.errors import CommandNotRunningError
from cloudmanager.src.models.step import CommandStatus

logger = logging.getLogger(__name__)

LOG_FIELD = "log"

def commerce_log_transform(chunk: bytes) -> bytes:
    """
    Turn complete JSON lines into plain log lines.
    Lines that are not JSON records with a log field are dropped.
    """
    lines = []
    for line in chunk.decode("utf-8", errors="replace").split("\n"):
        if not line:
            continue
        try:
            record = json.loads(line)
        except ValueError:
            continue
        if not isinstance(record, dict) or not isinstance(record.get(LOG_FIELD), str):
            continue

        message = record[LOG_FIELD]
        lines.append(message if message.endswith("\n") else message + "\n")

    return "".join(lines).encode("utf-8")

class CommerceLogDecoder:
    """
    Chunk transform for one tail session.

    Range reads end at arbitrary byte positions, so the bytes after the
    last newline are held back until a later chunk completes the line.
    """

    def __init__(self):
        self.pending = b""

    def __call__(self, chunk: bytes) -> bytes:
        complete, _, self.pending = (self.pending + chunk).rpartition(b"\n")
        return commerce_log_transform(complete)

    def flush(self) -> bytes:
        """Decode whatever is left once the session ends."""
        rest, self.pending = self.pending, b""
        return commerce_log_transform(rest)

class CommandWatch:
    """Re-fetches command status and keeps the latest value."""

    def __init__(self, client, program_id, environment_id, command_execution_id, status):
        self.client = client
        self.program_id = program_id
        self.environment_id = environment_id
        self.command_execution_id = command_execution_id
        self.status = status

    async def __call__(self) -> bool:
        command = await get_command_execution(
            self.client, self.program_id, self.environment_id, self.command_execution_id
        )
        self.status = command.status
        return self.status == CommandStatus.RUNNING

async def tail_commerce_command_log(
    client: CloudManagerClient,
    program_id: str,
    environment_id: str,
    command_execution_id: str,
    sink: Sink,
    cancel: Optional[asyncio.Event] = None,
) -> str:
    """
    Stream the output of a running commerce command until it stops.
    Returns the final command status.
    """
    command = await get_command_execution(
        client, program_id, environment_id, command_execution_id
    )
    if command.status != CommandStatus.RUNNING:
        raise CommandNotRunningError(command_execution_id)

    environment = await find_environment(client, program_id, environment_id)
    url = await get_log_redirect(client, command_log_href(environment, command_execution_id))

    watch = CommandWatch(
        client, program_id, environment_id, command_execution_id, command.status
    )
    policy = TailPolicy(
        backoff=client.settings.command_log_backoff,
        not_found_is_transient=True,
        max_not_ready=client.settings.command_max_not_ready,
    )
    decoder = CommerceLogDecoder()
    await client.tail_engine().follow(
        TailCursor(target_url=url),
        sink,
        policy,
        is_active=watch,
        transform=decoder,
        cancel=cancel,
    )

    # The last record may not be newline terminated
    rest = decoder.flush()
    if rest:
        sink.write(rest)
    return watch.status
