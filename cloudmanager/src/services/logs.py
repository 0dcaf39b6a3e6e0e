"""
Environment log downloads and tailing.
"""

import asyncio
import logging
import zlib
from pathlib import Path
from typing import Any, Dict, List, Optional

from cloudmanager.src.api.client import CloudManagerClient
from cloudmanager.src.api.resources import (
    find_environment,
    get_environment_logs,
    get_log_redirect,
    get_tailing_url,
)
from cloudmanager.src.core.tail import Sink, TailCursor, TailPolicy
from cloudmanager.src.errors import LogDownloadError, LogUnzipError
from cloudmanager.src.models.hal import REL_LOGS_DOWNLOAD
from cloudmanager.src.models.step import LogDownload

logger = logging.getLogger(__name__)

async def list_available_log_options(
    client: CloudManagerClient, program_id: str, environment_id: str
) -> List[Dict[str, Any]]:
    """Service/log name pairs that can be downloaded or tailed."""
    environment = await find_environment(client, program_id, environment_id)
    return environment.available_log_options

async def tail_log(
    client: CloudManagerClient,
    program_id: str,
    environment_id: str,
    service: str,
    name: str,
    sink: Sink,
    cancel: Optional[asyncio.Event] = None,
) -> TailCursor:
    """
    Stream new entries of an environment log, starting at its current end.

    Logs are split into one file per UTC day; the session follows the
    switch to the next file around midnight. It only ends when `cancel`
    is set or a read fails.
    """
    environment = await find_environment(client, program_id, environment_id)
    engine = client.tail_engine()

    async def resolve_segment() -> str:
        return await get_tailing_url(client, program_id, environment, service, name)

    url = await resolve_segment()
    offset = await engine.segment_size(url)

    policy = TailPolicy(
        backoff=client.settings.environment_log_backoff,
        rollover=True,
        rollover_window_minutes=client.settings.rollover_window_minutes,
    )
    return await engine.follow(
        TailCursor(target_url=url, offset=offset),
        sink,
        policy,
        resolve_segment=resolve_segment,
        cancel=cancel,
    )

async def _download(
    client: CloudManagerClient, href: str, path: Path, download: LogDownload, index: int
) -> Dict[str, Any]:
    url = await get_log_redirect(client, href)

    async with client.files.stream("GET", url) as response:
        if not response.is_success:
            raise LogDownloadError(url, str(path), response.status_code, response.reason_phrase)

        # Stored files are gzip archives; a truncated archive keeps what was inflated
        inflater = zlib.decompressobj(zlib.MAX_WBITS | 16)
        try:
            with open(path, "wb") as out:
                async for chunk in response.aiter_raw():
                    out.write(inflater.decompress(chunk))
                out.write(inflater.flush())
        except zlib.error as e:
            raise LogUnzipError(url, str(path)) from e

    logger.info(f"Downloaded {download.file_name()} to {path}")
    return {
        **download.model_dump(exclude={"links", "embedded"}, exclude_none=True),
        "index": index,
        "path": str(path),
        "url": str(client.api.base_url.join(href)),
    }

async def download_logs(
    client: CloudManagerClient,
    program_id: str,
    environment_id: str,
    service: str,
    name: str,
    days: int,
    output_directory,
) -> List[Dict[str, Any]]:
    """
    Download `days` days of a service log into `output_directory`.

    Files are named `<environment>-<service>-<name>-<date>.log`, with an
    index suffix when a day is split across several files. Returns one
    entry per file with its listing fields, `index`, `path` and `url`.
    """
    environment = await find_environment(client, program_id, environment_id)
    logs = await get_environment_logs(client, environment, service, name, days)

    output = Path(output_directory)
    output.mkdir(parents=True, exist_ok=True)

    downloads = []
    for download in logs.embedded_array("downloads", LogDownload):
        hrefs = download.link_array(REL_LOGS_DOWNLOAD)
        for index, href in enumerate(hrefs):
            file_name = download.file_name(index if len(hrefs) > 1 else None)
            path = output / f"{environment_id}-{file_name}"
            downloads.append(_download(client, href, path, download, index))

    return list(await asyncio.gather(*downloads))
