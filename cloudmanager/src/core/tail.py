"""
Follow a remote, append-only log that is still being written.

A session repeatedly issues `Range: bytes=<offset>-` reads against the
current segment URL. Partial content is flushed to the sink and the
offset advances; "not ready yet" responses trigger a fixed backoff;
anything else ends the session with an error. One request is in flight
at a time, so bytes reach the sink strictly in offset order.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol

import httpx

from cloudmanager.src.core.clock import Clock, is_near_utc_midnight
from cloudmanager.src.errors import LogNotFoundError, LogSizeError, TailError

logger = logging.getLogger(__name__)

class TailState(str, Enum):
    POLLING = "polling"
    BACKOFF = "backoff"
    ROLLING_OVER = "rolling_over"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"

class Sink(Protocol):
    def write(self, data: bytes): ...

ActiveCheck = Callable[[], Awaitable[bool]]
SegmentResolver = Callable[[], Awaitable[str]]
ChunkTransform = Callable[[bytes], bytes]

@dataclass
class TailCursor:
    """Mutable state of one tail session."""
    target_url: str
    offset: int = 0
    terminated: bool = False
    state: TailState = TailState.POLLING
    not_ready: int = 0  # Consecutive not-ready responses
    reads: int = 0

@dataclass(frozen=True)
class TailPolicy:
    backoff: float
    # Treat 404 as "log not created yet" instead of a failure
    not_found_is_transient: bool = False
    # Consult the active check only after this many consecutive
    # not-ready responses. None checks after every read.
    max_not_ready: Optional[int] = None
    rollover: bool = False
    rollover_window_minutes: int = 5

class TailEngine:
    """Drives tail sessions over a plain (unauthenticated) HTTP client."""

    def __init__(self, http: httpx.AsyncClient, clock: Optional[Clock] = None):
        self.http = http
        self.clock = clock or Clock()

    async def segment_size(self, url: str) -> int:
        """Current size of a log segment, from a HEAD request."""
        response = await self.http.head(url)
        if not response.is_success:
            raise LogSizeError(url, response.status_code)
        return int(response.headers.get("content-length", 0))

    async def follow(
        self,
        cursor: TailCursor,
        sink: Sink,
        policy: TailPolicy,
        is_active: Optional[ActiveCheck] = None,
        resolve_segment: Optional[SegmentResolver] = None,
        transform: Optional[ChunkTransform] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> TailCursor:
        """
        Run the session until the bounded resource stops, the caller
        sets `cancel`, or a read fails.

        Without `is_active` the session is unbounded. Raises TailError
        (or LogNotFoundError) on an unexpected response.
        """
        logger.info(f"Tailing {cursor.target_url} from offset {cursor.offset}")

        while True:
            if cancel is not None and cancel.is_set():
                return self._finish(cursor, TailState.CANCELLED)

            cursor.state = TailState.POLLING
            response = await self._read(cursor)
            status = response.status_code

            if status == 206:
                self._deliver(cursor, response, sink, transform)
            elif status == 416 or (status == 404 and policy.not_found_is_transient):
                cursor.not_ready += 1
                if await self._backoff(cursor, policy, resolve_segment, cancel):
                    return self._finish(cursor, TailState.CANCELLED)
            elif status == 404:
                cursor.state = TailState.FAILED
                raise LogNotFoundError(str(response.url), status, response.reason_phrase)
            else:
                cursor.state = TailState.FAILED
                raise TailError(str(response.url), status, response.reason_phrase)

            if is_active is not None and self._check_due(cursor, policy):
                if not await is_active():
                    cursor.terminated = True
                    return self._finish(cursor, TailState.DONE)

    async def _read(self, cursor: TailCursor) -> httpx.Response:
        cursor.reads += 1
        return await self.http.get(
            cursor.target_url,
            headers={"Range": f"bytes={cursor.offset}-"},
        )

    def _deliver(self, cursor, response, sink, transform):
        data = response.content
        if transform is not None:
            data = transform(data)
        if data:
            sink.write(data)
            flush = getattr(sink, "flush", None)
            if flush is not None:
                flush()

        length = response.headers.get("content-length")
        cursor.offset += int(length) if length is not None else len(response.content)
        cursor.not_ready = 0

    def _check_due(self, cursor: TailCursor, policy: TailPolicy) -> bool:
        if policy.max_not_ready is None:
            return True
        if cursor.not_ready >= policy.max_not_ready:
            cursor.not_ready = 0
            return True
        return False

    async def _backoff(self, cursor, policy, resolve_segment, cancel) -> bool:
        """Wait after a not-ready read. Returns True if cancelled."""
        cursor.state = TailState.BACKOFF
        if await self.clock.sleep(policy.backoff, cancel):
            return True

        if (
            policy.rollover
            and resolve_segment is not None
            and is_near_utc_midnight(self.clock.now(), policy.rollover_window_minutes)
        ):
            cursor.state = TailState.ROLLING_OVER
            return await self._roll_over(cursor, policy, resolve_segment, cancel)

        return False

    async def _roll_over(self, cursor, policy, resolve_segment, cancel) -> bool:
        url = await resolve_segment()
        size = await self.segment_size(url)

        # A segment shorter than what we already read is the next day's file
        if size < cursor.offset:
            logger.info(f"Log rolled over to {url}, resuming at offset {size}")
            cursor.target_url = url
            cursor.offset = size
            return False

        # Still the same day's file, slow down around midnight
        return await self.clock.sleep(policy.backoff, cancel)

    def _finish(self, cursor: TailCursor, state: TailState) -> TailCursor:
        cursor.state = state
        logger.info(
            f"Tail of {cursor.target_url} {state.value} at offset {cursor.offset} "
            f"after {cursor.reads} read(s)"
        )
        return cursor
