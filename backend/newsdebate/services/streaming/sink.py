"""
Stream Sinks.

WHAT THIS DOES:
A sink is the downstream end of a stream: it commits a status line and
headers once, then accepts one JSON frame per line until it is closed.

    status + headers  → sent lazily, right before the first frame
    write(frame)      → one line of NDJSON
    close()           → ends the body

LAZY HEADERS:
Until the first byte goes out we can still choose the status code. If the
very first thing a debate produces is an upstream failure, the client gets
a 502 instead of a 200 with an error inside. Once anything is committed,
errors can only be reported in-stream.

DISCONNECTS:
A write that fails at the transport level marks the sink closed and raises
SinkClosedError. That is the only cancellation signal we get: the
orchestrator stops issuing generation calls when it sees it.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping, MutableMapping
from typing import Any

from newsdebate.exceptions import SinkClosedError

logger = logging.getLogger(__name__)

NDJSON_MEDIA_TYPE = "application/x-ndjson; charset=utf-8"

NDJSON_HEADERS = {
    "content-type": NDJSON_MEDIA_TYPE,
    "cache-control": "no-cache, no-transform",
    "connection": "keep-alive",
    "x-accel-buffering": "no",
}


def encode_frame(frame: Mapping[str, Any]) -> bytes:
    """Serialize a frame as one NDJSON line."""
    return (json.dumps(frame, ensure_ascii=False) + "\n").encode("utf-8")


class StreamSink(ABC):
    """
    Base class for downstream sinks.

    Subclasses only implement the two transport calls; the commit/close
    bookkeeping lives here so every sink behaves the same way.
    """

    def __init__(self):
        self.status_code = 200
        self.headers_sent = False
        self.closed = False
        self.frames_written = 0
        # Concurrent turns share one sink; only one of them may send the start message
        self._commit_lock = asyncio.Lock()

    @abstractmethod
    async def _start(self, status_code: int, headers: Mapping[str, str]) -> None:
        """Commit status line and headers."""

    @abstractmethod
    async def _send(self, body: bytes, more_body: bool) -> None:
        """Send a piece of the body."""

    @property
    def committed(self) -> bool:
        """True once the status can no longer change (sent or being sent)."""
        return self.headers_sent or self._commit_lock.locked()

    async def _commit(self, headers: Mapping[str, str]) -> None:
        async with self._commit_lock:
            if self.headers_sent:
                return
            await self._start(self.status_code, headers)
            self.headers_sent = True

    async def send_headers(self, headers: Mapping[str, str] = NDJSON_HEADERS) -> None:
        """Commit headers with the current status. Idempotent, also across tasks."""
        if self.headers_sent:
            return
        try:
            await self._commit(headers)
        except OSError as e:
            self.closed = True
            raise SinkClosedError(f"Client disconnected: {e}") from e

    async def write(self, frame: Mapping[str, Any]) -> None:
        """Write one frame, committing headers first if needed."""
        if self.closed:
            raise SinkClosedError("Stream is already closed")
        await self.send_headers()
        try:
            await self._send(encode_frame(frame), more_body=True)
        except OSError as e:
            self.closed = True
            raise SinkClosedError(f"Client disconnected: {e}") from e
        self.frames_written += 1

    async def close(self) -> None:
        """End the body. Safe to call more than once."""
        if self.closed:
            return
        self.closed = True
        try:
            await self._commit(NDJSON_HEADERS)
            await self._send(b"", more_body=False)
        except OSError as e:
            logger.info(f"Client went away before the stream was closed: {e}")

    async def abort(self, status_code: int, frame: Mapping[str, Any]) -> None:
        """
        Fail the stream: use `status_code` if nothing is committed yet,
        write `frame` as the last line, and close.
        """
        if self.closed:
            return
        if not self.committed:
            self.status_code = status_code
        await self.write(frame)
        await self.close()


# =============================================================================
# ASGI SINK (used by the HTTP layer)
# =============================================================================

ASGISend = Callable[[MutableMapping[str, Any]], Awaitable[None]]


class ASGIStreamSink(StreamSink):
    """Sink that writes straight to an ASGI `send` callable."""

    def __init__(self, send: ASGISend):
        super().__init__()
        self._asgi_send = send

    async def _start(self, status_code: int, headers: Mapping[str, str]) -> None:
        await self._asgi_send({
            "type": "http.response.start",
            "status": status_code,
            "headers": [
                (name.encode("latin-1"), value.encode("latin-1"))
                for name, value in headers.items()
            ],
        })

    async def _send(self, body: bytes, more_body: bool) -> None:
        await self._asgi_send({
            "type": "http.response.body",
            "body": body,
            "more_body": more_body,
        })
