"""
Proxy Relay — re-frames upstream events as NDJSON for the browser.

WHAT THIS DOES:
Takes the StreamEvents of one generation call and writes them to a sink as
newline-delimited JSON, tagged with a content type so the client can tell
the two concurrent turns of a debate round apart. It also accumulates the
full text so the caller can embed it in later prompts and cache it.

FRAMES (one JSON object per line):
    {"type": "token", "contentType": "opening_for", "text": "The"}
    {"type": "segment_done", "contentType": "opening_for", "done": true}
    {"type": "error", "contentType": "opening_for", "text": "Malformed ..."}
    {"type": "warn", "text": "Debate could not be cached: ..."}
    {"type": "done", "done": true, "payload": {...}}

ERROR RULES:
- StreamError event → error frame. If nothing has been committed yet the
  response status becomes 502 first; after that it is in-stream only
  (a started 200 can't be downgraded).
- Upstream call failure (UpstreamError raised by the event source) before
  the sink was opened → 502 + error frame + close, then re-raise.
  After the sink is open → re-raise untouched; the request handler writes
  the terminal error frame (see terminate_stream).
- The relay never closes the sink otherwise. The orchestrator closes it
  after the final "done" frame.

USAGE:
    relay = ProxyRelay(sink)
    text = await relay.relay(client.stream(request, "opening_for"), "opening_for")
"""

import logging
from collections.abc import AsyncIterator, Mapping
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any, Optional

from newsdebate.exceptions import SinkClosedError, UpstreamError
from newsdebate.services.streaming.events import (
    SegmentDone,
    StreamDone,
    StreamError,
    StreamEvent,
    Token,
    unhandled_event,
)
from newsdebate.services.streaming.sink import NDJSON_HEADERS, StreamSink

logger = logging.getLogger(__name__)

UPSTREAM_FAILURE_STATUS = 502
INTERNAL_FAILURE_STATUS = 500


# =============================================================================
# FRAMES
# =============================================================================

def token_frame(content_type: str, text: str) -> dict:
    return {"type": "token", "contentType": content_type, "text": text}


def segment_done_frame(content_type: str) -> dict:
    return {"type": "segment_done", "contentType": content_type, "done": True}


def error_frame(text: str, content_type: Optional[str] = None) -> dict:
    frame = {"type": "error", "text": text}
    if content_type is not None:
        frame["contentType"] = content_type
    return frame


def warn_frame(text: str) -> dict:
    return {"type": "warn", "text": text}


def done_frame(payload: Mapping[str, Any]) -> dict:
    return {"type": "done", "done": True, "payload": dict(payload)}


# =============================================================================
# RELAY
# =============================================================================

@dataclass
class RelayState:
    """Per-call accumulator. Created by relay(), discarded when it returns."""
    content_type: str
    parts: list[str] = field(default_factory=list)
    error_count: int = 0

    @property
    def text(self) -> str:
        return "".join(self.parts)


class ProxyRelay:
    """Writes StreamEvents to a sink as NDJSON frames."""

    def __init__(self, sink: StreamSink):
        self.sink = sink
        # Content types whose stream reported at least one error frame
        self.errored_segments: list[str] = []

    async def _ensure_headers(self) -> None:
        if not self.sink.headers_sent:
            await self.sink.send_headers(NDJSON_HEADERS)

    async def relay(self, events: AsyncIterator[StreamEvent], content_type: str) -> str:
        """
        Relay one generation call and return its full text.

        Returns when the segment completes (StreamDone / SegmentDone).
        """
        state = RelayState(content_type=content_type)
        try:
            async with aclosing(events):
                async for event in events:
                    finished = await self._handle(event, state)
                    if finished:
                        break
        except UpstreamError as e:
            logger.error(f"Upstream call for {content_type} failed: {e.message}")
            if not self.sink.committed and not self.sink.closed:
                try:
                    await self.sink.abort(
                        UPSTREAM_FAILURE_STATUS,
                        error_frame(e.message, content_type),
                    )
                except SinkClosedError:
                    logger.info(f"Client disconnected before {content_type} error could be sent")
            raise

        if state.error_count:
            self.errored_segments.append(content_type)
            logger.warning(f"{content_type}: {state.error_count} malformed frame(s) skipped")
        logger.info(f"{content_type}: relayed {len(state.text)} characters")
        return state.text

    async def _handle(self, event: StreamEvent, state: RelayState) -> bool:
        """Write one event. Returns True when the segment is complete."""
        if isinstance(event, Token):
            await self._ensure_headers()
            await self.sink.write(token_frame(event.content_type, event.text))
            state.parts.append(event.text)
            return False

        if isinstance(event, (StreamDone, SegmentDone)):
            await self._ensure_headers()
            await self.sink.write(segment_done_frame(state.content_type))
            return True

        if isinstance(event, StreamError):
            state.error_count += 1
            if not self.sink.committed:
                self.sink.status_code = UPSTREAM_FAILURE_STATUS
            await self._ensure_headers()
            await self.sink.write(error_frame(event.text, event.content_type or state.content_type))
            return False

        unhandled_event(event)

    async def replay(self, content_type: str, text: str) -> None:
        """Write a stored text as if it had just streamed (cache hits)."""
        await self._ensure_headers()
        await self.sink.write(token_frame(content_type, text))
        await self.sink.write(segment_done_frame(content_type))

    async def warn(self, text: str) -> None:
        await self._ensure_headers()
        await self.sink.write(warn_frame(text))

    async def finish(self, payload: Mapping[str, Any]) -> None:
        """Write the terminal frame and close the sink."""
        await self._ensure_headers()
        await self.sink.write(done_frame(payload))
        await self.sink.close()


# =============================================================================
# TOP-LEVEL FAILURE HANDLING
# =============================================================================

async def terminate_stream(sink: StreamSink, error: Exception) -> None:
    """
    Make sure a failed stream still ends with a terminal frame.

    Nothing committed yet → structured error response (502 for upstream
    failures, 500 otherwise). Already streaming → final error frame + close.
    """
    if sink.closed:
        return
    status = UPSTREAM_FAILURE_STATUS if isinstance(error, UpstreamError) else INTERNAL_FAILURE_STATUS
    message = getattr(error, "message", None) or str(error) or type(error).__name__
    try:
        await sink.abort(status, error_frame(message))
    except SinkClosedError:
        logger.info("Client disconnected before the error frame could be written")
