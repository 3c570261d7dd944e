"""
Stream Frame Parser — turns upstream streams into StreamEvents.

WHAT THIS DOES:
Generation backends stream tokens in one of two shapes. This module decodes
both into the same closed set of events (see events.py) so the relay never
has to know which vendor it is talking to.

SHAPE 1: LINE-ORIENTED (OpenRouter / OpenAI-compatible chat completions)
═══════════════════════════════════════════════════════════════════════════════
The HTTP body is a byte stream of lines:

    : OPENROUTER PROCESSING                                  ← keep-alive, ignored
    data: {"choices":[{"delta":{"content":"The"}}]}          ← Token("The")
    data: {"choices":[{"delta":{"content":" council"}}]}     ← Token(" council")
    data: {not json                                          ← StreamError, keep going
    data: [DONE]                                             ← StreamDone

Chunks arrive cut at arbitrary byte offsets, even in the middle of a UTF-8
character. We buffer bytes and only decode a line once its newline has
arrived; the tail of a chunk waits for the next one.
═══════════════════════════════════════════════════════════════════════════════

SHAPE 2: EVENT-TYPED (OpenAI Responses API via the openai SDK)
═══════════════════════════════════════════════════════════════════════════════
The SDK already decodes events into objects with a `type` field:

    response.output_text.delta   → Token(event.delta)
    response.completed           → StreamDone
    error / response.failed      → StreamError
    anything else                → ignored
═══════════════════════════════════════════════════════════════════════════════

USAGE:
    parser = LineStreamParser("opening_for")
    for chunk in chunks:
        for event in parser.feed(chunk):
            ...
    for event in parser.finish():
        ...
"""

import json
import logging
from collections.abc import AsyncIterable, AsyncIterator
from typing import Any, Optional

from newsdebate.exceptions import UpstreamFrameError
from newsdebate.services.streaming.events import (
    StreamDone,
    StreamError,
    StreamEvent,
    Token,
)
from newsdebate.services.streaming.text_filter import TextFilter

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"

# Responses API event types we care about
TYPED_DELTA = "response.output_text.delta"
TYPED_COMPLETED = "response.completed"
TYPED_ERRORS = ("error", "response.failed")


# =============================================================================
# LINE-ORIENTED PARSER
# =============================================================================

class LineStreamParser:
    """
    Incremental parser for `data: <json>` line streams.

    One instance per generation call. All state (the partial-line buffer and
    the done flag) lives on the instance.
    """

    def __init__(self, content_type: str, text_filter: Optional[TextFilter] = None):
        self.content_type = content_type
        self.text_filter = text_filter
        self.done = False
        self._buffer = b""

    def feed(self, chunk: bytes) -> list[StreamEvent]:
        """
        Add raw bytes and return the events for every complete line.

        Anything after the last newline stays buffered. Once the terminator
        has been seen, further input is ignored.
        """
        if self.done:
            return []

        self._buffer += chunk
        *lines, self._buffer = self._buffer.split(b"\n")

        events = []
        for raw_line in lines:
            event = self._parse_line(raw_line)
            if event is None:
                continue
            events.append(event)
            if isinstance(event, StreamDone):
                self.done = True
                self._buffer = b""
                break
        return events

    def finish(self) -> list[StreamEvent]:
        """
        Flush at end of input.

        The byte source is exhausted, so a buffered tail is a complete line
        that simply lacked its newline. If the upstream never sent [DONE] we
        still close the segment with a StreamDone.
        """
        if self.done:
            return []

        events = []
        if self._buffer.strip():
            event = self._parse_line(self._buffer)
            if event is not None:
                events.append(event)
        self._buffer = b""

        if not any(isinstance(event, StreamDone) for event in events):
            events.append(StreamDone())
        self.done = True
        return events

    def _parse_line(self, raw_line: bytes) -> Optional[StreamEvent]:
        line = raw_line.decode("utf-8", errors="replace").strip()

        # Blank separators, ": keep-alive" comments and non-data fields
        if not line or not line.startswith(DATA_PREFIX):
            return None

        data = line[len(DATA_PREFIX):].strip()
        if data == DONE_SENTINEL:
            return StreamDone()

        try:
            text = self._extract_delta(data)
        except UpstreamFrameError as e:
            logger.warning(f"Skipping malformed stream frame for {self.content_type}: {e.message}")
            return StreamError(text=e.message, content_type=self.content_type)

        if not text:
            return None
        if self.text_filter is not None:
            text = self.text_filter(text)
            if not text:
                return None
        return Token(content_type=self.content_type, text=text)

    def _extract_delta(self, data: str) -> str:
        """Pull choices[0].delta.content out of one JSON payload."""
        try:
            payload = json.loads(data)
        except json.JSONDecodeError as e:
            raise UpstreamFrameError(f"Malformed stream frame: {e.msg}", line=data) from e

        if not isinstance(payload, dict):
            raise UpstreamFrameError("Stream frame is not a JSON object", line=data)

        # Mid-stream upstream failures arrive as {"error": {...}}
        if "error" in payload:
            error = payload["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise UpstreamFrameError(f"Upstream stream error: {message}", line=data)

        choices = payload.get("choices")
        if not isinstance(choices, list) or not choices:
            return ""
        first = choices[0] if isinstance(choices[0], dict) else {}
        delta = first.get("delta")
        if not isinstance(delta, dict):
            return ""
        return delta.get("content") or ""


async def iter_line_events(
    chunks: AsyncIterable[bytes],
    content_type: str,
    text_filter: Optional[TextFilter] = None,
) -> AsyncIterator[StreamEvent]:
    """Parse an async byte source, stopping right after StreamDone."""
    parser = LineStreamParser(content_type, text_filter)
    async for chunk in chunks:
        for event in parser.feed(chunk):
            yield event
        if parser.done:
            return
    for event in parser.finish():
        yield event


# =============================================================================
# EVENT-TYPED PARSER
# =============================================================================

def _field(event: Any, name: str) -> Any:
    """Read a field from an SDK event object or a plain dict."""
    if isinstance(event, dict):
        return event.get(name)
    return getattr(event, name, None)


def parse_typed_event(event: Any, content_type: str) -> Optional[StreamEvent]:
    """Map one typed event to a StreamEvent (None = not interesting)."""
    kind = _field(event, "type")

    if kind == TYPED_DELTA:
        text = _field(event, "delta") or ""
        return Token(content_type=content_type, text=text) if text else None

    if kind == TYPED_COMPLETED:
        return StreamDone()

    if kind in TYPED_ERRORS:
        message = _field(event, "message")
        if not message:
            # response.failed carries the error on the response object
            error = _field(_field(event, "response"), "error")
            message = _field(error, "message") if error is not None else None
        return StreamError(text=message or f"Upstream reported {kind}", content_type=content_type)

    return None


async def iter_typed_events(
    events: AsyncIterable[Any],
    content_type: str,
) -> AsyncIterator[StreamEvent]:
    """Parse an async iterable of typed events, always ending with StreamDone."""
    async for raw_event in events:
        event = parse_typed_event(raw_event, content_type)
        if event is None:
            continue
        yield event
        if isinstance(event, StreamDone):
            return
    yield StreamDone()
