"""
Streaming — upstream token streams in, NDJSON frames out.

COMPONENTS:
- events: the closed StreamEvent variant (Token, SegmentDone, StreamError, StreamDone)
- parser: LineStreamParser ("data:" lines) and typed-event parsing
- text_filter: heuristic link/URL cleanup for online models
- sink: StreamSink + ASGIStreamSink (lazy status/headers, disconnect detection)
- relay: ProxyRelay (events → NDJSON frames + accumulated text)
"""

from newsdebate.services.streaming.events import (
    SegmentDone,
    StreamDone,
    StreamError,
    StreamEvent,
    Token,
)
from newsdebate.services.streaming.parser import (
    LineStreamParser,
    iter_line_events,
    iter_typed_events,
    parse_typed_event,
)
from newsdebate.services.streaming.relay import ProxyRelay, terminate_stream
from newsdebate.services.streaming.sink import (
    NDJSON_HEADERS,
    NDJSON_MEDIA_TYPE,
    ASGIStreamSink,
    StreamSink,
)
from newsdebate.services.streaming.text_filter import OnlineTextFilter, build_text_filter

__all__ = [
    "SegmentDone",
    "StreamDone",
    "StreamError",
    "StreamEvent",
    "Token",
    "LineStreamParser",
    "iter_line_events",
    "iter_typed_events",
    "parse_typed_event",
    "ProxyRelay",
    "terminate_stream",
    "NDJSON_HEADERS",
    "NDJSON_MEDIA_TYPE",
    "ASGIStreamSink",
    "StreamSink",
    "OnlineTextFilter",
    "build_text_filter",
]
