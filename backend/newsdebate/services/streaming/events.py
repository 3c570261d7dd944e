"""
Stream Events.

    Token        one text fragment for a content type (e.g. "opening_for")
    SegmentDone  the segment for a content type is complete
    StreamError  one bad upstream event; the stream itself keeps going
    StreamDone   the upstream said it is finished

Parsers produce these, the relay consumes them. Consumers dispatch with
isinstance checks and finish with `unhandled_event()`, so adding a new
variant without handling it fails loudly in tests instead of being dropped.
"""

from dataclasses import dataclass
from typing import NoReturn, Optional, Union


@dataclass(frozen=True)
class Token:
    content_type: str
    text: str


@dataclass(frozen=True)
class SegmentDone:
    content_type: str


@dataclass(frozen=True)
class StreamError:
    text: str
    content_type: Optional[str] = None


@dataclass(frozen=True)
class StreamDone:
    pass


StreamEvent = Union[Token, SegmentDone, StreamError, StreamDone]


def unhandled_event(event: object) -> NoReturn:
    """Raise for an event type a consumer doesn't know about."""
    raise TypeError(f"Unhandled stream event: {event!r}")
