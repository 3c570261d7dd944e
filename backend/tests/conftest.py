"""
Shared fixtures for the test suite.

Nothing here talks to the network or to Postgres:
- the database is an in-memory SQLite database (aiosqlite)
- the generation service is a scripted fake that records every call
- streams are written to a MemorySink instead of an ASGI connection

Run with: pytest -v
"""

import asyncio
import json
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass, field
from typing import Optional

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from newsdebate.config import Settings
from newsdebate.database import Base
from newsdebate.exceptions import UpstreamHttpError
from newsdebate.models import records  # noqa: F401
from newsdebate.services.llm import BaseGenerationClient, GenerationRequest
from newsdebate.services.streaming.events import StreamDone, StreamError, StreamEvent, Token
from newsdebate.services.streaming.sink import StreamSink
from newsdebate.services.streaming.text_filter import TextFilter

SUMMARY = (
    "- On 3 March the city council voted 7-2 to close Elm Street to cars.\n"
    "- The closure starts in June and costs 1.2 million euros.\n"
    "- Shop owners on Elm Street say they will lose customers."
)


# =============================================================================
# DATABASE
# =============================================================================

def make_session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_tables(engine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def count_rows(session_factory, model) -> int:
    async with session_factory() as session:
        return await session.scalar(select(func.count()).select_from(model))


@pytest_asyncio.fixture
async def session_factory():
    """Fresh in-memory database with all four tables."""
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    await create_tables(engine)
    try:
        yield make_session_factory(engine)
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def broken_session_factory():
    """A database without tables: every query fails."""
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    try:
        yield make_session_factory(engine)
    finally:
        await engine.dispose()


# =============================================================================
# SETTINGS
# =============================================================================

@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        llm_provider="openrouter",
        openrouter_api_key="test-key",
        summary_model="test/summarizer",
        model_a="test/model-a",
        model_b="test/model-b",
        default_perspective="Morality",
        summary_max_chars=2000,
        summary_max_tokens=500,
        debate_max_tokens=None,
    )


# =============================================================================
# MEMORY SINK
# =============================================================================

class MemorySink(StreamSink):
    """
    Sink that keeps everything in memory.

    `fail_after`: number of frames accepted before the "client" disconnects
    (the next body write raises ConnectionResetError).
    """

    def __init__(self, fail_after: Optional[int] = None):
        super().__init__()
        self.fail_after = fail_after
        self.start_calls = 0
        self.committed_status: Optional[int] = None
        self.committed_headers: dict[str, str] = {}
        self.body = b""
        self.ended = False

    async def _start(self, status_code: int, headers: Mapping[str, str]) -> None:
        self.start_calls += 1
        self.committed_status = status_code
        self.committed_headers = dict(headers)

    async def _send(self, body: bytes, more_body: bool) -> None:
        if more_body and self.fail_after is not None and self.frames_written >= self.fail_after:
            raise ConnectionResetError("client went away")
        self.body += body
        if not more_body:
            self.ended = True

    @property
    def frames(self) -> list[dict]:
        return [json.loads(line) for line in self.body.decode("utf-8").splitlines() if line]

    def frames_of(self, frame_type: str) -> list[dict]:
        return [frame for frame in self.frames if frame["type"] == frame_type]

    def text_of(self, content_type: str) -> str:
        return "".join(
            frame["text"] for frame in self.frames
            if frame["type"] == "token" and frame.get("contentType") == content_type
        )


@pytest.fixture
def sink() -> MemorySink:
    return MemorySink()


# =============================================================================
# FAKE GENERATION CLIENT
# =============================================================================

def turn_label(request: GenerationRequest) -> str:
    """Work out which turn (or the summary) a request is for from its prompts."""
    system = request.system_prompt or ""
    if system.startswith("Summarize"):
        return "summary"
    side = "for" if "You argue FOR" in system else "against"
    for stage in ("opening", "rebuttal", "followup"):
        if f"Write your {stage}" in request.user_prompt:
            return f"{stage}_{side}"
    raise AssertionError(f"Unrecognized request: {request.user_prompt[:80]!r}")


def canned_text(label: str) -> str:
    return f"The {label.replace('_', ' ')} makes its case. It cites the vote!"


@dataclass
class RecordedCall:
    label: str
    request: GenerationRequest
    streaming: bool
    text_filter: Optional[TextFilter] = None
    issued_at: int = 0
    finished_at: Optional[int] = None


@dataclass
class FakeGenerationClient(BaseGenerationClient):
    """
    Scripted generation backend.

    - replies:    label → full text (default: canned_text(label))
    - fail_on:    labels whose call raises UpstreamHttpError(500)
    - stream_errors: label → error text sent as a StreamError before the reply
    - delays:     label → seconds to wait before answering
    - chunk_size: stream replies in pieces of this many characters

    Every call is recorded with a logical clock tick when it was issued and
    when it finished, so tests can assert on ordering.
    """

    replies: dict[str, str] = field(default_factory=dict)
    fail_on: set[str] = field(default_factory=set)
    stream_errors: dict[str, str] = field(default_factory=dict)
    delays: dict[str, float] = field(default_factory=dict)
    chunk_size: int = 9
    calls: list[RecordedCall] = field(default_factory=list)
    closed: bool = False
    _clock: int = 0

    def _tick(self) -> int:
        self._clock += 1
        return self._clock

    def reply_for(self, label: str) -> str:
        return self.replies.get(label, canned_text(label))

    def call(self, label: str) -> RecordedCall:
        matches = [call for call in self.calls if call.label == label]
        assert len(matches) == 1, f"Expected one call for {label}, got {len(matches)}"
        return matches[0]

    @property
    def labels(self) -> list[str]:
        return [call.label for call in self.calls]

    async def _begin(self, label: str, request: GenerationRequest, streaming: bool,
                     text_filter: Optional[TextFilter] = None) -> RecordedCall:
        call = RecordedCall(label, request, streaming, text_filter, issued_at=self._tick())
        self.calls.append(call)
        await asyncio.sleep(self.delays.get(label, 0))
        if label in self.fail_on:
            raise UpstreamHttpError(500, f"{label} exploded", model=request.model)
        return call

    async def complete(self, request: GenerationRequest) -> str:
        label = turn_label(request)
        call = await self._begin(label, request, streaming=False)
        call.finished_at = self._tick()
        return self.reply_for(label)

    async def stream(
        self,
        request: GenerationRequest,
        content_type: str,
        text_filter: Optional[TextFilter] = None,
    ) -> AsyncIterator[StreamEvent]:
        call = await self._begin(content_type, request, streaming=True, text_filter=text_filter)
        if content_type in self.stream_errors:
            yield StreamError(text=self.stream_errors[content_type], content_type=content_type)
        text = self.reply_for(content_type)
        for i in range(0, len(text), self.chunk_size):
            await asyncio.sleep(0)
            piece = text[i:i + self.chunk_size]
            if text_filter is not None:
                piece = text_filter(piece)
            if piece:
                yield Token(content_type=content_type, text=piece)
        call.finished_at = self._tick()
        yield StreamDone()

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fake_client() -> FakeGenerationClient:
    return FakeGenerationClient()
