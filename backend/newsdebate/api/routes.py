"""
API Routes — summarize an article, then stream a debate about it.

ENDPOINTS:
- POST /api/summarize         → article text → {"summary": ...}
- POST /api/summarize/stream  → same, streamed as NDJSON
- POST /api/run               → summary + models + perspectives → NDJSON debate stream
- POST /api/run/batch         → same debate as one JSON response

FLOW:
1. The browser posts the article to /api/summarize
2. The user edits the summary if they want, picks two models and a lens
3. The browser posts to /api/run and renders frames by contentType
   (opening_for, opening_against, rebuttal_for, ...)

Request validation happens before any generation call: an empty summary
or text is a 400 and nothing is called or stored.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from newsdebate.api.streaming import NDJSONStreamResponse
from newsdebate.database import get_session_factory
from newsdebate.models.schemas import (
    BatchDebateResponse,
    DebateRequest,
    ErrorResponse,
    SummarizeRequest,
    SummarizeResponse,
)
from newsdebate.services.debate import DebateCache, DebateOrchestrator
from newsdebate.services.llm import BaseGenerationClient, get_generation_client
from newsdebate.services.streaming.sink import StreamSink
from newsdebate.services.summarizer import Summarizer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["api"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
}


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_summarizer(
    client: BaseGenerationClient = Depends(get_generation_client),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> Summarizer:
    return Summarizer(client, session_factory)


def get_orchestrator(
    client: BaseGenerationClient = Depends(get_generation_client),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> DebateOrchestrator:
    return DebateOrchestrator(client, DebateCache(session_factory))


# =============================================================================
# SUMMARIZATION
# =============================================================================

@router.post("/summarize", response_model=SummarizeResponse, responses=ERROR_RESPONSES)
async def summarize(
    request: SummarizeRequest,
    summarizer: Summarizer = Depends(get_summarizer),
) -> SummarizeResponse:
    """
    Summarize an article into neutral bullet points.

    Example:
        POST /api/summarize
        {"text": "The city council voted on Tuesday to ..."}

        Returns {"summary": "- On Tuesday the council voted ..."}
    """
    logger.info(f"Summarizing {len(request.text)} characters")
    summary = await summarizer.summarize(request.text)
    return SummarizeResponse(summary=summary)


@router.post("/summarize/stream", responses=ERROR_RESPONSES)
async def summarize_stream(
    request: SummarizeRequest,
    summarizer: Summarizer = Depends(get_summarizer),
) -> NDJSONStreamResponse:
    """
    Stream the summary as NDJSON (contentType "summary").

    Ends with {"type": "done", "done": true, "payload": {"summary": ...}}.
    """
    async def produce(sink: StreamSink) -> None:
        await summarizer.stream_summary(request.text, sink)

    return NDJSONStreamResponse(produce)


# =============================================================================
# DEBATES
# =============================================================================

@router.post("/run", responses=ERROR_RESPONSES)
async def run_debate(
    request: DebateRequest,
    orchestrator: DebateOrchestrator = Depends(get_orchestrator),
) -> NDJSONStreamResponse:
    """
    Stream a six-turn debate as NDJSON.

    Example:
        POST /api/run
        {"summary": "- The council voted ...", "modelA": "openai/gpt-4o",
         "modelB": "anthropic/claude-3.5-sonnet", "perspectives": "Economics"}

    Frames:
        {"type": "token", "contentType": "opening_for", "text": "..."}
        {"type": "segment_done", "contentType": "opening_for", "done": true}
        ...
        {"type": "done", "done": true, "payload": {"openingFor": "...", ...}}
    """
    async def produce(sink: StreamSink) -> None:
        await orchestrator.run(
            request.summary,
            request.model_a,
            request.model_b,
            request.perspectives,
            sink,
        )

    return NDJSONStreamResponse(produce)


@router.post("/run/batch", response_model=BatchDebateResponse, responses=ERROR_RESPONSES)
async def run_debate_batch(
    request: DebateRequest,
    orchestrator: DebateOrchestrator = Depends(get_orchestrator),
) -> BatchDebateResponse:
    """
    Run the debate without streaming and return all six turns at once.

    Each turn is clipped to its last full sentence. `cached` is true when
    the debate came from storage.
    """
    result = await orchestrator.run_batch(
        request.summary,
        request.model_a,
        request.model_b,
        request.perspectives,
    )
    return BatchDebateResponse(
        **result.outputs.to_payload(),
        cached=result.cached,
        warnings=result.warnings,
    )
