"""
Article Summarizer.

WHAT THIS DOES:
Turns a pasted news article into the neutral bullet-point summary that the
debate is built on. Both debaters only get to use facts from this summary.

HOW IT WORKS:
1. Cut the article to SUMMARY_MAX_CHARS (long pages blow the context window)
2. Ask SUMMARY_MODEL for 8-12 factual bullet points
3. Clip to the last full sentence (output is capped by max_tokens)
4. Store the input text and the summary (summary_inputs / summary_outputs)

Unlike debates, summaries are never deduplicated: every call is stored,
even when the same article is summarized twice.

A storage failure is logged and does not fail the request; the user still
gets the summary.

USAGE:
    summarizer = Summarizer(client, async_session)
    summary = await summarizer.summarize(article_text)

    # Streaming to an NDJSON sink (contentType "summary")
    summary = await summarizer.stream_summary(article_text, sink)
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from newsdebate.config import Settings, get_settings
from newsdebate.exceptions import InputValidationError, StorageError
from newsdebate.models.records import SummaryInput, SummaryOutput
from newsdebate.services.clipper import clip_to_last_sentence
from newsdebate.services.llm import BaseGenerationClient, GenerationRequest
from newsdebate.services.streaming.relay import ProxyRelay
from newsdebate.services.streaming.sink import StreamSink

logger = logging.getLogger(__name__)

SUMMARY_CONTENT_TYPE = "summary"

SUMMARY_SYSTEM_PROMPT = (
    "Summarize the article in 8-12 bullet points. Be neutral, factual. "
    "Include concrete dates, numbers, names. No opinion of your own. "
    "Only respond with the summary and nothing more. "
    "Do not include any openings such as 'Here is a summary of...'. "
    "Get straight to the point."
)


def truncate_article(text: str, max_chars: int) -> str:
    """Trim whitespace and cut to `max_chars`, preferring a paragraph break."""
    text = text.strip()
    if len(text) <= max_chars:
        return text
    cut = text[:max_chars]
    paragraph_end = cut.rfind("\n\n")
    # Only back off to a paragraph break if it keeps most of the text
    if paragraph_end > max_chars // 2:
        cut = cut[:paragraph_end]
    logger.warning(f"Article truncated from {len(text)} to {len(cut)} characters")
    return cut.rstrip()


class Summarizer:
    """Summarizes articles and records every input/summary pair."""

    def __init__(
        self,
        client: BaseGenerationClient,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Optional[Settings] = None,
    ):
        self.client = client
        self.session_factory = session_factory
        self.settings = settings or get_settings()

    def _request(self, text: str, streaming: bool) -> GenerationRequest:
        if not text.strip():
            raise InputValidationError("Missing 'text' in body.", field="text")
        return GenerationRequest(
            model=self.settings.summary_model,
            system_prompt=SUMMARY_SYSTEM_PROMPT,
            user_prompt=truncate_article(text, self.settings.summary_max_chars),
            temperature=0.2,
            max_tokens=self.settings.summary_max_tokens,
            streaming=streaming,
        )

    async def summarize(self, text: str) -> str:
        """Non-streaming summary, clipped to the last full sentence."""
        request = self._request(text, streaming=False)
        raw = await self.client.complete(request)
        summary = clip_to_last_sentence(raw)
        logger.info(f"Summary: {len(summary)} characters from {len(text)} input characters")

        await self._store_quietly(text, summary)
        return summary

    async def stream_summary(self, text: str, sink: StreamSink) -> str:
        """Stream the summary to `sink`; the stored/final text is clipped."""
        request = self._request(text, streaming=True)
        relay = ProxyRelay(sink)

        raw = await relay.relay(self.client.stream(request, SUMMARY_CONTENT_TYPE), SUMMARY_CONTENT_TYPE)
        summary = clip_to_last_sentence(raw)

        try:
            await self.store(text, summary)
        except StorageError as e:
            logger.error(f"Could not store summary: {e.message}")
            await relay.warn(f"Summary could not be saved: {e.message}")

        await relay.finish({"summary": summary})
        return summary

    async def store(self, text: str, summary: str) -> int:
        """Insert the input/output pair in one transaction. Returns the input id."""
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    summary_input = SummaryInput(text=text)
                    session.add(summary_input)
                    await session.flush()
                    session.add(SummaryOutput(input_id=summary_input.id, text=summary))
        except SQLAlchemyError as e:
            raise StorageError(f"Summary store failed: {e}") from e
        return summary_input.id

    async def _store_quietly(self, text: str, summary: str) -> None:
        try:
            await self.store(text, summary)
        except StorageError as e:
            logger.error(f"Could not store summary: {e.message}")
