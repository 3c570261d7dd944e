"""
Tests for the article summarizer.
"""

import pytest
from sqlalchemy import select

from conftest import FakeGenerationClient, count_rows
from newsdebate.exceptions import InputValidationError
from newsdebate.models.records import SummaryInput, SummaryOutput
from newsdebate.services.summarizer import SUMMARY_SYSTEM_PROMPT, Summarizer, truncate_article

ARTICLE = "The city council voted on Tuesday to close Elm Street to cars. Shop owners objected."


@pytest.mark.asyncio
async def test_summarize_clips_and_stores(session_factory, settings):
    client = FakeGenerationClient(replies={"summary": "- Council closes Elm Street.\n- Shops object. - Cut o"})
    summarizer = Summarizer(client, session_factory, settings)

    summary = await summarizer.summarize(ARTICLE)

    assert summary == "- Council closes Elm Street.\n- Shops object."
    request = client.call("summary").request
    assert request.model == settings.summary_model
    assert request.system_prompt == SUMMARY_SYSTEM_PROMPT
    assert request.user_prompt == ARTICLE
    assert request.max_tokens == settings.summary_max_tokens

    async with session_factory() as session:
        stored_input = (await session.execute(select(SummaryInput))).scalar_one()
        stored_output = (await session.execute(select(SummaryOutput))).scalar_one()
    assert stored_input.text == ARTICLE
    assert stored_output.input_id == stored_input.id
    assert stored_output.text == summary


@pytest.mark.asyncio
async def test_summaries_are_never_deduplicated(session_factory, settings, fake_client):
    summarizer = Summarizer(fake_client, session_factory, settings)

    await summarizer.summarize(ARTICLE)
    await summarizer.summarize(ARTICLE)

    assert len(fake_client.calls) == 2
    assert await count_rows(session_factory, SummaryInput) == 2
    assert await count_rows(session_factory, SummaryOutput) == 2


@pytest.mark.asyncio
async def test_blank_text_is_rejected_without_calls(session_factory, settings, fake_client):
    summarizer = Summarizer(fake_client, session_factory, settings)

    with pytest.raises(InputValidationError):
        await summarizer.summarize("   \n ")

    assert fake_client.calls == []
    assert await count_rows(session_factory, SummaryInput) == 0


@pytest.mark.asyncio
async def test_storage_failure_still_returns_summary(broken_session_factory, settings, fake_client):
    summarizer = Summarizer(fake_client, broken_session_factory, settings)
    assert await summarizer.summarize(ARTICLE) == "The summary makes its case. It cites the vote!"


@pytest.mark.asyncio
async def test_stream_summary(session_factory, settings, sink):
    client = FakeGenerationClient(replies={"summary": "- One fact.\n- Two fa"})
    summarizer = Summarizer(client, session_factory, settings)

    summary = await summarizer.stream_summary(ARTICLE, sink)

    assert summary == "- One fact."
    assert sink.text_of("summary") == "- One fact.\n- Two fa", "Live tokens are not clipped"
    assert sink.frames[-1] == {"type": "done", "done": True, "payload": {"summary": "- One fact."}}
    assert sink.closed
    assert await count_rows(session_factory, SummaryOutput) == 1


@pytest.mark.asyncio
async def test_stream_summary_storage_failure_warns(broken_session_factory, settings, fake_client, sink):
    await Summarizer(fake_client, broken_session_factory, settings).stream_summary(ARTICLE, sink)

    warn, done = sink.frames[-2:]
    assert warn["type"] == "warn"
    assert "could not be saved" in warn["text"]
    assert done["type"] == "done"


def test_truncate_article():
    assert truncate_article("  short  ", 100) == "short"

    paragraphs = "A" * 60 + "\n\n" + "B" * 60
    assert truncate_article(paragraphs, 100) == "A" * 60, "Prefer cutting at a paragraph break"

    assert truncate_article("C" * 150, 100) == "C" * 100
