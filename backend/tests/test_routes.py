"""
End-to-end tests for the HTTP API.

The app runs in-process through FastAPI's TestClient with two dependency
overrides:
- get_generation_client → FakeGenerationClient (records every call)
- get_session_factory   → a SQLite file database in tmp_path

The lifespan (Postgres table creation) is not run.
"""

import asyncio
import json

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from conftest import SUMMARY, FakeGenerationClient, canned_text, count_rows, create_tables, make_session_factory
from newsdebate.database import get_session_factory
from newsdebate.main import app
from newsdebate.models.records import DebateInput, DebateOutput, SummaryInput
from newsdebate.services.llm import get_generation_client

TURNS = ["opening_for", "opening_against", "rebuttal_for", "rebuttal_against", "followup_for", "followup_against"]


@pytest.fixture
def db(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'routes.db'}", poolclass=NullPool)
    asyncio.run(create_tables(engine))
    yield make_session_factory(engine)
    asyncio.run(engine.dispose())


@pytest.fixture
def generation():
    return FakeGenerationClient()


@pytest.fixture
def api(db, generation):
    app.dependency_overrides[get_generation_client] = lambda: generation
    app.dependency_overrides[get_session_factory] = lambda: db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def ndjson(response) -> list[dict]:
    return [json.loads(line) for line in response.text.splitlines() if line]


def rows(db, model) -> int:
    return asyncio.run(count_rows(db, model))


# =============================================================================
# HEALTH
# =============================================================================

def test_health(api):
    response = api.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


# =============================================================================
# SUMMARIZE
# =============================================================================

def test_summarize(api, db, generation):
    response = api.post("/api/summarize", json={"text": "The council voted to close Elm Street."})

    assert response.status_code == 200
    assert response.json() == {"summary": canned_text("summary")}
    assert generation.labels == ["summary"]
    assert rows(db, SummaryInput) == 1


@pytest.mark.parametrize("body", [{}, {"text": ""}, {"text": "   "}])
def test_summarize_requires_text(api, db, generation, body):
    response = api.post("/api/summarize", json=body)

    assert response.status_code == 400
    assert "error" in response.json()
    assert generation.calls == []
    assert rows(db, SummaryInput) == 0


def test_summarize_upstream_failure_is_502(api, generation):
    generation.fail_on.add("summary")
    response = api.post("/api/summarize", json={"text": "Some article."})

    assert response.status_code == 502
    assert response.json() == {"error": "Upstream error 500: summary exploded"}


def test_summarize_stream(api):
    response = api.post("/api/summarize/stream", json={"text": "Some article."})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/x-ndjson")
    frames = ndjson(response)
    assert frames[-1] == {"type": "done", "done": True, "payload": {"summary": canned_text("summary")}}
    assert "".join(f["text"] for f in frames if f["type"] == "token") == canned_text("summary")


# =============================================================================
# DEBATE (streaming)
# =============================================================================

def test_run_streams_and_caches(api, db, generation):
    body = {"summary": SUMMARY, "modelA": "prov/a:online", "modelB": "prov/b", "perspectives": "Morality, Economics"}
    response = api.post("/api/run", json=body)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/x-ndjson")
    assert response.headers["cache-control"] == "no-cache, no-transform"

    frames = ndjson(response)
    assert sorted(generation.labels) == sorted(TURNS)
    assert sorted(f["contentType"] for f in frames if f["type"] == "segment_done") == sorted(TURNS)
    done = frames[-1]
    assert done["type"] == "done"
    assert set(done["payload"]) == {
        "openingFor", "openingAgainst", "rebuttalFor", "rebuttalAgainst", "followupFor", "followupAgainst",
    }
    assert rows(db, DebateInput) == 1
    assert rows(db, DebateOutput) == 1

    # Same debate, different spelling: served from the cache
    again = {"summary": SUMMARY, "modelA": "prov/a", "modelB": "prov/b", "perspectives": ["Economics", "Morality"]}
    second = api.post("/api/run", json=again)

    assert second.status_code == 200
    assert len(generation.calls) == 6, "Cache hit must not call the generation service"
    assert ndjson(second)[-1] == done
    assert rows(db, DebateInput) == 1


@pytest.mark.parametrize("body", [{}, {"summary": ""}, {"summary": "  \n"}])
def test_run_requires_summary(api, db, generation, body):
    response = api.post("/api/run", json=body)

    assert response.status_code == 400
    assert "error" in response.json()
    assert generation.calls == []
    assert rows(db, DebateInput) == 0


def test_run_upstream_failure_before_data_is_502(api, generation):
    generation.fail_on.update({"opening_for", "opening_against"})
    response = api.post("/api/run", json={"summary": SUMMARY})

    assert response.status_code == 502
    frames = ndjson(response)
    assert frames[0]["type"] == "error"
    assert "exploded" in frames[0]["text"]
    assert not any(label.startswith("rebuttal") for label in generation.labels)


def test_run_failure_after_data_ends_with_error_frame(api, generation):
    generation.fail_on.add("followup_for")
    response = api.post("/api/run", json={"summary": SUMMARY})

    assert response.status_code == 200
    frames = ndjson(response)
    assert frames[-1]["type"] == "error"
    assert all(f["type"] != "done" for f in frames)


# =============================================================================
# DEBATE (batch)
# =============================================================================

def test_run_batch(api, generation):
    body = {"summary": SUMMARY, "modelA": "prov/a", "modelB": "prov/b", "perspectives": "Morality"}

    first = api.post("/api/run/batch", json=body)
    assert first.status_code == 200
    data = first.json()
    assert data["openingFor"] == canned_text("opening_for")
    assert data["followupAgainst"] == canned_text("followup_against")
    assert data["cached"] is False
    assert data["warnings"] == []

    second = api.post("/api/run/batch", json=body)
    assert second.json()["cached"] is True
    assert len(generation.calls) == 6
