"""
Pydantic schemas for API request/response validation.

FLOW OVERVIEW:
==============
1. User pastes an article → SummarizeRequest → /api/summarize → SummarizeResponse
2. User picks two models + a perspective → DebateRequest → /api/run
3. /api/run streams NDJSON frames (see services/streaming/relay.py);
   /api/run/batch returns a BatchDebateResponse in one go

Field names on the wire are camelCase (modelA, openingFor, ...) because
that is what the browser client sends and reads. Python code uses
snake_case and the aliases bridge the two.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# SUMMARIZATION
# =============================================================================

class SummarizeRequest(BaseModel):
    """
    Request body for /api/summarize and /api/summarize/stream.

    Example:
        POST /api/summarize
        {"text": "The city council voted on Tuesday to ..."}
    """
    text: str = Field(min_length=1, description="Full article text to summarize")

    @field_validator("text")
    @classmethod
    def strip_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Missing 'text' in body.")
        return value


class SummarizeResponse(BaseModel):
    """Response body for /api/summarize."""
    summary: str


# =============================================================================
# DEBATES
# =============================================================================

class DebateRequest(BaseModel):
    """
    Request body for /api/run and /api/run/batch.

    `perspectives` may be a comma-separated string ("Morality, Economics")
    or a list of strings. Missing models fall back to the configured
    MODEL_A / MODEL_B.

    Example:
        POST /api/run
        {"summary": "- The council voted ...", "modelA": "openai/gpt-4o:online",
         "modelB": "anthropic/claude-3.5-sonnet", "perspectives": ["Economics"]}
    """
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    summary: str = Field(min_length=1, description="Neutral bullet-point summary of the article")
    model_a: str | None = Field(default=None, alias="modelA")
    model_b: str | None = Field(default=None, alias="modelB")
    perspectives: str | list[str] | None = None

    @field_validator("summary")
    @classmethod
    def strip_summary(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Missing 'summary' in body.")
        return value


class DebateTexts(BaseModel):
    """The six turns of a debate, keyed the way the client reads them."""
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    opening_for: str = Field(alias="openingFor")
    opening_against: str = Field(alias="openingAgainst")
    rebuttal_for: str = Field(alias="rebuttalFor")
    rebuttal_against: str = Field(alias="rebuttalAgainst")
    followup_for: str = Field(alias="followupFor")
    followup_against: str = Field(alias="followupAgainst")


class BatchDebateResponse(DebateTexts):
    """
    Response body for /api/run/batch.

    `cached` tells the client the debate was served from storage;
    `warnings` carries non-fatal problems (e.g. the result could not be cached).
    """
    cached: bool = False
    warnings: list[str] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Error body returned before any stream has been opened."""
    error: str
