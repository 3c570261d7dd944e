"""
Generation Clients — the boundary to the text-generation service.

WHAT THIS DOES:
Every summary and every debate turn is one GenerationRequest sent to a
generation backend, either as a single call (complete) or as a token stream
(stream). Two backends are supported:

1. OpenRouterClient (default)
   - POST {OPENROUTER_BASE}/chat/completions via httpx
   - Non-streaming: choices[0].message.content
   - Streaming: "data: {json}" lines ending with "data: [DONE]"
   - Any OpenRouter model id works, including "...:online" variants that
     search the web before answering

2. OpenAIResponsesClient
   - The openai SDK's Responses API
   - Streaming: typed events (response.output_text.delta, ...)

Both turn their stream into the same StreamEvents (see streaming/parser.py),
so the relay and the orchestrator don't care which one is configured.

ERRORS:
- Non-2xx → UpstreamHttpError (fatal for the call)
- Network failure → UpstreamConnectionError (fatal for the call)
- One malformed stream line → StreamError event (not fatal)

USAGE:
    client = get_generation_client()
    text = await client.complete(GenerationRequest(model="openai/gpt-4o", user_prompt="..."))

    async for event in client.stream(request, content_type="opening_for"):
        ...
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Optional

import httpx
from openai import APIConnectionError, APIStatusError, AsyncOpenAI

from newsdebate.config import Settings, get_settings
from newsdebate.exceptions import UpstreamConnectionError, UpstreamHttpError
from newsdebate.services.streaming.events import StreamEvent
from newsdebate.services.streaming.parser import iter_line_events, iter_typed_events
from newsdebate.services.streaming.text_filter import TextFilter

logger = logging.getLogger(__name__)

# OpenRouter's suffix for web-augmented models (e.g. "openai/gpt-4o:online")
ONLINE_SUFFIX = ":online"


def is_online_model(model: str) -> bool:
    return model.strip().endswith(ONLINE_SUFFIX)


def strip_online_suffix(model: str) -> str:
    """'openai/gpt-4o:online' → 'openai/gpt-4o'. Other ids are only trimmed."""
    model = model.strip()
    if model.endswith(ONLINE_SUFFIX):
        return model[: -len(ONLINE_SUFFIX)]
    return model


@dataclass(frozen=True)
class GenerationRequest:
    """One generation call. Immutable; build a new one per call."""
    model: str
    user_prompt: str
    system_prompt: Optional[str] = None
    temperature: float = 0.2
    json_mode: bool = False
    max_tokens: Optional[int] = None
    streaming: bool = False

    def messages(self) -> list[dict[str, str]]:
        """Chat messages: optional system prompt, then the user prompt."""
        messages = []
        if self.system_prompt and self.system_prompt.strip():
            messages.append({"role": "system", "content": self.system_prompt})
        messages.append({"role": "user", "content": self.user_prompt})
        return messages


class BaseGenerationClient(ABC):
    """
    Abstract base class for generation backends.

    Implement complete() and stream(); aclose() releases connections.
    """

    @abstractmethod
    async def complete(self, request: GenerationRequest) -> str:
        """Run a non-streaming call and return the full text."""

    @abstractmethod
    def stream(
        self,
        request: GenerationRequest,
        content_type: str,
        text_filter: Optional[TextFilter] = None,
    ) -> AsyncIterator[StreamEvent]:
        """Run a streaming call and yield StreamEvents, ending with StreamDone."""

    async def aclose(self) -> None:
        pass


# =============================================================================
# OPENROUTER (httpx, line-oriented stream)
# =============================================================================

class OpenRouterClient(BaseGenerationClient):
    """
    Async client for OpenRouter's OpenAI-compatible chat completions API.

    The httpx client is created lazily and reused for every call.
    """

    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings or get_settings()
        self.base_url = self.settings.openrouter_base.rstrip("/")
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client (lazy initialization)."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.settings.request_timeout,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.openrouter_api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": self.settings.app_referer,
            "X-Title": self.settings.app_title,
        }

    def build_payload(self, request: GenerationRequest, stream: bool) -> dict[str, Any]:
        """Request body for /chat/completions."""
        payload: dict[str, Any] = {
            "model": request.model,
            "messages": request.messages(),
            "temperature": request.temperature,
            "stream": stream,
        }
        if request.json_mode:
            payload["response_format"] = {"type": "json_object"}
        if request.max_tokens:
            payload["max_tokens"] = request.max_tokens
        return payload

    async def complete(self, request: GenerationRequest) -> str:
        client = await self._get_client()
        payload = self.build_payload(request, stream=False)

        logger.info(f"Calling {request.model} (non-streaming)")
        try:
            response = await client.post(
                f"{self.base_url}/chat/completions",
                json=payload,
                headers=self._headers(),
            )
        except httpx.HTTPError as e:
            raise UpstreamConnectionError(f"Could not reach generation service: {e}", model=request.model) from e

        if response.status_code >= 400:
            raise UpstreamHttpError(response.status_code, response.text, model=request.model)

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise UpstreamHttpError(
                response.status_code,
                f"Unexpected response shape: {response.text[:200]}",
                model=request.model,
            ) from e

        logger.info(f"{request.model} returned {len(content or '')} characters")
        return content or ""

    async def stream(
        self,
        request: GenerationRequest,
        content_type: str,
        text_filter: Optional[TextFilter] = None,
    ) -> AsyncIterator[StreamEvent]:
        client = await self._get_client()
        payload = self.build_payload(request, stream=True)

        logger.info(f"Streaming {request.model} as {content_type}")
        try:
            async with client.stream(
                "POST",
                f"{self.base_url}/chat/completions",
                json=payload,
                headers=self._headers(),
            ) as response:
                if response.status_code >= 400:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    raise UpstreamHttpError(response.status_code, body, model=request.model)

                async for event in iter_line_events(response.aiter_bytes(), content_type, text_filter):
                    yield event
        except httpx.HTTPError as e:
            raise UpstreamConnectionError(f"Stream from {request.model} failed: {e}", model=request.model) from e


# =============================================================================
# OPENAI RESPONSES API (openai SDK, typed events)
# =============================================================================

class OpenAIResponsesClient(BaseGenerationClient):
    """
    Generation via the OpenAI Responses API.

    Online model ids ("gpt-4o:online") are sent without the suffix and with
    the hosted web search tool enabled.
    """

    def __init__(self, settings: Optional[Settings] = None, client: Optional[AsyncOpenAI] = None):
        self.settings = settings or get_settings()
        self.client = client or AsyncOpenAI(api_key=self.settings.openai_api_key)

    async def aclose(self) -> None:
        await self.client.close()

    def build_params(self, request: GenerationRequest) -> dict[str, Any]:
        """Keyword arguments for responses.create()."""
        params: dict[str, Any] = {
            "model": strip_online_suffix(request.model),
            "input": request.user_prompt,
            "temperature": request.temperature,
        }
        if request.system_prompt and request.system_prompt.strip():
            params["instructions"] = request.system_prompt
        if request.max_tokens:
            params["max_output_tokens"] = request.max_tokens
        if request.json_mode:
            params["text"] = {"format": {"type": "json_object"}}
        if is_online_model(request.model):
            params["tools"] = [{"type": "web_search_preview"}]
        return params

    async def complete(self, request: GenerationRequest) -> str:
        logger.info(f"Calling {request.model} via Responses API (non-streaming)")
        try:
            response = await self.client.responses.create(**self.build_params(request))
        except APIStatusError as e:
            raise UpstreamHttpError(e.status_code, e.message, model=request.model) from e
        except APIConnectionError as e:
            raise UpstreamConnectionError(f"Could not reach OpenAI: {e}", model=request.model) from e
        return response.output_text or ""

    async def stream(
        self,
        request: GenerationRequest,
        content_type: str,
        text_filter: Optional[TextFilter] = None,
    ) -> AsyncIterator[StreamEvent]:
        # Typed events carry clean text deltas; the online filter only
        # applies to the line-oriented path.
        logger.info(f"Streaming {request.model} via Responses API as {content_type}")
        try:
            response_stream = await self.client.responses.create(**self.build_params(request), stream=True)
            try:
                async for event in iter_typed_events(response_stream, content_type):
                    yield event
            finally:
                await response_stream.close()
        except APIStatusError as e:
            raise UpstreamHttpError(e.status_code, e.message, model=request.model) from e
        except APIConnectionError as e:
            raise UpstreamConnectionError(f"Stream from {request.model} failed: {e}", model=request.model) from e


# =============================================================================
# FACTORY
# =============================================================================

def create_generation_client(settings: Optional[Settings] = None) -> BaseGenerationClient:
    """Build the backend named by LLM_PROVIDER."""
    settings = settings or get_settings()
    provider = settings.llm_provider.lower()
    if provider == "openrouter":
        return OpenRouterClient(settings)
    if provider == "openai":
        return OpenAIResponsesClient(settings)
    raise ValueError(f"Unknown LLM_PROVIDER: {settings.llm_provider!r} (expected 'openrouter' or 'openai')")


@lru_cache
def get_generation_client() -> BaseGenerationClient:
    """Process-wide client (dependency; overridden in tests)."""
    return create_generation_client()
