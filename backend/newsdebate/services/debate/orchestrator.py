"""
Debate Orchestrator — runs the six-turn debate between two models.

WHAT THIS DOES:
Given a neutral summary, two model ids and a set of perspectives, produce
and stream a three-round debate: model A argues FOR, model B AGAINST.

HOW IT WORKS:
1. Normalize the request into a DebateKey (online suffix stripped, perspectives
   trimmed/deduped/sorted) and look it up in the DebateCache
   - Hit → replay the six stored texts as frames, send "done", close. No
     generation call at all.
   - Lookup failure → logged, treated as a miss
2. Miss → run the turn graph (see graph.py):
   openings ∥ → rebuttals ∥ → followups ∥
   each turn streamed live through the ProxyRelay, tagged with its turn label
3. Store the six texts (insert-if-absent). A failure here only produces a
   "warn" frame: the client already has every token.
   A debate where any turn reported an error frame or came back empty is
   not stored at all (a "warn" frame says so), so the next request retries.
4. Send one "done" frame with all six texts, close the stream.

The cache key uses normalized model ids; the generation calls use the ids
exactly as requested, so "openai/gpt-4o:online" still searches the web.

FAILURES:
- A generation call fails → the graph cancels its sibling and the error
  propagates to the HTTP layer, which writes the terminal error frame.
- The client disconnects → SinkClosedError; no further turn is started.

USAGE:
    orchestrator = DebateOrchestrator(client, DebateCache(async_session))
    outputs = await orchestrator.run(summary, "openai/gpt-4o", "anthropic/claude-3.5-sonnet",
                                     "Economics, Morality", sink)

    # Non-streaming (clipped to full sentences)
    result = await orchestrator.run_batch(summary, model_a, model_b, ["Economics"])
"""

import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Optional

from newsdebate.config import Settings, get_settings
from newsdebate.exceptions import SinkClosedError, StorageError
from newsdebate.services.clipper import clip_to_last_sentence
from newsdebate.services.debate.cache import DebateCache
from newsdebate.services.debate.graph import DEBATE_GRAPH, run_turn_graph
from newsdebate.services.debate.keys import DebateKey, PerspectiveInput, build_debate_key
from newsdebate.services.debate.models import DebateOutputs, DebateTurn, Side
from newsdebate.services.debate.prompts import build_turn_prompt
from newsdebate.services.llm import BaseGenerationClient, GenerationRequest, is_online_model
from newsdebate.services.streaming.relay import ProxyRelay
from newsdebate.services.streaming.sink import StreamSink
from newsdebate.services.streaming.text_filter import build_text_filter

logger = logging.getLogger(__name__)


@dataclass
class DebateRun:
    """Result of a non-streaming debate."""
    outputs: DebateOutputs
    cached: bool = False
    warnings: list[str] = field(default_factory=list)


class DebateOrchestrator:
    """
    Drives a debate from cache lookup to the final frame.

    One instance can serve many requests; all per-request state lives in
    local variables of run() / run_batch().
    """

    def __init__(
        self,
        client: BaseGenerationClient,
        cache: DebateCache,
        settings: Optional[Settings] = None,
    ):
        self.client = client
        self.cache = cache
        self.settings = settings or get_settings()
        self.text_filter = build_text_filter(self.settings)

    # =========================================================================
    # STREAMING
    # =========================================================================

    async def run(
        self,
        summary: str,
        model_a: Optional[str],
        model_b: Optional[str],
        perspectives: PerspectiveInput,
        sink: StreamSink,
    ) -> DebateOutputs:
        """Stream a debate to `sink` and return the six texts."""
        start_time = time.time()
        model_a, model_b = self._resolve_models(model_a, model_b)
        key = self._build_key(summary, model_a, model_b, perspectives)
        relay = ProxyRelay(sink)

        logger.info(f"Debate requested: {model_a} (FOR) vs {model_b} (AGAINST), lens '{key.perspectives_text}'")

        # Step 1: Cache
        cached = await self._lookup(key)
        if cached is not None:
            for turn in DebateTurn:
                await relay.replay(turn.value, cached.get(turn))
            await relay.finish(cached.to_payload())
            logger.info("Debate replayed from cache")
            return cached

        # Step 2: Six live turns
        async def execute(turn: DebateTurn, prior: Mapping[DebateTurn, str]) -> str:
            if sink.closed:
                raise SinkClosedError(f"Client disconnected, not starting {turn.value}")
            model = model_a if turn.side is Side.FOR else model_b
            request = self._request(turn, model, key, prior, streaming=True)
            text_filter = self.text_filter if is_online_model(model) else None
            events = self.client.stream(request, turn.value, text_filter)
            text = await relay.relay(events, turn.value)
            return text.strip()

        texts = await run_turn_graph(DEBATE_GRAPH, execute)
        outputs = DebateOutputs.from_turns(texts)

        # Step 3: Persist (non-fatal), complete debates only
        incomplete = sorted(set(relay.errored_segments) | set(_empty_turns(texts)))
        if incomplete:
            warning = _not_cached_warning(incomplete)
        else:
            warning = await self._store(key, outputs)
        if warning:
            await relay.warn(warning)

        # Step 4: Final frame
        await relay.finish(outputs.to_payload())
        logger.info(f"Debate streamed in {time.time() - start_time:.2f}s")
        return outputs

    # =========================================================================
    # NON-STREAMING
    # =========================================================================

    async def run_batch(
        self,
        summary: str,
        model_a: Optional[str],
        model_b: Optional[str],
        perspectives: PerspectiveInput,
    ) -> DebateRun:
        """Run a debate without streaming; each turn is clipped to full sentences."""
        start_time = time.time()
        model_a, model_b = self._resolve_models(model_a, model_b)
        key = self._build_key(summary, model_a, model_b, perspectives)

        cached = await self._lookup(key)
        if cached is not None:
            return DebateRun(outputs=cached, cached=True)

        async def execute(turn: DebateTurn, prior: Mapping[DebateTurn, str]) -> str:
            model = model_a if turn.side is Side.FOR else model_b
            raw = await self.client.complete(self._request(turn, model, key, prior, streaming=False))
            return clip_to_last_sentence(raw)

        texts = await run_turn_graph(DEBATE_GRAPH, execute)
        outputs = DebateOutputs.from_turns(texts)

        run = DebateRun(outputs=outputs)
        incomplete = _empty_turns(texts)
        if incomplete:
            warning = _not_cached_warning(incomplete)
        else:
            warning = await self._store(key, outputs)
        if warning:
            run.warnings.append(warning)

        logger.info(f"Batch debate finished in {time.time() - start_time:.2f}s")
        return run

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _resolve_models(self, model_a: Optional[str], model_b: Optional[str]) -> tuple[str, str]:
        """Requested model ids (trimmed), falling back to MODEL_A / MODEL_B."""
        model_a = (model_a or "").strip() or self.settings.model_a
        model_b = (model_b or "").strip() or self.settings.model_b
        return model_a, model_b

    def _build_key(self, summary: str, model_a: str, model_b: str, perspectives: PerspectiveInput) -> DebateKey:
        return build_debate_key(
            summary,
            model_a,
            model_b,
            perspectives,
            default_perspective=self.settings.default_perspective,
        )

    def _request(
        self,
        turn: DebateTurn,
        model: str,
        key: DebateKey,
        prior: Mapping[DebateTurn, str],
        streaming: bool,
    ) -> GenerationRequest:
        prompt = build_turn_prompt(turn, key.summary, key.perspectives_text, prior)
        return GenerationRequest(
            model=model,
            system_prompt=prompt.system,
            user_prompt=prompt.user,
            temperature=prompt.temperature,
            max_tokens=self.settings.debate_max_tokens,
            streaming=streaming,
        )

    async def _lookup(self, key: DebateKey) -> Optional[DebateOutputs]:
        """Cache lookup; storage failures count as a miss."""
        try:
            return await self.cache.lookup(key)
        except StorageError as e:
            logger.warning(f"Cache lookup failed, generating instead: {e.message}")
            return None

    async def _store(self, key: DebateKey, outputs: DebateOutputs) -> Optional[str]:
        """Cache store; returns a warning message instead of raising."""
        try:
            await self.cache.store(key, outputs)
        except StorageError as e:
            logger.error(f"Could not cache debate: {e.message}")
            return f"Debate could not be cached: {e.message}"
        return None


def _empty_turns(texts: Mapping[DebateTurn, str]) -> list[str]:
    return [turn.value for turn, text in texts.items() if not text]


def _not_cached_warning(turns: list[str]) -> str:
    logger.warning(f"Not caching debate, incomplete turns: {', '.join(turns)}")
    return f"Debate not cached: {', '.join(turns)} did not complete cleanly"
