"""
Debate Module — six-turn debates between two models, cached by key.

COMPONENTS:
- DebateOrchestrator: main entry point (streaming run / non-streaming run_batch)
- DebateCache: lookup-before-generate, insert-after-generate
- DebateKey / build_debate_key: normalized, order-independent cache key
- DEBATE_GRAPH / run_turn_graph: the turn dependency graph and its scheduler
- build_turn_prompt: fixed prompt templates per turn

USAGE:
    from newsdebate.services.debate import DebateOrchestrator, DebateCache

    orchestrator = DebateOrchestrator(client, DebateCache(async_session))
    outputs = await orchestrator.run(summary, model_a, model_b, "Morality", sink)
"""

# Main entry points
from newsdebate.services.debate.orchestrator import DebateOrchestrator, DebateRun
from newsdebate.services.debate.cache import DebateCache

# Data models
from newsdebate.services.debate.models import DebateOutputs, DebateTurn, Side, Stage
from newsdebate.services.debate.keys import DebateKey, build_debate_key, normalize_perspectives

# Building blocks
from newsdebate.services.debate.graph import DEBATE_GRAPH, TurnNode, plan_waves, run_turn_graph
from newsdebate.services.debate.prompts import build_turn_prompt

__all__ = [
    # Main entry points
    "DebateOrchestrator",
    "DebateRun",
    "DebateCache",
    # Data models
    "DebateOutputs",
    "DebateTurn",
    "Side",
    "Stage",
    "DebateKey",
    "build_debate_key",
    "normalize_perspectives",
    # Building blocks
    "DEBATE_GRAPH",
    "TurnNode",
    "plan_waves",
    "run_turn_graph",
    "build_turn_prompt",
]
