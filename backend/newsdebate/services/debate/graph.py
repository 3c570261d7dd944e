"""
Turn Graph Scheduler.

    opening_for        ← (nothing)
    opening_against    ← (nothing)
    rebuttal_for       ← opening_against
    rebuttal_against   ← opening_for
    followup_for       ← opening_for, opening_against, rebuttal_against
    followup_against   ← opening_against, opening_for, rebuttal_for

HOW IT RUNS:
The scheduler works in waves. Every node whose dependencies are all resolved
starts at once (asyncio tasks, issued back to back); the wave is awaited as a
whole before the next wave is computed. With this graph that gives exactly
three waves of two: openings → rebuttals → followups. A rebuttal never
starts before BOTH openings are done, even though it only reads one.

Each node's executor only receives the texts of the turns it declared, so
the dependency contract can be tested without any networking.

If one node of a wave fails, its sibling is cancelled and the error
propagates. No later wave starts.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass

from newsdebate.services.debate.models import DebateTurn

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TurnNode:
    turn: DebateTurn
    depends_on: tuple[DebateTurn, ...] = ()


DEBATE_GRAPH: tuple[TurnNode, ...] = (
    TurnNode(DebateTurn.OPENING_FOR),
    TurnNode(DebateTurn.OPENING_AGAINST),
    TurnNode(DebateTurn.REBUTTAL_FOR, (DebateTurn.OPENING_AGAINST,)),
    TurnNode(DebateTurn.REBUTTAL_AGAINST, (DebateTurn.OPENING_FOR,)),
    TurnNode(
        DebateTurn.FOLLOWUP_FOR,
        (DebateTurn.OPENING_FOR, DebateTurn.OPENING_AGAINST, DebateTurn.REBUTTAL_AGAINST),
    ),
    TurnNode(
        DebateTurn.FOLLOWUP_AGAINST,
        (DebateTurn.OPENING_AGAINST, DebateTurn.OPENING_FOR, DebateTurn.REBUTTAL_FOR),
    ),
)

TurnExecutor = Callable[[DebateTurn, Mapping[DebateTurn, str]], Awaitable[str]]


def plan_waves(nodes: Sequence[TurnNode]) -> list[list[TurnNode]]:
    """
    Group nodes into waves of mutually independent nodes.

    Raises ValueError for unknown dependencies or cycles.
    """
    known = {node.turn for node in nodes}
    for node in nodes:
        unknown = [dep for dep in node.depends_on if dep not in known]
        if unknown:
            raise ValueError(f"{node.turn.value} depends on unknown turn(s): {unknown}")

    resolved: set[DebateTurn] = set()
    remaining = list(nodes)
    waves = []
    while remaining:
        wave = [node for node in remaining if all(dep in resolved for dep in node.depends_on)]
        if not wave:
            stuck = ", ".join(node.turn.value for node in remaining)
            raise ValueError(f"Dependency cycle between: {stuck}")
        waves.append(wave)
        resolved.update(node.turn for node in wave)
        remaining = [node for node in remaining if node not in wave]
    return waves


async def run_turn_graph(
    nodes: Sequence[TurnNode],
    execute: TurnExecutor,
) -> dict[DebateTurn, str]:
    """Execute every node, wave by wave. Returns turn → text."""
    results: dict[DebateTurn, str] = {}

    for index, wave in enumerate(plan_waves(nodes), 1):
        logger.info(f"Wave {index}: {[node.turn.value for node in wave]}")

        tasks = [
            asyncio.create_task(
                execute(node.turn, {dep: results[dep] for dep in node.depends_on}),
                name=node.turn.value,
            )
            for node in wave
        ]
        try:
            texts = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            # Let cancelled siblings unwind before propagating
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        for node, text in zip(wave, texts):
            results[node.turn] = text

    return results
