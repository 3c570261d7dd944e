"""
Debate Prompt Templates.

Every prompt carries:
- the side's stance (FOR / AGAINST the central claim)
- the lens (the normalized perspective text, e.g. "Economics, Morality")
- a word band: 220-280 for openings, 160-220 for rebuttals and followups
- the rule to use ONLY facts from the supplied summary
- the literal text of whatever earlier turns this one answers

WHAT EACH TURN SEES:
    opening_*      summary only
    rebuttal_for   summary + opening_against
    followup_for   summary + opening_for + opening_against + rebuttal_against
(and mirrored for AGAINST)
"""

from collections.abc import Mapping
from dataclasses import dataclass

from newsdebate.services.debate.models import DebateTurn, Side, Stage

OPENING_WORDS = "220-280"
RESPONSE_WORDS = "160-220"

# Openings get a bit more room to be creative
OPENING_TEMPERATURE = 0.4
RESPONSE_TEMPERATURE = 0.2


@dataclass(frozen=True)
class TurnPrompt:
    system: str
    user: str
    temperature: float


def _system_prompt(turn: DebateTurn, lens: str) -> str:
    side = turn.side
    if turn.stage is Stage.OPENING:
        return (
            f"You argue {side.value} the central claim. "
            f"Your opposition will argue {side.opponent.value} the central claim. "
            f"You will use ONLY the SUMMARY facts. "
            f"Respond through lens of {lens}. {OPENING_WORDS} words. No insults."
        )
    if turn.stage is Stage.REBUTTAL:
        target = "the opponent's opening"
    else:
        target = "the opponent's opening and their rebuttal"
    return (
        f"You argue {side.value} the central claim. "
        f"Respond directly to {target} using only the SUMMARY and facts. "
        f"Respond through lens of {lens}. {RESPONSE_WORDS} words. No insults. All in one line."
    )


def _user_prompt(turn: DebateTurn, summary: str, prior: Mapping[DebateTurn, str]) -> str:
    side = turn.side
    opponent = side.opponent
    opposing_opening = prior.get(DebateTurn.of(Stage.OPENING, opponent), "")

    if turn.stage is Stage.OPENING:
        return f"SUMMARY:\n{summary}\n\nWrite your opening."

    if turn.stage is Stage.REBUTTAL:
        return (
            f"SUMMARY:\n{summary}\n\n"
            f"OPPOSITION'S OPENING ({opponent.value}):\n{opposing_opening}\n\n"
            f"Write your rebuttal."
        )

    own_opening = prior.get(DebateTurn.of(Stage.OPENING, side), "")
    opposing_rebuttal = prior.get(DebateTurn.of(Stage.REBUTTAL, opponent), "")
    return (
        f"SUMMARY:\n{summary}\n\n"
        f"YOUR OPENING STATEMENT ({side.value}):\n{own_opening}\n\n"
        f"OPPOSITION'S OPENING ({opponent.value}):\n{opposing_opening}\n\n"
        f"OPPOSITION'S REBUTTAL TO YOUR OPENING:\n{opposing_rebuttal}\n\n"
        f"Write your followup regarding all this."
    )


def build_turn_prompt(
    turn: DebateTurn,
    summary: str,
    lens: str,
    prior: Mapping[DebateTurn, str],
) -> TurnPrompt:
    """Build the prompt for `turn` from the summary and its dependencies' texts."""
    temperature = OPENING_TEMPERATURE if turn.stage is Stage.OPENING else RESPONSE_TEMPERATURE
    return TurnPrompt(
        system=_system_prompt(turn, lens),
        user=_user_prompt(turn, summary, prior),
        temperature=temperature,
    )
