"""
Debate Models — turns, sides, and the six-text result.

A debate is always six turns in this order:

    opening_for      opening_against        ← round 1 (independent)
    rebuttal_for     rebuttal_against       ← round 2 (each answers the other opening)
    followup_for     followup_against       ← round 3 (answers opening + rebuttal)

Model A always argues FOR, model B always argues AGAINST.
"""

from dataclasses import dataclass, fields
from enum import Enum


class Side(str, Enum):
    FOR = "FOR"
    AGAINST = "AGAINST"

    @property
    def opponent(self) -> "Side":
        return Side.AGAINST if self is Side.FOR else Side.FOR


class Stage(str, Enum):
    OPENING = "opening"
    REBUTTAL = "rebuttal"
    FOLLOWUP = "followup"


class DebateTurn(str, Enum):
    """
    One of the six turns. The value doubles as the NDJSON contentType label.
    Declaration order is the canonical turn order.
    """
    OPENING_FOR = "opening_for"
    OPENING_AGAINST = "opening_against"
    REBUTTAL_FOR = "rebuttal_for"
    REBUTTAL_AGAINST = "rebuttal_against"
    FOLLOWUP_FOR = "followup_for"
    FOLLOWUP_AGAINST = "followup_against"

    @property
    def stage(self) -> Stage:
        return Stage(self.value.split("_")[0])

    @property
    def side(self) -> Side:
        return Side(self.value.split("_")[1].upper())

    @classmethod
    def of(cls, stage: Stage, side: Side) -> "DebateTurn":
        return cls(f"{stage.value}_{side.value.lower()}")


@dataclass(frozen=True)
class DebateOutputs:
    """The six texts of a finished debate, one field per turn."""

    opening_for: str
    opening_against: str
    rebuttal_for: str
    rebuttal_against: str
    followup_for: str
    followup_against: str

    def get(self, turn: DebateTurn) -> str:
        return getattr(self, turn.value)

    @classmethod
    def from_turns(cls, texts: dict[DebateTurn, str]) -> "DebateOutputs":
        """Build from a turn → text mapping (all six turns required)."""
        missing = [turn.value for turn in DebateTurn if turn not in texts]
        if missing:
            raise ValueError(f"Missing debate turns: {', '.join(missing)}")
        return cls(**{turn.value: texts[turn] for turn in DebateTurn})

    def to_payload(self) -> dict[str, str]:
        """camelCase payload for the final "done" frame and JSON responses."""
        payload = {}
        for f in fields(self):
            head, *rest = f.name.split("_")
            payload[head + "".join(part.capitalize() for part in rest)] = getattr(self, f.name)
        return payload
