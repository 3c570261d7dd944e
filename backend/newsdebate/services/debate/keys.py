"""
Debate Cache Keys.

Two requests are "the same debate" when they have the same summary, the
same pair of models (ignoring OpenRouter's ":online" suffix) and the same
set of perspectives, regardless of how the client ordered or repeated them:

    "Morality, Economics"
    ["Economics", " Morality ", "Economics"]
    "Economics,Morality"
        → perspectives ("Economics", "Morality") → "Economics, Morality"

Perspectives are compared as exact trimmed strings: "economics" and
"Economics" are different lenses.

Everything here is pure. The exact same DebateKey is used for the lookup
predicate and for the stored row, so the two can't drift apart.
"""

import hashlib
import json
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Optional, Union

from newsdebate.services.llm import strip_online_suffix

PERSPECTIVE_SEPARATOR = ","
PERSPECTIVE_JOINER = ", "

PerspectiveInput = Union[str, Iterable[str], None]


def normalize_model(model: str) -> str:
    """Model id as used in the cache key (online suffix stripped)."""
    return strip_online_suffix(model)


def normalize_perspectives(perspectives: PerspectiveInput) -> tuple[str, ...]:
    """
    Trim, split on commas, drop empties, dedupe, sort.

    Accepts a comma-separated string or any iterable of strings (whose
    items may themselves contain commas).
    """
    if perspectives is None:
        return ()
    if isinstance(perspectives, str):
        perspectives = [perspectives]

    cleaned = set()
    for item in perspectives:
        for part in str(item).split(PERSPECTIVE_SEPARATOR):
            part = part.strip()
            if part:
                cleaned.add(part)
    return tuple(sorted(cleaned))


@dataclass(frozen=True)
class DebateKey:
    """The normalized identity of a debate."""

    summary: str
    model_a: str
    model_b: str
    perspectives: tuple[str, ...]

    @property
    def perspectives_text(self) -> str:
        """The stored/queried form of the perspective set."""
        return PERSPECTIVE_JOINER.join(self.perspectives)

    @property
    def digest(self) -> str:
        """SHA-256 over the canonical key (unique column in debate_inputs)."""
        canonical = json.dumps(
            [self.summary, self.model_a, self.model_b, list(self.perspectives)],
            ensure_ascii=False,
            separators=(",", ":"),
        )
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def build_debate_key(
    summary: str,
    model_a: str,
    model_b: str,
    perspectives: PerspectiveInput,
    default_perspective: Optional[str] = None,
) -> DebateKey:
    """
    Build the canonical key.

    If no perspective survives normalization, `default_perspective` (when
    given) is used instead, so "" and "Morality" end up as the same debate
    when Morality is the default.
    """
    normalized = normalize_perspectives(perspectives)
    if not normalized and default_perspective:
        normalized = normalize_perspectives(default_perspective)
    return DebateKey(
        summary=summary.strip(),
        model_a=normalize_model(model_a),
        model_b=normalize_model(model_b),
        perspectives=normalized,
    )
