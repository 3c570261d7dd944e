"""
SQLAlchemy models for summaries and cached debates.

TABLES:
- summary_inputs / summary_outputs: every summarization call is stored,
  even when the same article text comes in twice (no deduplication)
- debate_inputs / debate_outputs: one row pair per unique debate key;
  the pair is the debate cache

The debate key is (summary text, model A, model B, perspectives) with the
models and perspectives already normalized. `key_digest` is a SHA-256 of
that canonical key. It carries the unique constraint because a btree index
over four TEXT columns (a whole news summary among them) would hit index
row size limits.
"""

from datetime import datetime

from sqlalchemy import ForeignKey, String, Text, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from newsdebate.database import Base


# =============================================================================
# SUMMARIES
# =============================================================================

class SummaryInput(Base):
    """The article text a user asked us to summarize."""

    __tablename__ = "summary_inputs"

    id: Mapped[int] = mapped_column(primary_key=True)
    text: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    output: Mapped["SummaryOutput"] = relationship(back_populates="input")


class SummaryOutput(Base):
    """The clipped summary produced for a SummaryInput."""

    __tablename__ = "summary_outputs"

    id: Mapped[int] = mapped_column(primary_key=True)
    input_id: Mapped[int] = mapped_column(ForeignKey("summary_inputs.id", ondelete="CASCADE"), index=True)
    text: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    input: Mapped[SummaryInput] = relationship(back_populates="output")


# =============================================================================
# DEBATES (the cache)
# =============================================================================

class DebateInput(Base):
    """
    The normalized key of a debate.

    `perspectives` holds the sorted, deduplicated perspective list joined
    with ", ". The lookup predicate uses exactly the same string.
    """

    __tablename__ = "debate_inputs"

    id: Mapped[int] = mapped_column(primary_key=True)
    text: Mapped[str] = mapped_column(Text)
    model_a: Mapped[str] = mapped_column(String(200))
    model_b: Mapped[str] = mapped_column(String(200))
    perspectives: Mapped[str] = mapped_column(Text)
    key_digest: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    output: Mapped["DebateOutput"] = relationship(back_populates="input")

    def __repr__(self) -> str:
        return f"<DebateInput id={self.id} models={self.model_a}/{self.model_b} perspectives={self.perspectives!r}>"


class DebateOutput(Base):
    """The six turn texts of a debate, one column per turn."""

    __tablename__ = "debate_outputs"

    id: Mapped[int] = mapped_column(primary_key=True)
    input_id: Mapped[int] = mapped_column(
        ForeignKey("debate_inputs.id", ondelete="CASCADE"), unique=True, index=True
    )
    opening_for: Mapped[str] = mapped_column(Text)
    opening_against: Mapped[str] = mapped_column(Text)
    rebuttal_for: Mapped[str] = mapped_column(Text)
    rebuttal_against: Mapped[str] = mapped_column(Text)
    followup_for: Mapped[str] = mapped_column(Text)
    followup_against: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    input: Mapped[DebateInput] = relationship(back_populates="output")
