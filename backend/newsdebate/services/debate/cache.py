"""
Debate Cache — look up finished debates before generating new ones.

WHAT THIS DOES:
Six generation calls per debate are slow and cost money. When someone asks
for a debate we have already produced (same summary, same models, same
perspective set) we replay the stored texts instead.

    lookup(key) → DebateOutputs | None
    store(key, outputs) → True if inserted, False if the key already existed

HOW IT WORKS:
- Lookup is an exact match on all four key columns (summary text,
  normalized model A, normalized model B, normalized perspectives).
- Store writes the debate_inputs row and its debate_outputs row in ONE
  transaction. Either both exist or neither does.
- Store checks the digest first and returns False if it is already there.
- debate_inputs.key_digest is unique. Two identical requests racing each
  other can both miss the cache, but only one insert wins; the loser gets
  an IntegrityError, which we report as "already stored" once the winner's
  row is visible.

SESSIONS:
One session per operation from the session factory, released by
`async with` whatever happens. Database errors surface as StorageError.
"""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from newsdebate.exceptions import StorageError
from newsdebate.models.records import DebateInput, DebateOutput
from newsdebate.services.debate.keys import DebateKey
from newsdebate.services.debate.models import DebateOutputs

logger = logging.getLogger(__name__)


class DebateCache:
    """Persistent debate cache backed by debate_inputs / debate_outputs."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def lookup(self, key: DebateKey) -> DebateOutputs | None:
        """Return the stored debate for `key`, or None."""
        stmt = (
            select(DebateOutput)
            .join(DebateInput, DebateOutput.input_id == DebateInput.id)
            .where(
                DebateInput.text == key.summary,
                DebateInput.model_a == key.model_a,
                DebateInput.model_b == key.model_b,
                DebateInput.perspectives == key.perspectives_text,
            )
            .order_by(DebateInput.id)
            .limit(1)
        )
        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                row = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StorageError(f"Debate cache lookup failed: {e}") from e

        if row is None:
            logger.info(f"Cache miss for {key.model_a} vs {key.model_b} ({key.perspectives_text})")
            return None

        logger.info(f"Cache hit: debate_outputs.id={row.id}")
        return DebateOutputs(
            opening_for=row.opening_for,
            opening_against=row.opening_against,
            rebuttal_for=row.rebuttal_for,
            rebuttal_against=row.rebuttal_against,
            followup_for=row.followup_for,
            followup_against=row.followup_against,
        )

    async def _exists(self, digest: str) -> bool:
        try:
            async with self.session_factory() as session:
                found = await session.scalar(select(DebateInput.id).where(DebateInput.key_digest == digest))
        except SQLAlchemyError as e:
            raise StorageError(f"Debate cache lookup failed: {e}") from e
        return found is not None

    async def store(self, key: DebateKey, outputs: DebateOutputs) -> bool:
        """
        Insert the debate if its key is not stored yet.

        Returns True when a new record was written, False when the key was
        already present (the existing record is left untouched).
        """
        digest = key.digest
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    existing = await session.scalar(
                        select(DebateInput.id).where(DebateInput.key_digest == digest)
                    )
                    if existing is not None:
                        logger.info(f"Debate {digest[:12]} already stored (input id {existing})")
                        return False

                    debate_input = DebateInput(
                        text=key.summary,
                        model_a=key.model_a,
                        model_b=key.model_b,
                        perspectives=key.perspectives_text,
                        key_digest=digest,
                    )
                    session.add(debate_input)
                    # Flush to get the generated id for the child row
                    await session.flush()

                    session.add(DebateOutput(
                        input_id=debate_input.id,
                        opening_for=outputs.opening_for,
                        opening_against=outputs.opening_against,
                        rebuttal_for=outputs.rebuttal_for,
                        rebuttal_against=outputs.rebuttal_against,
                        followup_for=outputs.followup_for,
                        followup_against=outputs.followup_against,
                    ))
        except IntegrityError as e:
            # A concurrent identical request won the insert
            if await self._exists(digest):
                logger.info(f"Debate {digest[:12]} stored concurrently, keeping the existing record")
                return False
            raise StorageError(f"Debate cache store failed: {e}") from e
        except SQLAlchemyError as e:
            raise StorageError(f"Debate cache store failed: {e}") from e

        logger.info(f"Stored debate {digest[:12]} (input id {debate_input.id})")
        return True
