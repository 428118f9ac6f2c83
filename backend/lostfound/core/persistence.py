"""Persistence of match candidates.

Match search hands its ranked candidates to a MatchStore exactly once per
search. The store assigns identities and the initial "pending" status.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from lostfound.core.errors import PersistenceError
from lostfound.core.matching.models import MatchCandidate, MatchStatus
from lostfound.core.tracing import get_search_id
from lostfound.db.models import MatchRecord

logger = structlog.get_logger("lostfound.persistence")


@runtime_checkable
class MatchStore(Protocol):
    """Bulk sink for match candidates."""

    async def save_candidates(self, candidates: Sequence[MatchCandidate]) -> list[MatchRecord]:
        """Insert candidates as pending matches.

        Raises:
            PersistenceError: If the store rejects the insert
        """
        ...


def candidate_to_record(candidate: MatchCandidate, search_id: str | None = None) -> MatchRecord:
    """Build the pending row for one candidate."""
    return MatchRecord(
        lost_item_id=str(candidate.lost_report.id),
        found_item_id=str(candidate.found_report.id),
        confidence=candidate.similarity.score,
        text_score=candidate.similarity.text_score,
        image_score=candidate.similarity.image_score,
        status=MatchStatus.PENDING.value,
        search_id=search_id,
    )


class SQLModelMatchStore:
    """MatchStore writing to the matches table through SQLModel."""

    def __init__(self, session_factory: async_sessionmaker[SQLModelAsyncSession]) -> None:
        self.session_factory = session_factory

    async def save_candidates(self, candidates: Sequence[MatchCandidate]) -> list[MatchRecord]:
        """Insert all candidates in one transaction.

        Raises:
            PersistenceError: On any database error; nothing is committed
        """
        if not candidates:
            return []

        search_id = get_search_id()
        records = [candidate_to_record(c, search_id) for c in candidates]

        try:
            async with self.session_factory() as session:
                session.add_all(records)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(
                "Failed to save matches",
                count=len(records),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise PersistenceError(f"Failed to save {len(records)} matches: {e}") from e

        logger.info("Matches saved", count=len(records))
        return records

    async def list_matches(self, status: MatchStatus | None = None) -> list[MatchRecord]:
        """Return stored matches, highest confidence first."""
        statement = select(MatchRecord).order_by(col(MatchRecord.confidence).desc())
        if status is not None:
            statement = statement.where(MatchRecord.status == status.value)

        async with self.session_factory() as session:
            result = await session.exec(statement)
            return list(result.all())
