"""
SQLAlchemy-backed score store.

Table: property_confidence_scores (see migrations/versions/001).
Every save is one INSERT; rows are never updated or deleted here.

Request handlers pass their session; the monthly batch passes a session
factory so concurrent workers never share an AsyncSession.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from confidence_engine.core.exceptions import PersistenceError
from confidence_engine.models.confidence_score import ConfidenceScore, ConfidenceScoreRecord
from confidence_engine.repositories.interfaces import ConfidenceScoreRepository

logger = structlog.get_logger(__name__)


class SqlAlchemyConfidenceScoreRepository(ConfidenceScoreRepository):

    def __init__(
        self,
        session: Optional[AsyncSession] = None,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    ):
        if (session is None) == (session_factory is None):
            raise ValueError("Pass exactly one of session or session_factory")
        self._session = session
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session_scope(self) -> AsyncIterator[AsyncSession]:
        if self._session is not None:
            yield self._session
        else:
            async with self._session_factory() as session:
                yield session

    async def save(self, score: ConfidenceScore) -> ConfidenceScore:
        record = ConfidenceScoreRecord(
            property_id=score.property_id,
            calculation_date=score.calculation_date,
            insurance_score=score.insurance_score,
            buyer_score=score.buyer_score,
            score_factors=score.factors_dict(),
            is_partial=score.is_partial,
        )
        async with self._session_scope() as session:
            try:
                session.add(record)
                await session.commit()
                await session.refresh(record)
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error("score_save_failed", property_id=score.property_id, error=str(e))
                raise PersistenceError(f"Could not save score for property {score.property_id}") from e

        logger.debug("score_saved", score_id=record.id, property_id=score.property_id)
        return score.with_identity(str(record.id), record.created_at)

    @staticmethod
    def _latest_first(property_id: str):
        return (
            select(ConfidenceScoreRecord)
            .where(ConfidenceScoreRecord.property_id == property_id)
            .order_by(ConfidenceScoreRecord.calculation_date.desc(), ConfidenceScoreRecord.id.desc())
        )

    async def find_latest_by_property_id(self, property_id: str) -> Optional[ConfidenceScore]:
        async with self._session_scope() as session:
            result = await session.execute(self._latest_first(property_id).limit(1))
            record = result.scalar_one_or_none()
            return record.to_domain() if record else None

    async def find_history_by_property_id(self, property_id: str, limit: int = 12) -> list[ConfidenceScore]:
        async with self._session_scope() as session:
            result = await session.execute(self._latest_first(property_id).limit(limit))
            return [r.to_domain() for r in result.scalars()]
