"""Request-scoped wiring for the HTTP layer."""
from __future__ import annotations

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from confidence_engine.core.config import Settings, get_settings
from confidence_engine.models.database import get_db
from confidence_engine.repositories.interfaces import ConfidenceScoreRepository
from confidence_engine.repositories.score_repository import SqlAlchemyConfidenceScoreRepository
from confidence_engine.jobs.monthly_score_calculator import build_score_service
from confidence_engine.scoring.engine import ConfidenceScoreService


def get_score_repository(db: AsyncSession = Depends(get_db)) -> ConfidenceScoreRepository:
    return SqlAlchemyConfidenceScoreRepository(session=db)


def get_score_service(settings: Settings = Depends(get_settings)) -> ConfidenceScoreService:
    return build_score_service(settings)
