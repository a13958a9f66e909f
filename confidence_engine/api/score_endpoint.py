"""
GET /api/properties/{property_id}/confidence-score

Read path for the dashboard: latest snapshot, rating bands, trend.
Never recalculates; scores only change when the monthly job (or an admin
recalculation) appends a snapshot.
"""
from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException

from confidence_engine.api.dependencies import get_score_repository
from confidence_engine.core.auth import verify_token
from confidence_engine.core.config import Settings, get_settings
from confidence_engine.repositories.interfaces import ConfidenceScoreRepository
from confidence_engine.schemas.score_response import ConfidenceScoreResponse, HistoricalScore
from confidence_engine.scoring.engine import rating_for_score

logger = structlog.get_logger()
router = APIRouter(prefix="/api/properties", tags=["confidence-score"])

MAX_PROPERTY_ID_LENGTH = 128


@router.get(
    "/{property_id}/confidence-score",
    response_model=ConfidenceScoreResponse,
    summary="Latest confidence score for a property",
    responses={400: {"description": "Invalid property ID"}, 404: {"description": "Never scored"}},
)
async def get_confidence_score(
    property_id: str,
    score_repository: ConfidenceScoreRepository = Depends(get_score_repository),
    settings: Settings = Depends(get_settings),
    token_payload: dict = Depends(verify_token),
) -> ConfidenceScoreResponse:
    if (
        not property_id
        or property_id != property_id.strip()
        or len(property_id) > MAX_PROPERTY_ID_LENGTH
    ):
        raise HTTPException(status_code=400, detail="Invalid property ID")

    try:
        latest = await score_repository.find_latest_by_property_id(property_id)
        history = await score_repository.find_history_by_property_id(
            property_id, limit=settings.score_history_limit,
        ) if latest else []
    except Exception as e:
        logger.error("confidence_score_fetch_failed", property_id=property_id, error=str(e), exc_info=True)
        raise HTTPException(status_code=500, detail="An internal server error occurred")

    if latest is None:
        raise HTTPException(status_code=404, detail="No confidence score found for this property")

    logger.info(
        "confidence_score_served",
        property_id=property_id,
        score_id=latest.score_id,
        caller=token_payload.get("sub", "unknown"),
    )

    return ConfidenceScoreResponse(
        property_id=latest.property_id,
        calculation_date=latest.calculation_date.date(),
        insurance_score=latest.insurance_score,
        buyer_score=latest.buyer_score,
        insurance_rating=rating_for_score(latest.insurance_score),
        buyer_rating=rating_for_score(latest.buyer_score),
        is_partial=latest.is_partial,
        historical_data=[
            HistoricalScore(
                recorded_on=s.calculation_date.date(),
                insurance_score=s.insurance_score,
                buyer_score=s.buyer_score,
            )
            for s in history
        ],
        factors=latest.factors_dict(),
    )

