"""
Admin API — on-demand scoring.

Endpoints:
  POST /v1/admin/run-monthly-scores
    → Run the monthly confidence score batch now

  POST /v1/admin/properties/{property_id}/recalculate
    → Score one property and append a snapshot
"""
from __future__ import annotations

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, HTTPException

from confidence_engine.api.dependencies import get_score_repository, get_score_service
from confidence_engine.core.auth import verify_token
from confidence_engine.core.exceptions import PropertyNotFoundError
from confidence_engine.jobs.monthly_score_calculator import run_monthly_score_calculation
from confidence_engine.repositories.interfaces import ConfidenceScoreRepository
from confidence_engine.schemas.score_response import RunResponse, SnapshotResponse
from confidence_engine.scoring.engine import ConfidenceScoreService, build_snapshot
from confidence_engine.services.event_publisher import publish_score_event

logger = structlog.get_logger()
router = APIRouter(prefix="/v1/admin", tags=["admin"])


@router.post(
    "/run-monthly-scores",
    response_model=RunResponse,
    summary="Run the monthly confidence score batch on demand",
    description=(
        "Scores every property from the property provider and appends one "
        "snapshot per property. Per-property failures are reported in the "
        "job result; the run itself only fails if properties cannot be listed."
    ),
)
async def trigger_monthly_scores(token: dict = Depends(verify_token)) -> RunResponse:
    user = token.get("sub", "unknown")
    logger.info("monthly_scores_triggered", triggered_by=user)

    try:
        result = await run_monthly_score_calculation()
    except Exception as e:
        logger.error("monthly_scores_trigger_failed", error=str(e), triggered_by=user)
        raise HTTPException(status_code=500, detail="Monthly score run failed")

    return RunResponse(
        triggered_by=user,
        status=result["status"],
        message=(
            f"Scored {result['succeeded']}/{result['properties_total']} properties, "
            f"{result['failed']} failed, {result['partial']} partial "
            f"({result['elapsed_seconds']}s)"
        ),
        job_result=result,
    )


@router.post(
    "/properties/{property_id}/recalculate",
    response_model=SnapshotResponse,
    summary="Score a single property now",
)
async def recalculate_property(
    property_id: str,
    score_service: ConfidenceScoreService = Depends(get_score_service),
    score_repository: ConfidenceScoreRepository = Depends(get_score_repository),
    token: dict = Depends(verify_token),
) -> SnapshotResponse:
    user = token.get("sub", "unknown")
    try:
        calculation = await score_service.calculate_for_property(property_id)
    except PropertyNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error("recalculation_failed", property_id=property_id, error=str(e), exc_info=True)
        raise HTTPException(status_code=500, detail="An internal server error occurred")

    snapshot = build_snapshot(property_id, calculation, datetime.now(timezone.utc))
    try:
        saved = await score_repository.save(snapshot)
    except Exception as e:
        logger.error("recalculation_save_failed", property_id=property_id, error=str(e))
        raise HTTPException(status_code=500, detail="An internal server error occurred")

    await publish_score_event(saved)
    logger.info(
        "property_recalculated",
        property_id=property_id,
        score_id=saved.score_id,
        insurance_score=saved.insurance_score,
        buyer_score=saved.buyer_score,
        triggered_by=user,
    )

    return SnapshotResponse(
        score_id=saved.score_id,
        property_id=saved.property_id,
        calculation_date=saved.calculation_date,
        insurance_score=saved.insurance_score,
        buyer_score=saved.buyer_score,
        is_partial=saved.is_partial,
        factors=saved.factors_dict(),
    )
