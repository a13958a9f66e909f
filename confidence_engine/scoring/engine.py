"""
Property Confidence Scoring Engine

Orchestrates, for one property:
  1. Property lookup (fails fast when the id does not resolve)
  2. Asset inventory + maintenance task fetch
  3. All 13 factor scores (0-100 each)
  4. Two weighted composites: insurance-risk and buyer-confidence (0-1000)

Called by the monthly batch and by the admin recalculation endpoint.
"""
from __future__ import annotations

import asyncio
import math
import time
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Mapping

import structlog

from confidence_engine.core.exceptions import PropertyNotFoundError, UpstreamLookupError
from confidence_engine.models.confidence_score import ConfidenceScore
from confidence_engine.repositories.interfaces import AssetRepository, PropertyRepository, TaskRepository
from confidence_engine.schemas.property_data import SystemCategory
from confidence_engine.schemas.score_response import RatingBand
from confidence_engine.scoring import factors
from confidence_engine.scoring.flood_risk import FloodRiskLookup

logger = structlog.get_logger()


# ═══════════════════════════════════════════════════════════════
# Weight vectors
#   A factor missing from a vector contributes nothing to it.
#   Neither vector sums to 1.0 (insurance 0.90, buyer 0.88), so the
#   best achievable scores are 900 and 880.
# ═══════════════════════════════════════════════════════════════
INSURANCE_WEIGHTS: dict[str, float] = {
    "foundationIntegrity": 0.15,
    "roofCondition": 0.10,
    "hvacCondition": 0.10,
    "electricalSystem": 0.12,
    "plumbingSystem": 0.12,
    "floodRisk": 0.12,
    "fireRisk": 0.05,
    "crimeRate": 0.02,
    "subsidenceRisk": 0.10,
    "epcRating": 0.02,
}

BUYER_WEIGHTS: dict[str, float] = {
    "foundationIntegrity": 0.10,
    "roofCondition": 0.08,
    "hvacCondition": 0.09,
    "electricalSystem": 0.10,
    "plumbingSystem": 0.10,
    "floodRisk": 0.02,
    "localSchools": 0.08,
    "transportLinks": 0.08,
    "localAmenities": 0.08,
    "epcRating": 0.15,
}

SCORE_SCALE = 1000

SYSTEM_FACTORS = (
    ("hvacCondition", SystemCategory.HVAC),
    ("electricalSystem", SystemCategory.ELECTRICAL),
    ("plumbingSystem", SystemCategory.PLUMBING),
)


# ═══════════════════════════════════════════════════════════════
# Rating bands (presentation only) — exclusive lower bounds
#   > 900 Excellent, > 800 Very Good, > 700 Good,
#   > 600 Fair, > 500 Poor, else Very Poor
# ═══════════════════════════════════════════════════════════════
RATING_BANDS = [
    (900, RatingBand.EXCELLENT),
    (800, RatingBand.VERY_GOOD),
    (700, RatingBand.GOOD),
    (600, RatingBand.FAIR),
    (500, RatingBand.POOR),
]


def rating_for_score(score: int) -> RatingBand:
    for threshold, band in RATING_BANDS:
        if score > threshold:
            return band
    return RatingBand.VERY_POOR


def round_half_up(value: float) -> int:
    """0.5 rounds up: 695.5 → 696. Scores are never negative."""
    return int(math.floor(value + 0.5))


def aggregate_score(factor_scores: Mapping[str, float], weights: Mapping[str, float]) -> int:
    """sum(score / 100 * weight) over the factors, scaled to 0-1000."""
    raw = 0.0
    for name, score in factor_scores.items():
        raw += (score / 100) * weights.get(name, 0.0)
    return round_half_up(raw * SCORE_SCALE)


@dataclass
class ScoreCalculation:
    insurance_score: int
    buyer_score: int
    factors: dict[str, float]
    factor_results: list[factors.FactorResult] = field(default_factory=list)
    degraded_factors: list[str] = field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        return bool(self.degraded_factors)


def build_snapshot(property_id: str, calculation: ScoreCalculation, calculation_date: datetime) -> ConfidenceScore:
    return ConfidenceScore(
        property_id=property_id,
        calculation_date=calculation_date,
        insurance_score=calculation.insurance_score,
        buyer_score=calculation.buyer_score,
        score_factors=calculation.factors,
        is_partial=calculation.is_partial,
    )


class ConfidenceScoreService:

    def __init__(
        self,
        property_repository: PropertyRepository,
        asset_repository: AssetRepository,
        task_repository: TaskRepository,
        flood_risk_lookup: FloodRiskLookup,
        *,
        flood_risk_timeout_seconds: float = 5.0,
        flood_risk_fallback_score: float = 50.0,
        today: Callable[[], date] = date.today,
    ):
        self.property_repository = property_repository
        self.asset_repository = asset_repository
        self.task_repository = task_repository
        self.flood_risk_lookup = flood_risk_lookup
        self.flood_risk_timeout_seconds = flood_risk_timeout_seconds
        self.flood_risk_fallback_score = flood_risk_fallback_score
        self.today = today

    async def calculate_for_property(self, property_id: str) -> ScoreCalculation:
        """
        Main scoring entry point.

        Raises PropertyNotFoundError before touching any other provider when
        the id does not resolve. Provider errors propagate; only the flood
        risk lookup degrades to a fallback value.
        """
        t0 = time.perf_counter_ns()

        # ── Step 1: Property ──
        prop = await self.property_repository.find_by_id(property_id)
        if prop is None:
            raise PropertyNotFoundError(property_id)

        # ── Step 2: Inventory + task history (empty is fine) ──
        assets = await self.asset_repository.find_by_property_id(property_id)
        tasks = await self.task_repository.find_by_property_id(property_id)

        # ── Step 3: Factors ──
        reference_date = self.today()
        results: dict[str, factors.FactorResult] = {
            "foundationIntegrity": factors.placeholder("foundationIntegrity"),
            "roofCondition": factors.placeholder("roofCondition"),
        }
        for factor_name, category in SYSTEM_FACTORS:
            results[factor_name] = factors.score_system_condition(
                assets, category.value, factor_name, reference_date,
            )
        results["floodRisk"] = await self._flood_risk(property_id, prop.postcode)
        results["epcRating"] = factors.score_epc_rating(prop.epc_rating)
        for factor_name in factors.FACTOR_ORDER:
            if factor_name not in results:
                results[factor_name] = factors.placeholder(factor_name)

        ordered = [results[name] for name in factors.FACTOR_ORDER]
        factor_scores = {r.factor_name: r.score for r in ordered}

        # ── Step 4: Composites ──
        insurance_score = aggregate_score(factor_scores, INSURANCE_WEIGHTS)
        buyer_score = aggregate_score(factor_scores, BUYER_WEIGHTS)
        degraded = [r.factor_name for r in ordered if r.degraded]

        elapsed_ms = int((time.perf_counter_ns() - t0) / 1_000_000)
        logger.info(
            "confidence_score_calculated",
            property_id=property_id,
            insurance_score=insurance_score,
            buyer_score=buyer_score,
            asset_count=len(assets),
            task_count=len(tasks),
            degraded_factors=degraded,
            elapsed_ms=elapsed_ms,
        )

        return ScoreCalculation(
            insurance_score=insurance_score,
            buyer_score=buyer_score,
            factors=factor_scores,
            factor_results=ordered,
            degraded_factors=degraded,
        )

    async def _flood_risk(self, property_id: str, postcode: str) -> factors.FactorResult:
        try:
            value = await asyncio.wait_for(
                self.flood_risk_lookup.score_for_postcode(postcode),
                timeout=self.flood_risk_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "flood_risk_lookup_timeout",
                property_id=property_id,
                postcode=postcode,
                timeout_seconds=self.flood_risk_timeout_seconds,
            )
            return factors.score_flood_risk(self.flood_risk_fallback_score, degraded=True)
        except UpstreamLookupError as e:
            logger.warning("flood_risk_lookup_failed", property_id=property_id, postcode=postcode, error=str(e))
            return factors.score_flood_risk(self.flood_risk_fallback_score, degraded=True)

        return factors.score_flood_risk(value)
