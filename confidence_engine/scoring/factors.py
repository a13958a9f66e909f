"""
Property Confidence — Factor Definitions

Each factor:
  1. Takes records from the data providers (or an external lookup value)
  2. Maps them to a 0-100 sub-score
  3. Returns a FactorResult tagged with where the number came from

Weights are applied in the engine, not here.

Convention: HIGHER score = LOWER risk / MORE attractive.

Eight of the thirteen factors have no data source yet. They are returned as
PLACEHOLDER results with fixed values so the gap stays visible in the
factor breakdown and in the tests.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Iterable, Optional

from confidence_engine.schemas.property_data import Asset, AssetCondition


class FactorKind(str, Enum):
    COMPUTED = "COMPUTED"        # derived from property / asset records
    EXTERNAL = "EXTERNAL"        # external lookup keyed by the property
    PLACEHOLDER = "PLACEHOLDER"  # no data source yet, fixed value


@dataclass(frozen=True)
class FactorResult:
    factor_name: str
    kind: FactorKind
    score: float
    detail: str = ""
    degraded: bool = False


# Evaluation (and summation) order of every factor.
FACTOR_ORDER: tuple[str, ...] = (
    "foundationIntegrity",
    "roofCondition",
    "hvacCondition",
    "electricalSystem",
    "plumbingSystem",
    "floodRisk",
    "epcRating",
    "fireRisk",
    "crimeRate",
    "subsidenceRisk",
    "localSchools",
    "transportLinks",
    "localAmenities",
)


# ═══════════════════════════════════════════════════════════════
# Placeholder factors
#   foundationIntegrity — structural data not modelled yet
#   roofCondition       — meant to come from maintenance task history
#   the rest            — no external data source wired up
# ═══════════════════════════════════════════════════════════════
PLACEHOLDER_SCORES: dict[str, float] = {
    "foundationIntegrity": 80.0,
    "roofCondition": 75.0,
    "fireRisk": 50.0,
    "crimeRate": 50.0,
    "subsidenceRisk": 50.0,
    "localSchools": 50.0,
    "transportLinks": 50.0,
    "localAmenities": 50.0,
}


def placeholder(factor_name: str) -> FactorResult:
    return FactorResult(factor_name, FactorKind.PLACEHOLDER, PLACEHOLDER_SCORES[factor_name], "no data source")


# ═══════════════════════════════════════════════════════════════
# EPC rating
# ═══════════════════════════════════════════════════════════════
EPC_SCORES: dict[str, float] = {
    "A": 100.0,
    "B": 90.0,
    "C": 80.0,
    "D": 70.0,
    "E": 50.0,
    "F": 30.0,
    "G": 10.0,
}
EPC_DEFAULT_SCORE = 30.0


def score_epc_rating(rating: Optional[str]) -> FactorResult:
    if not rating:
        return FactorResult("epcRating", FactorKind.COMPUTED, EPC_DEFAULT_SCORE, "MISSING")

    grade = rating.upper()
    if grade not in EPC_SCORES:
        return FactorResult("epcRating", FactorKind.COMPUTED, EPC_DEFAULT_SCORE, f"UNRECOGNISED ({rating})")
    return FactorResult("epcRating", FactorKind.COMPUTED, EPC_SCORES[grade], grade)


# ═══════════════════════════════════════════════════════════════
# System condition (HVAC / Electrical / Plumbing)
#   per asset:  (age component + condition component) / 2
#   category:   mean over matching assets, 40 when none are tracked
# ═══════════════════════════════════════════════════════════════
CONDITION_SCORES: dict[str, float] = {
    AssetCondition.EXCELLENT.value: 100.0,
    AssetCondition.GOOD.value: 80.0,
    AssetCondition.FAIR.value: 60.0,
    AssetCondition.POOR.value: 30.0,
    AssetCondition.NEEDS_REPAIR.value: 10.0,
}
CONDITION_DEFAULT_SCORE = 50.0

# An untracked system is itself a risk signal.
NO_SYSTEM_ASSETS_SCORE = 40.0

AGE_PENALTY_PER_YEAR = 5.0


def condition_score(condition: Optional[str]) -> float:
    return CONDITION_SCORES.get(condition or "", CONDITION_DEFAULT_SCORE)


def age_score(purchase_date: date, reference_date: Optional[date] = None) -> float:
    """Whole calendar years only: 2019-12-31 → 2020-01-01 counts as one year."""
    ref = reference_date or date.today()
    age_years = ref.year - purchase_date.year
    return max(0.0, 100.0 - AGE_PENALTY_PER_YEAR * age_years)


def score_system_condition(
    assets: Iterable[Asset],
    category: str,
    factor_name: str,
    reference_date: Optional[date] = None,
) -> FactorResult:
    matching = [a for a in assets if a.category == category]
    if not matching:
        return FactorResult(factor_name, FactorKind.COMPUTED, NO_SYSTEM_ASSETS_SCORE, f"no {category} assets")

    total = 0.0
    for asset in matching:
        total += (age_score(asset.purchase_date, reference_date) + condition_score(asset.condition)) / 2

    return FactorResult(
        factor_name,
        FactorKind.COMPUTED,
        total / len(matching),
        f"{len(matching)} {category} asset(s)",
    )


# ═══════════════════════════════════════════════════════════════
# Flood risk (external lookup by postcode)
# ═══════════════════════════════════════════════════════════════
def score_flood_risk(value: float, degraded: bool = False) -> FactorResult:
    detail = "fallback (lookup unavailable)" if degraded else "lookup"
    return FactorResult("floodRisk", FactorKind.EXTERNAL, float(value), detail, degraded=degraded)
