"""
Integration tests for the scoring engine.
Scores a property end-to-end through in-memory data providers.
"""
import asyncio
from datetime import date, datetime, timezone

import pytest

from confidence_engine.core.exceptions import PropertyNotFoundError, UpstreamLookupError
from confidence_engine.repositories.memory import (
    InMemoryAssetRepository,
    InMemoryPropertyRepository,
    InMemoryTaskRepository,
)
from confidence_engine.schemas.property_data import Asset, Property
from confidence_engine.schemas.score_response import RatingBand
from confidence_engine.scoring.engine import (
    BUYER_WEIGHTS,
    INSURANCE_WEIGHTS,
    ConfidenceScoreService,
    aggregate_score,
    build_snapshot,
    rating_for_score,
    round_half_up,
)
from confidence_engine.scoring.factors import FACTOR_ORDER, FactorKind
from confidence_engine.scoring.flood_risk import FloodRiskLookup, StaticFloodRiskLookup

TODAY = date(2026, 6, 1)


def _assets_for(years_hvac=3, years_electrical=5, years_plumbing=1) -> list[Asset]:
    return [
        Asset(id="1", category="HVAC", purchase_date=date(TODAY.year - years_hvac, 2, 1), condition="good"),
        Asset(id="2", category="Electrical", purchase_date=date(TODAY.year - years_electrical, 2, 1), condition="fair"),
        Asset(id="3", category="Plumbing", purchase_date=date(TODAY.year - years_plumbing, 2, 1), condition="excellent"),
    ]


class _RecordingAssetRepository(InMemoryAssetRepository):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls = []

    async def find_by_property_id(self, property_id):
        self.calls.append(property_id)
        return await super().find_by_property_id(property_id)


class _SlowFloodLookup(FloodRiskLookup):
    async def score_for_postcode(self, postcode):
        await asyncio.sleep(1)
        return 98.0


class _BrokenFloodLookup(FloodRiskLookup):
    async def score_for_postcode(self, postcode):
        raise UpstreamLookupError("provider returned 503")


class _ExplodingTaskRepository(InMemoryTaskRepository):
    async def find_by_property_id(self, property_id):
        raise ConnectionError("task store unreachable")


def _make_service(
    properties=None,
    assets=None,
    flood_lookup=None,
    asset_repo=None,
    task_repo=None,
    **kwargs,
) -> ConfidenceScoreService:
    if properties is None:
        properties = [Property(id="prop1", postcode="M1 2AB", epc_rating="B")]
    if assets is None:
        assets = {"prop1": _assets_for()}
    return ConfidenceScoreService(
        InMemoryPropertyRepository(properties),
        asset_repo or InMemoryAssetRepository(assets),
        task_repo or InMemoryTaskRepository(),
        flood_lookup or StaticFloodRiskLookup(98.0, delay_seconds=0),
        today=lambda: TODAY,
        **kwargs,
    )


class TestCalculateForProperty:

    def test_reference_property_scores(self):
        result = asyncio.run(_make_service().calculate_for_property("prop1"))

        assert result.factors["hvacCondition"] == 82.5
        assert result.factors["electricalSystem"] == 67.5
        assert result.factors["plumbingSystem"] == 97.5
        assert result.factors["floodRisk"] == 98.0
        assert result.factors["epcRating"] == 90.0
        assert result.insurance_score == 696
        assert result.buyer_score == 654
        assert not result.is_partial

    def test_all_factors_present_in_order(self):
        result = asyncio.run(_make_service().calculate_for_property("prop1"))
        assert list(result.factors) == list(FACTOR_ORDER)
        assert [r.factor_name for r in result.factor_results] == list(FACTOR_ORDER)

    def test_placeholder_factors_are_tagged(self):
        result = asyncio.run(_make_service().calculate_for_property("prop1"))
        kinds = {r.factor_name: r.kind for r in result.factor_results}
        assert kinds["foundationIntegrity"] == FactorKind.PLACEHOLDER
        assert kinds["localAmenities"] == FactorKind.PLACEHOLDER
        assert kinds["floodRisk"] == FactorKind.EXTERNAL
        assert kinds["epcRating"] == FactorKind.COMPUTED

    def test_deterministic(self):
        service = _make_service()
        first = asyncio.run(service.calculate_for_property("prop1"))
        second = asyncio.run(service.calculate_for_property("prop1"))
        assert first.insurance_score == second.insurance_score
        assert first.buyer_score == second.buyer_score
        assert first.factors == second.factors

    def test_no_assets_is_not_an_error(self):
        service = _make_service(assets={})
        result = asyncio.run(service.calculate_for_property("prop1"))
        assert result.factors["hvacCondition"] == 40.0
        assert result.factors["electricalSystem"] == 40.0
        assert result.factors["plumbingSystem"] == 40.0

    def test_missing_epc_rating(self):
        service = _make_service(properties=[Property(id="prop1", postcode="M1 2AB", epc_rating=None)])
        result = asyncio.run(service.calculate_for_property("prop1"))
        assert result.factors["epcRating"] == 30.0

    def test_scores_within_range(self):
        result = asyncio.run(_make_service().calculate_for_property("prop1"))
        assert 0 <= result.insurance_score <= 1000
        assert 0 <= result.buyer_score <= 1000


class TestNotFound:

    def test_unknown_property_raises(self):
        with pytest.raises(PropertyNotFoundError) as exc:
            asyncio.run(_make_service().calculate_for_property("prop999"))
        assert exc.value.property_id == "prop999"
        assert str(exc.value) == "Property with id prop999 not found"

    def test_no_further_lookups_after_not_found(self):
        assets = _RecordingAssetRepository({"prop1": _assets_for()})
        service = _make_service(asset_repo=assets)
        with pytest.raises(PropertyNotFoundError):
            asyncio.run(service.calculate_for_property("prop999"))
        assert assets.calls == []


class TestUpstreamFailures:

    def test_flood_lookup_timeout_uses_fallback(self):
        service = _make_service(
            flood_lookup=_SlowFloodLookup(),
            flood_risk_timeout_seconds=0.01,
            flood_risk_fallback_score=50.0,
        )
        result = asyncio.run(service.calculate_for_property("prop1"))
        assert result.factors["floodRisk"] == 50.0
        assert result.degraded_factors == ["floodRisk"]
        assert result.is_partial

    def test_flood_lookup_error_uses_fallback(self):
        service = _make_service(flood_lookup=_BrokenFloodLookup(), flood_risk_fallback_score=45.0)
        result = asyncio.run(service.calculate_for_property("prop1"))
        assert result.factors["floodRisk"] == 45.0
        assert result.is_partial

    def test_provider_errors_propagate(self):
        service = _make_service(task_repo=_ExplodingTaskRepository())
        with pytest.raises(ConnectionError):
            asyncio.run(service.calculate_for_property("prop1"))


class TestAggregation:

    FACTORS = {
        "foundationIntegrity": 80,
        "roofCondition": 75,
        "hvacCondition": 82.5,
        "electricalSystem": 67.5,
        "plumbingSystem": 97.5,
        "floodRisk": 98,
        "epcRating": 90,
        "fireRisk": 50,
        "crimeRate": 50,
        "subsidenceRisk": 50,
    }

    def test_insurance_score(self):
        assert aggregate_score(self.FACTORS, INSURANCE_WEIGHTS) == 696

    def test_unweighted_factor_contributes_nothing(self):
        with_extra = dict(self.FACTORS, somethingNew=100)
        assert aggregate_score(with_extra, INSURANCE_WEIGHTS) == 696

    def test_perfect_factors_hit_weight_sum(self):
        perfect = {name: 100.0 for name in FACTOR_ORDER}
        assert aggregate_score(perfect, INSURANCE_WEIGHTS) == 900
        assert aggregate_score(perfect, BUYER_WEIGHTS) == 880

    def test_zero_factors(self):
        assert aggregate_score({name: 0.0 for name in FACTOR_ORDER}, BUYER_WEIGHTS) == 0


class TestRounding:
    def test_half_rounds_up(self):
        assert round_half_up(695.5) == 696
        assert round_half_up(0.5) == 1

    def test_below_half_rounds_down(self):
        assert round_half_up(696.1) == 696
        assert round_half_up(696.49) == 696


class TestRatingBands:
    def test_bands(self):
        assert rating_for_score(950) == RatingBand.EXCELLENT
        assert rating_for_score(850) == RatingBand.VERY_GOOD
        assert rating_for_score(750) == RatingBand.GOOD
        assert rating_for_score(650) == RatingBand.FAIR
        assert rating_for_score(550) == RatingBand.POOR
        assert rating_for_score(100) == RatingBand.VERY_POOR

    def test_boundaries_are_exclusive(self):
        assert rating_for_score(901) == RatingBand.EXCELLENT
        assert rating_for_score(900) == RatingBand.VERY_GOOD
        assert rating_for_score(800) == RatingBand.GOOD
        assert rating_for_score(700) == RatingBand.FAIR
        assert rating_for_score(600) == RatingBand.POOR
        assert rating_for_score(500) == RatingBand.VERY_POOR


class TestBuildSnapshot:
    def test_snapshot_carries_calculation(self):
        result = asyncio.run(_make_service().calculate_for_property("prop1"))
        when = datetime(2026, 6, 1, 3, 0, tzinfo=timezone.utc)
        snapshot = build_snapshot("prop1", result, when)

        assert snapshot.score_id is None
        assert snapshot.calculation_date == when
        assert snapshot.insurance_score == result.insurance_score
        assert snapshot.buyer_score == result.buyer_score
        assert dict(snapshot.score_factors) == result.factors

    def test_scores_derive_from_persisted_factors(self):
        result = asyncio.run(_make_service().calculate_for_property("prop1"))
        snapshot = build_snapshot("prop1", result, datetime.now(timezone.utc))
        assert aggregate_score(snapshot.score_factors, INSURANCE_WEIGHTS) == snapshot.insurance_score
        assert aggregate_score(snapshot.score_factors, BUYER_WEIGHTS) == snapshot.buyer_score
