"""
Unit tests for individual confidence factors.
"""
from datetime import date

from confidence_engine.schemas.property_data import Asset
from confidence_engine.scoring.factors import (
    FACTOR_ORDER,
    FactorKind,
    PLACEHOLDER_SCORES,
    age_score,
    condition_score,
    placeholder,
    score_epc_rating,
    score_flood_risk,
    score_system_condition,
)

REF = date(2026, 6, 1)


def _make_asset(category: str, years_old: int, condition: str, asset_id: str = "A1") -> Asset:
    return Asset(
        id=asset_id,
        category=category,
        purchase_date=date(REF.year - years_old, 3, 15),
        condition=condition,
    )


class TestEpcRating:
    def test_every_grade(self):
        expected = {"A": 100, "B": 90, "C": 80, "D": 70, "E": 50, "F": 30, "G": 10}
        for grade, score in expected.items():
            assert score_epc_rating(grade).score == score

    def test_lowercase_grade(self):
        assert score_epc_rating("b").score == 90.0

    def test_missing(self):
        r = score_epc_rating(None)
        assert r.score == 30.0
        assert r.detail == "MISSING"

    def test_empty_string(self):
        assert score_epc_rating("").score == 30.0

    def test_unrecognised(self):
        assert score_epc_rating("Z").score == 30.0
        assert score_epc_rating("A+").score == 30.0

    def test_padded_grade_is_unrecognised(self):
        r = score_epc_rating(" b ")
        assert r.score == 30.0
        assert r.detail == "UNRECOGNISED ( b )"

    def test_kind(self):
        assert score_epc_rating("C").kind == FactorKind.COMPUTED


class TestConditionScore:
    def test_known_conditions(self):
        assert condition_score("excellent") == 100.0
        assert condition_score("good") == 80.0
        assert condition_score("fair") == 60.0
        assert condition_score("poor") == 30.0
        assert condition_score("needs_repair") == 10.0

    def test_unknown_condition_defaults(self):
        assert condition_score("Excellent") == 50.0  # case-sensitive
        assert condition_score("broken") == 50.0
        assert condition_score(None) == 50.0


class TestAgeScore:
    def test_new_asset(self):
        assert age_score(date(2026, 1, 1), REF) == 100.0

    def test_ten_years(self):
        assert age_score(date(2016, 12, 31), REF) == 50.0

    def test_floor_at_zero(self):
        assert age_score(date(1990, 1, 1), REF) == 0.0

    def test_whole_year_granularity(self):
        # One day apart but different calendar years → one year old.
        assert age_score(date(2019, 12, 31), date(2020, 1, 1)) == 95.0


class TestSystemCondition:
    def test_no_matching_assets(self):
        r = score_system_condition([], "HVAC", "hvacCondition", REF)
        assert r.score == 40.0

    def test_other_categories_ignored(self):
        assets = [_make_asset("Plumbing", 1, "excellent")]
        assert score_system_condition(assets, "HVAC", "hvacCondition", REF).score == 40.0

    def test_category_match_is_exact(self):
        assets = [_make_asset("hvac", 1, "excellent")]
        assert score_system_condition(assets, "HVAC", "hvacCondition", REF).score == 40.0

    def test_single_asset(self):
        assets = [_make_asset("Electrical", 5, "fair")]
        # age 75, condition 60
        assert score_system_condition(assets, "Electrical", "electricalSystem", REF).score == 67.5

    def test_averaging_two_assets(self):
        assets = [
            _make_asset("HVAC", 2, "good", "1"),    # (90 + 80) / 2 = 85
            _make_asset("HVAC", 10, "poor", "2"),   # (50 + 30) / 2 = 40
        ]
        r = score_system_condition(assets, "HVAC", "hvacCondition", REF)
        assert r.score == 62.5
        assert r.factor_name == "hvacCondition"
        assert r.kind == FactorKind.COMPUTED


class TestPlaceholders:
    def test_values(self):
        assert placeholder("foundationIntegrity").score == 80.0
        assert placeholder("roofCondition").score == 75.0
        for name in ("fireRisk", "crimeRate", "subsidenceRisk", "localSchools", "transportLinks", "localAmenities"):
            assert placeholder(name).score == 50.0

    def test_tagged_as_placeholder(self):
        for name in PLACEHOLDER_SCORES:
            assert placeholder(name).kind == FactorKind.PLACEHOLDER

    def test_eight_of_thirteen_factors_are_placeholders(self):
        assert len(FACTOR_ORDER) == 13
        assert len(PLACEHOLDER_SCORES) == 8
        assert set(PLACEHOLDER_SCORES) <= set(FACTOR_ORDER)


class TestFloodRisk:
    def test_lookup_value(self):
        r = score_flood_risk(98)
        assert r.score == 98.0
        assert r.kind == FactorKind.EXTERNAL
        assert not r.degraded

    def test_fallback_flagged(self):
        assert score_flood_risk(50, degraded=True).degraded
