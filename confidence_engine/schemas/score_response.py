"""
Payloads returned by the HTTP layer.

Keys are camelCase on the wire; the dashboard consumes them unchanged.
"""
from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class RatingBand(str, Enum):
    EXCELLENT = "Excellent"
    VERY_GOOD = "Very Good"
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"
    VERY_POOR = "Very Poor"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HistoricalScore(_CamelModel):
    recorded_on: date = Field(alias="date")
    insurance_score: int
    buyer_score: int


class ConfidenceScoreResponse(_CamelModel):
    """Latest snapshot for a property, with rating bands and trend."""
    property_id: str
    calculation_date: date = Field(description="Serialised as YYYY-MM-DD")
    insurance_score: int = Field(ge=0, le=1000)
    buyer_score: int = Field(ge=0, le=1000)
    insurance_rating: RatingBand
    buyer_rating: RatingBand
    is_partial: bool = False
    historical_data: list[HistoricalScore] = []
    factors: dict[str, float]


class SnapshotResponse(_CamelModel):
    """A freshly persisted snapshot (admin recalculation)."""
    score_id: Optional[str] = None
    property_id: str
    calculation_date: datetime
    insurance_score: int
    buyer_score: int
    is_partial: bool
    factors: dict[str, float]


class RunResponse(BaseModel):
    triggered_by: str
    status: str
    message: str
    job_result: Optional[dict] = None
