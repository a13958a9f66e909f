"""
Confidence score snapshots.

ConfidenceScore is the immutable domain entity handed between the engine,
the batch runner and the store. ConfidenceScoreRecord is its persisted row:
schema property_confidence_scores, append-only, one row per calculation.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from types import MappingProxyType
from typing import Mapping, Optional

from sqlalchemy import JSON, Boolean, Column, DateTime, Index, Integer, String, func
from sqlalchemy.orm import DeclarativeBase


@dataclass(frozen=True)
class ConfidenceScore:
    property_id: str
    calculation_date: datetime
    insurance_score: int
    buyer_score: int
    score_factors: Mapping[str, float]
    score_id: Optional[str] = None
    is_partial: bool = False
    created_at: Optional[datetime] = field(default=None, compare=False)

    def __post_init__(self):
        # Freeze the factor snapshot as well as the attributes.
        object.__setattr__(self, "score_factors", MappingProxyType(dict(self.score_factors)))

    def with_identity(self, score_id: str, created_at: Optional[datetime] = None) -> "ConfidenceScore":
        return replace(self, score_id=score_id, created_at=created_at)

    def factors_dict(self) -> dict[str, float]:
        return dict(self.score_factors)


class Base(DeclarativeBase):
    pass


class ConfidenceScoreRecord(Base):
    __tablename__ = "property_confidence_scores"
    __table_args__ = (
        Index("ix_confidence_scores_property_date", "property_id", "calculation_date"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    property_id = Column(String(128), nullable=False, index=True)

    # ── Scoring outputs ──
    calculation_date = Column(DateTime(timezone=True), nullable=False)
    insurance_score = Column(Integer, nullable=False)
    buyer_score = Column(Integer, nullable=False)
    score_factors = Column(JSON, nullable=False)
    is_partial = Column(Boolean, nullable=False, default=False)

    # ── Metadata ──
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def to_domain(self) -> ConfidenceScore:
        return ConfidenceScore(
            score_id=str(self.id),
            property_id=self.property_id,
            calculation_date=self.calculation_date,
            insurance_score=self.insurance_score,
            buyer_score=self.buyer_score,
            score_factors=self.score_factors or {},
            is_partial=bool(self.is_partial),
            created_at=self.created_at,
        )

    def __repr__(self):
        return (
            f"<ConfidenceScoreRecord {self.id} property={self.property_id} "
            f"insurance={self.insurance_score} buyer={self.buyer_score}>"
        )
