"""
In-memory repositories.

Used by the tests, local runs of the monthly job and any deployment that
has no property database yet. Each instance owns its own data; nothing is
shared at module level.
"""
from __future__ import annotations

import itertools
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Union

import structlog

from confidence_engine.models.confidence_score import ConfidenceScore
from confidence_engine.repositories.interfaces import (
    AssetRepository,
    ConfidenceScoreRepository,
    PropertyRepository,
    TaskRepository,
)
from confidence_engine.schemas.property_data import Asset, MaintenanceTask, Property

logger = structlog.get_logger(__name__)


class InMemoryPropertyRepository(PropertyRepository):
    def __init__(self, properties: Iterable[Property] = ()):
        self._properties: dict[str, Property] = {p.id: p for p in properties}

    async def find_by_id(self, property_id: str) -> Optional[Property]:
        return self._properties.get(property_id)

    async def find_all(self) -> list[Property]:
        return list(self._properties.values())


class InMemoryAssetRepository(AssetRepository):
    def __init__(self, assets_by_property: Optional[dict[str, list[Asset]]] = None):
        self._assets = {k: list(v) for k, v in (assets_by_property or {}).items()}

    async def find_by_property_id(self, property_id: str) -> list[Asset]:
        return list(self._assets.get(property_id, []))


class InMemoryTaskRepository(TaskRepository):
    def __init__(self, tasks_by_property: Optional[dict[str, list[MaintenanceTask]]] = None):
        self._tasks = {k: list(v) for k, v in (tasks_by_property or {}).items()}

    async def find_by_property_id(self, property_id: str) -> list[MaintenanceTask]:
        return list(self._tasks.get(property_id, []))


class InMemoryConfidenceScoreRepository(ConfidenceScoreRepository):
    """Append-only list; score ids are a monotonically increasing sequence."""

    def __init__(self):
        self._rows: list[ConfidenceScore] = []
        self._sequence = itertools.count(1)

    async def save(self, score: ConfidenceScore) -> ConfidenceScore:
        saved = score.with_identity(str(next(self._sequence)), datetime.now(timezone.utc))
        self._rows.append(saved)
        return saved

    def _for_property(self, property_id: str) -> list[ConfidenceScore]:
        # Newest first; equal dates fall back to insertion order (later wins).
        indexed = [(i, s) for i, s in enumerate(self._rows) if s.property_id == property_id]
        indexed.sort(key=lambda pair: (pair[1].calculation_date, pair[0]), reverse=True)
        return [s for _, s in indexed]

    async def find_latest_by_property_id(self, property_id: str) -> Optional[ConfidenceScore]:
        rows = self._for_property(property_id)
        return rows[0] if rows else None

    async def find_history_by_property_id(self, property_id: str, limit: int = 12) -> list[ConfidenceScore]:
        return self._for_property(property_id)[:limit]

    def __len__(self) -> int:
        return len(self._rows)


# ─── Portfolio loading ────────────────────────────────────────────

SAMPLE_PORTFOLIO = {
    "properties": [
        {"id": "prop1", "postcode": "M1 2AB", "epc_rating": "B"},
        {"id": "prop2", "postcode": "SW1A 0AA", "epc_rating": "C"},
    ],
    "assets": {
        "prop1": [
            {"id": "1", "category": "HVAC", "purchase_date": "2020-01-15", "condition": "good"},
            {"id": "2", "category": "Electrical", "purchase_date": "2018-05-20", "condition": "fair"},
        ],
        "prop2": [
            {"id": "3", "category": "HVAC", "purchase_date": "2020-01-15", "condition": "good"},
            {"id": "4", "category": "Electrical", "purchase_date": "2018-05-20", "condition": "fair"},
        ],
    },
    "tasks": {},
}


def build_repositories(
    portfolio: dict,
) -> tuple[InMemoryPropertyRepository, InMemoryAssetRepository, InMemoryTaskRepository]:
    properties = [Property(**p) for p in portfolio.get("properties", [])]
    assets = {
        pid: [Asset(**a) for a in rows]
        for pid, rows in portfolio.get("assets", {}).items()
    }
    tasks = {
        pid: [MaintenanceTask(**t) for t in rows]
        for pid, rows in portfolio.get("tasks", {}).items()
    }
    return (
        InMemoryPropertyRepository(properties),
        InMemoryAssetRepository(assets),
        InMemoryTaskRepository(tasks),
    )


def load_portfolio(
    path: Optional[Union[str, Path]] = None,
) -> tuple[InMemoryPropertyRepository, InMemoryAssetRepository, InMemoryTaskRepository]:
    """
    Build the three data-provider stores from a JSON export.

    Expected shape:
        {"properties": [...], "assets": {property_id: [...]}, "tasks": {property_id: [...]}}
    Falls back to SAMPLE_PORTFOLIO when no path is given.
    """
    if path is None:
        logger.info("portfolio_loaded", source="sample", properties=len(SAMPLE_PORTFOLIO["properties"]))
        return build_repositories(SAMPLE_PORTFOLIO)

    with open(path, encoding="utf-8") as fh:
        portfolio = json.load(fh)

    logger.info("portfolio_loaded", source=str(path), properties=len(portfolio.get("properties", [])))
    return build_repositories(portfolio)
