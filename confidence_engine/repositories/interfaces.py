"""Repository interfaces consumed and exposed by the scoring core."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from confidence_engine.models.confidence_score import ConfidenceScore
from confidence_engine.schemas.property_data import Asset, MaintenanceTask, Property


class PropertyRepository(ABC):

    @abstractmethod
    async def find_by_id(self, property_id: str) -> Optional[Property]:
        """Return the property, or None when the id does not resolve."""

    @abstractmethod
    async def find_all(self) -> list[Property]:
        """All properties to score, in enumeration order."""


class AssetRepository(ABC):

    @abstractmethod
    async def find_by_property_id(self, property_id: str) -> list[Asset]:
        pass


class TaskRepository(ABC):

    @abstractmethod
    async def find_by_property_id(self, property_id: str) -> list[MaintenanceTask]:
        pass


class ConfidenceScoreRepository(ABC):
    """Append-only store of score snapshots."""

    @abstractmethod
    async def save(self, score: ConfidenceScore) -> ConfidenceScore:
        """
        Persist a new snapshot.

        Returns a copy carrying the store-assigned score_id. Never overwrites
        or de-duplicates existing snapshots.
        """

    @abstractmethod
    async def find_latest_by_property_id(self, property_id: str) -> Optional[ConfidenceScore]:
        """
        Snapshot with the greatest calculation_date for the property.

        Ties go to the most recently inserted snapshot. None when the
        property has never been scored.
        """

    @abstractmethod
    async def find_history_by_property_id(self, property_id: str, limit: int = 12) -> list[ConfidenceScore]:
        """Snapshots for the property, newest first, at most `limit`."""
