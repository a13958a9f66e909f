"""
Records supplied by the data providers (property, asset inventory, tasks).

The scoring core only reads these. Unknown EPC grades and asset conditions
are accepted as-is and scored with the documented defaults rather than
rejected at the boundary.
"""
from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class AssetCondition(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    NEEDS_REPAIR = "needs_repair"


class SystemCategory(str, Enum):
    """Asset categories that feed a system-condition factor."""
    HVAC = "HVAC"
    ELECTRICAL = "Electrical"
    PLUMBING = "Plumbing"


class Property(BaseModel):
    id: str
    postcode: str
    epc_rating: Optional[str] = Field(None, description="EPC letter grade A-G, if known")


class Asset(BaseModel):
    id: str
    category: str = Field(description="e.g. HVAC | Electrical | Plumbing | Appliance")
    purchase_date: date
    condition: str = Field(description="excellent | good | fair | poor | needs_repair")


class MaintenanceTask(BaseModel):
    id: str
    title: Optional[str] = None
    status: Optional[str] = None
    scheduled_date: Optional[date] = None
