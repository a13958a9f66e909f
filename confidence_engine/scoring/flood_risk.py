"""
Flood risk lookup, keyed by postcode.

Injected into the scoring engine as an async capability so the network
call stays out of the scoring arithmetic. The engine owns the timeout and
the fallback value; implementations just answer or raise.
"""
from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Optional

import httpx
import structlog

from confidence_engine.core.config import Settings
from confidence_engine.core.exceptions import UpstreamLookupError

logger = structlog.get_logger(__name__)


class FloodRiskLookup(ABC):

    @abstractmethod
    async def score_for_postcode(self, postcode: str) -> float:
        """0-100, higher = lower flood risk."""


class StaticFloodRiskLookup(FloodRiskLookup):
    """Fixed answer after a simulated network delay. Used until a provider is configured."""

    def __init__(self, value: float = 98.0, delay_seconds: float = 0.5):
        self.value = value
        self.delay_seconds = delay_seconds

    async def score_for_postcode(self, postcode: str) -> float:
        logger.debug("flood_risk_lookup", postcode=postcode, source="static")
        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)
        return self.value


class HttpFloodRiskLookup(FloodRiskLookup):
    """
    GET {base_url}/flood-risk?postcode=...  →  {"score": <0-100>}
    """

    def __init__(self, base_url: str, api_key: str = "", client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._client = client

    async def score_for_postcode(self, postcode: str) -> float:
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        try:
            if self._client is not None:
                resp = await self._client.get(
                    f"{self.base_url}/flood-risk", params={"postcode": postcode}, headers=headers,
                )
            else:
                async with httpx.AsyncClient() as client:
                    resp = await client.get(
                        f"{self.base_url}/flood-risk", params={"postcode": postcode}, headers=headers,
                    )
            resp.raise_for_status()
            payload = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise UpstreamLookupError(f"Flood risk lookup failed for {postcode}: {e}") from e

        try:
            score = float(payload["score"])
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamLookupError(f"Malformed flood risk payload for {postcode}") from e

        return min(100.0, max(0.0, score))


def build_flood_risk_lookup(settings: Settings) -> FloodRiskLookup:
    if settings.flood_risk_api_url:
        return HttpFloodRiskLookup(settings.flood_risk_api_url, settings.flood_risk_api_key)
    return StaticFloodRiskLookup(delay_seconds=settings.flood_risk_stub_delay_seconds)
