"""
Error taxonomy shared by the scoring engine, the score store and the batch.

HTTP mapping happens at the API layer:
  PropertyNotFoundError → 404
  anything else         → 500 (generic message, details logged)
"""
from __future__ import annotations


class PropertyNotFoundError(LookupError):
    """The property id does not resolve through the property provider."""

    def __init__(self, property_id: str):
        self.property_id = property_id
        super().__init__(f"Property with id {property_id} not found")


class UpstreamLookupError(RuntimeError):
    """An external lookup (e.g. flood risk) failed or returned garbage."""


class PersistenceError(RuntimeError):
    """The score store could not write or read a snapshot."""
