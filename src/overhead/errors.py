"""Error taxonomy.

Ingestion errors (``FetchError``, ``ValidationError``, ``CacheCorruption``)
are raised by the catalog layer and absorbed by ``CatalogStore``; callers of
``CatalogStore.get`` never see them. ``PropagationFailure`` is recorded per
object per tick and never aborts a cycle.
"""
from __future__ import annotations

from typing import Optional


class OverheadError(Exception):
    """Base class for all package errors."""


class FetchError(OverheadError):
    """Catalog download failed (timeout, cancellation, HTTP status, network)."""

    def __init__(self, message: str, source: str = "", status: Optional[int] = None):
        super().__init__(message)
        self.source = source
        self.status = status


class ValidationError(OverheadError):
    """Catalog downloaded but yielded too few usable records."""

    def __init__(self, message: str, source: str = "", count: int = 0):
        super().__init__(message)
        self.source = source
        self.count = count


class CacheCorruption(OverheadError):
    """Persisted catalog cache could not be read or decoded."""


class LocationNotFound(OverheadError):
    """Geocoding lookup returned no match for a place name."""


class PropagationFailure(OverheadError):
    """An object could not be placed for one tick.

    Also used as a plain value: the update cycle records one of these per
    failed object in its tick report instead of raising it.
    """

    def __init__(self, object_id: str, reason: str):
        super().__init__(f"{object_id}: {reason}")
        self.object_id = object_id
        self.reason = reason

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PropagationFailure):
            return NotImplemented
        return (self.object_id, self.reason) == (other.object_id, other.reason)

    def __hash__(self) -> int:
        return hash((self.object_id, self.reason))


class TickInProgress(OverheadError, RuntimeError):
    """An update tick was started while another was still running."""
