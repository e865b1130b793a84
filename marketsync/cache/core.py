"""
Core cache data structures.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class Priority(Enum):
    """Scheduling priority attached to every fetch."""
    HIGH = 1      # Visible, above-the-fold data; runs inline
    MEDIUM = 2    # Secondary data (counts, avatars); may land after first render
    LOW = 3       # Background refresh and prefetch; waits for HIGH work


class CacheSource(Enum):
    """Where a returned value came from."""
    FRESH = "fresh"       # Within TTL
    STALE = "stale"       # Past TTL, served while revalidating
    UPSTREAM = "upstream" # Fetched from the data service


@dataclass
class CacheEntry:
    """
    A cached value with the metadata needed for freshness decisions.

    ``written_at`` is read from the owning store's clock, so freshness must
    be evaluated against that same clock.
    """
    key: str
    value: Any
    written_at: float
    ttl_seconds: float
    priority: Optional[Priority] = None  # Diagnostic only, not part of freshness

    def age_seconds(self, now: float) -> float:
        """Seconds since the value was written."""
        return now - self.written_at

    def is_fresh(self, now: float) -> bool:
        """Check if the value is within its TTL."""
        return self.age_seconds(now) < self.ttl_seconds

    def source(self, now: float) -> CacheSource:
        return CacheSource.FRESH if self.is_fresh(now) else CacheSource.STALE
