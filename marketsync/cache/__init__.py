"""
Client-side cache with request coalescing, priority ordering,
background prefetch and pattern invalidation.
"""
from .core import CacheEntry, CacheSource, Priority
from .keys import (
    COMMUNITY,
    DETAIL,
    EXPLORE,
    HOME,
    MARKETPLACE,
    STATS,
    USER,
    CacheKey,
    Domain,
    KeyPattern,
)
from .ttl_policies import (
    TTL_CONFIG,
    allows_stale_while_revalidate,
    get_ttl_for_domain,
    resolve_ttl,
)
from .store import CacheStore
from .coalescer import RequestCoalescer
from .priority import PriorityScheduler
from .invalidation import DOMAIN_INVALIDATIONS, InvalidationBus, profile_stats_key
from .coordinator import RequestCoordinator
from .prefetcher import BackgroundPrefetcher, PrefetchTask

__all__ = [
    # Core types
    "CacheEntry",
    "CacheSource",
    "Priority",
    # Keys
    "CacheKey",
    "Domain",
    "KeyPattern",
    "HOME",
    "MARKETPLACE",
    "COMMUNITY",
    "EXPLORE",
    "DETAIL",
    "USER",
    "STATS",
    # TTL policies
    "TTL_CONFIG",
    "get_ttl_for_domain",
    "allows_stale_while_revalidate",
    "resolve_ttl",
    # Storage and coalescing
    "CacheStore",
    "RequestCoalescer",
    "PriorityScheduler",
    # Invalidation
    "DOMAIN_INVALIDATIONS",
    "InvalidationBus",
    "profile_stats_key",
    # Orchestration
    "RequestCoordinator",
    "BackgroundPrefetcher",
    "PrefetchTask",
]
