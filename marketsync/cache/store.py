"""
In-memory cache table.

The store only holds entries. It never enforces TTL on reads and never
touches the network; freshness is decided by the caller.
"""
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from .core import CacheEntry, Priority
from .keys import KeyLike, PatternLike, key_to_str, pattern_matcher
from .ttl_policies import resolve_ttl

logger = logging.getLogger("cache.store")

DEFAULT_TTL_SECONDS = 600.0


class CacheStore:
    """
    Keyed table of CacheEntry objects.

    No locks: every operation completes without suspending, so under
    cooperative scheduling no other task can observe a half-done update.
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        max_entries: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the store.

        Args:
            default_ttl: TTL in seconds for writes with no TTL and no domain policy
            max_entries: Evict the oldest write when a new key would exceed this
            clock: Time source, seconds as float
        """
        self._entries: Dict[str, CacheEntry] = {}
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self.clock = clock
        self._evictions = 0

    def get(self, key: KeyLike) -> Optional[Any]:
        """Value for key, stale or not; None when absent."""
        entry = self._entries.get(key_to_str(key))
        return entry.value if entry is not None else None

    def get_entry(self, key: KeyLike) -> Optional[CacheEntry]:
        return self._entries.get(key_to_str(key))

    def has(self, key: KeyLike) -> bool:
        return key_to_str(key) in self._entries

    def is_fresh(self, key: KeyLike) -> bool:
        """Check if an entry exists and is within its TTL."""
        entry = self._entries.get(key_to_str(key))
        return entry is not None and entry.is_fresh(self.clock())

    def set(
        self,
        key: KeyLike,
        value: Any,
        ttl: Optional[float] = None,
        priority: Optional[Priority] = None,
    ) -> CacheEntry:
        """
        Insert or overwrite an entry, stamped with the current time.

        Returns:
            The stored entry
        """
        cache_key = key_to_str(key)
        if (
            self.max_entries is not None
            and cache_key not in self._entries
            and len(self._entries) >= self.max_entries
        ):
            self._evict_oldest()

        entry = CacheEntry(
            key=cache_key,
            value=value,
            written_at=self.clock(),
            ttl_seconds=resolve_ttl(key, ttl, self.default_ttl),
            priority=priority,
        )
        self._entries[cache_key] = entry
        return entry

    def _evict_oldest(self) -> None:
        oldest_key = min(self._entries, key=lambda k: self._entries[k].written_at)
        del self._entries[oldest_key]
        self._evictions += 1
        logger.debug(f"Evicted oldest entry: {oldest_key}")

    def invalidate(self, key: KeyLike) -> bool:
        """
        Invalidate a specific cache entry.

        Returns:
            True if entry was found and removed
        """
        cache_key = key_to_str(key)
        if cache_key in self._entries:
            del self._entries[cache_key]
            logger.info(f"Invalidated cache: {cache_key}")
            return True
        return False

    def invalidate_pattern(self, pattern: PatternLike) -> int:
        """
        Invalidate all cache entries matching a pattern.

        Args:
            pattern: KeyPattern, compiled regex, or key prefix

        Returns:
            Number of entries invalidated
        """
        matches = pattern_matcher(pattern)
        to_delete = [k for k in self._entries if matches(k)]
        for key in to_delete:
            del self._entries[key]
        if to_delete:
            logger.info(f"Invalidated {len(to_delete)} entries matching '{pattern}'")
        return len(to_delete)

    def clear(self) -> int:
        """
        Clear all cache entries.

        Returns:
            Number of entries cleared
        """
        count = len(self._entries)
        self._entries.clear()
        logger.info(f"Cleared {count} cache entries")
        return count

    def keys(self) -> List[str]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> Dict[str, Any]:
        """Get store statistics."""
        now = self.clock()
        fresh = sum(1 for entry in self._entries.values() if entry.is_fresh(now))
        return {
            "entries": len(self._entries),
            "fresh": fresh,
            "stale": len(self._entries) - fresh,
            "max_entries": self.max_entries,
            "evictions": self._evictions,
        }
