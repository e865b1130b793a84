"""
Main cache orchestration: freshness, request coalescing, priority ordering,
stale-while-revalidate and invalidation.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, TypeVar

from ..errors import FetchError
from .coalescer import RequestCoalescer
from .core import CacheSource, Priority
from .invalidation import InvalidationBus, InvalidationTarget
from .keys import KeyLike, key_to_str
from .priority import PriorityScheduler
from .store import CacheStore
from .ttl_policies import allows_stale_while_revalidate

logger = logging.getLogger("cache.coordinator")

T = TypeVar("T")


class RequestCoordinator:
    """
    Decides when to fetch and when to reuse cached data.

    - Fresh entries are returned with no network call
    - Concurrent misses for one key share a single fetch
    - Failed fetches are never cached and reach every waiting caller
    - LOW priority work waits for HIGH work; fire-and-forget LOW work
      goes to the BackgroundPrefetcher
    """

    def __init__(
        self,
        store: CacheStore,
        scheduler: Optional[PriorityScheduler] = None,
        coalescer: Optional[RequestCoalescer] = None,
        bus: Optional[InvalidationBus] = None,
    ):
        self.store = store
        self.scheduler = scheduler or PriorityScheduler()
        self.bus = bus or InvalidationBus(store)
        self._coalescer = coalescer or RequestCoalescer()
        self.prefetcher = None  # Attached by BackgroundPrefetcher
        self._background: set = set()

        self._stats = {
            "hits_fresh": 0,
            "hits_stale": 0,
            "misses": 0,
            "revalidations": 0,
            "mutations": 0,
        }

    async def fetch(
        self,
        key: KeyLike,
        fetch_fn: Callable[[], Awaitable[T]],
        ttl: Optional[float] = None,
        priority: Priority = Priority.HIGH,
        skip_cache: bool = False,
    ) -> T:
        """
        Get data from cache or fetch from upstream.

        Args:
            key: Cache key
            fetch_fn: Zero-argument callable returning an awaitable
            ttl: Freshness window in seconds (domain policy or default if None)
            priority: Scheduling priority; never affects the result
            skip_cache: Ignore any cached entry (still joins an in-flight fetch)

        Returns:
            The cached or fetched value

        Raises:
            FetchError: The underlying fetch failed
        """
        cache_key = key_to_str(key)

        await self.scheduler.wait_turn(priority)

        if not skip_cache and self.store.is_fresh(cache_key):
            logger.debug(f"CACHE HIT (fresh): {cache_key}")
            self._stats["hits_fresh"] += 1
            return self.store.get(cache_key)

        if self._coalescer.is_pending(cache_key):
            logger.debug(f"JOINING IN-FLIGHT: {cache_key}")
        else:
            logger.info(f"CACHE MISS: {cache_key}" + (" (skip cache)" if skip_cache else ""))
            self._stats["misses"] += 1

        def store_result(value: Any) -> None:
            self.store.set(key, value, ttl=ttl, priority=priority)

        with self.scheduler.active(priority):
            return await self._coalescer.get_or_fetch(cache_key, fetch_fn, store_result)

    async def fetch_uncached(
        self,
        key: KeyLike,
        fetch_fn: Callable[[], Awaitable[T]],
        priority: Priority = Priority.HIGH,
    ) -> T:
        """
        Coalesce concurrent calls for a key without reading or writing the cache.

        Used for page requests, whose results are merged into another key.
        """
        await self.scheduler.wait_turn(priority)
        with self.scheduler.active(priority):
            return await self._coalescer.get_or_fetch(key_to_str(key), fetch_fn)

    async def fetch_with_stale(
        self,
        key: KeyLike,
        fetch_fn: Callable[[], Awaitable[T]],
        ttl: Optional[float] = None,
        priority: Priority = Priority.MEDIUM,
        on_stale: Optional[Callable[[Any], None]] = None,
        on_revalidated: Optional[Callable[[Any], None]] = None,
    ) -> T:
        """
        Return any cached value at once, revalidating in the background
        when it is stale. Falls back to ``fetch`` when nothing is cached, or
        when the entry is stale and its domain does not allow showing stale
        data.

        ``on_revalidated`` receives the refreshed value once the background
        revalidation succeeds. It is not called when the refresh fails.
        """
        entry = self.store.get_entry(key)
        if entry is None:
            return await self.fetch(key, fetch_fn, ttl=ttl, priority=priority)

        now = self.store.clock()
        source = entry.source(now)
        if source is CacheSource.STALE and not allows_stale_while_revalidate(key):
            # Domains like messages must not show outdated data
            return await self.fetch(key, fetch_fn, ttl=ttl, priority=priority)

        if on_stale is not None:
            on_stale(entry.value)
        if source is CacheSource.STALE:
            logger.info(
                f"CACHE HIT (stale {entry.age_seconds(now):.0f}s, revalidating): {entry.key}"
            )
            self._stats["hits_stale"] += 1
            task = self.revalidate(key, fetch_fn, ttl=ttl)
            if on_revalidated is not None:

                def deliver(finished: "asyncio.Task[Any]") -> None:
                    if not finished.cancelled() and finished.result() is not None:
                        on_revalidated(finished.result())

                task.add_done_callback(deliver)
        else:
            self._stats["hits_fresh"] += 1
        return entry.value

    def revalidate(
        self,
        key: KeyLike,
        fetch_fn: Callable[[], Awaitable[Any]],
        ttl: Optional[float] = None,
    ) -> "asyncio.Task[Any]":
        """
        Refresh a key silently at LOW priority.

        Failures are logged, never raised. The returned task resolves to the
        new value, or None if the refresh failed.
        """
        cache_key = key_to_str(key)

        async def do_revalidate():
            self.scheduler.detach()
            try:
                value = await self.fetch(
                    key, fetch_fn, ttl=ttl, priority=Priority.LOW, skip_cache=True
                )
                self._stats["revalidations"] += 1
                logger.debug(f"Background revalidation complete: {cache_key}")
                return value
            except FetchError as e:
                logger.warning(f"Background revalidation failed: {cache_key} - {e}")
                return None

        task = asyncio.get_running_loop().create_task(do_revalidate())
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def run_mutation(
        self,
        action_fn: Callable[[], Awaitable[T]],
        invalidate: Iterable[InvalidationTarget] = (),
        label: str = "mutation",
    ) -> T:
        """
        Execute a user write, then invalidate every affected key.

        The write holds back LOW work like a HIGH fetch does. Its result is
        not cached. Nothing is invalidated when the write fails.

        Raises:
            FetchError: The write failed
        """
        with self.scheduler.active(Priority.HIGH):
            try:
                result = await action_fn()
            except FetchError:
                raise
            except Exception as e:
                logger.warning(f"Mutation failed for {label}: {e}")
                raise FetchError(label, e) from e

        removed = self.bus.invalidate_all(invalidate)
        self._stats["mutations"] += 1
        logger.info(f"Mutation {label} succeeded, invalidated {removed} entries")
        return result

    def prefetch(
        self,
        key: KeyLike,
        fetch_fn: Callable[[], Awaitable[Any]],
        ttl: Optional[float] = None,
    ) -> bool:
        """
        Queue a background fetch (fire-and-forget).

        Returns:
            True if the task was queued; False if the key is already fresh,
            already queued, or no prefetcher is attached
        """
        if self.store.is_fresh(key):
            return False
        if self.prefetcher is None:
            logger.warning(f"No background prefetcher attached, dropping prefetch: {key}")
            return False
        return self.prefetcher.add_task(key, fetch_fn, ttl)

    def get_cache(self, key: KeyLike) -> Optional[Any]:
        """Cached value for key if present, fresh or stale."""
        return self.store.get(key)

    def set_cache(self, key: KeyLike, value: Any, ttl: Optional[float] = None) -> None:
        self.store.set(key, value, ttl=ttl)

    def has_cache(self, key: KeyLike) -> bool:
        """Check if a fresh entry exists."""
        return self.store.is_fresh(key)

    def invalidate_cache(self, target: InvalidationTarget) -> int:
        return self.bus.invalidate(target)

    def clear_cache(self) -> int:
        """Drop every entry. Reserved for logout and session teardown."""
        return self.store.clear()

    def is_pending(self, key: KeyLike) -> bool:
        return self._coalescer.is_pending(key_to_str(key))

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        total_hits = self._stats["hits_fresh"] + self._stats["hits_stale"]
        total_requests = total_hits + self._stats["misses"]
        hit_rate = (total_hits / total_requests * 100) if total_requests > 0 else 0

        return {
            **self._stats,
            "hit_rate_percent": round(hit_rate, 1),
            "store": self.store.get_stats(),
            "coalescer": self._coalescer.get_stats(),
            "scheduler": self.scheduler.get_stats(),
            "prefetcher": self.prefetcher.get_stats() if self.prefetcher else None,
            "revalidating_count": len(self._background),
        }
