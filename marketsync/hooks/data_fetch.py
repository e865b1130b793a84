"""
Single-fetch hook: data, loading, error and refresh for one cache key.
"""
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from ..cache.coordinator import RequestCoordinator
from ..cache.core import Priority
from ..cache.keys import KeyLike, key_to_str
from ..errors import FetchError
from .base import FetchStatus, HookLifecycle

logger = logging.getLogger("hooks.data_fetch")


@dataclass
class FetchState:
    """What a screen renders."""
    data: Any
    loading: bool
    error: Optional[FetchError]
    status: FetchStatus


class DataFetch(HookLifecycle):
    """
    Render-friendly wrapper around ``RequestCoordinator.fetch``.

    - While loading, cached data for the key stays visible; only the
      first-ever fetch of a key starts from an empty state
    - ``refresh`` bypasses the cache; on failure the previous data stays
      and ``error`` is set
    - With ``stale_while_revalidate``, any cached entry (fresh, or stale in
      a domain that allows it) resolves the load at once and is trailed by
      a silent background refresh that replaces ``data`` when it lands

    Usage:
        hook = DataFetch(coordinator, CacheKey(HOME, Domain.EVENTS, "upcoming", 5),
                         lambda: events.upcoming(5), ttl=120)
        await hook.load()
        render(hook.snapshot())
    """

    def __init__(
        self,
        coordinator: RequestCoordinator,
        key: KeyLike,
        fetch_fn: Callable[[], Awaitable[Any]],
        priority: Priority = Priority.HIGH,
        ttl: Optional[float] = None,
        enabled: bool = True,
        stale_while_revalidate: bool = False,
        on_success: Optional[Callable[[Any], None]] = None,
        on_error: Optional[Callable[[FetchError], None]] = None,
        on_change: Optional[Callable[[FetchState], None]] = None,
    ):
        super().__init__(on_change)
        self._coordinator = coordinator
        self.key = key_to_str(key)
        self.fetch_fn = fetch_fn
        self.priority = priority
        self.ttl = ttl
        self.enabled = enabled
        self.stale_while_revalidate = stale_while_revalidate
        self.on_success = on_success
        self.on_error = on_error

        self.data: Any = None
        self.error: Optional[FetchError] = None
        self.status = FetchStatus.IDLE

    @property
    def loading(self) -> bool:
        return self.status is FetchStatus.LOADING

    def snapshot(self) -> FetchState:
        return FetchState(
            data=self.data,
            loading=self.loading,
            error=self.error,
            status=self.status,
        )

    async def load(self) -> Optional[Any]:
        """Initial load; a fresh cache hit resolves without a network call."""
        return await self._load(force=False)

    async def refresh(self) -> Optional[Any]:
        """Fetch from the network regardless of the cache."""
        return await self._load(force=True)

    async def set_enabled(self, enabled: bool) -> None:
        """Enable or disable the hook; enabling triggers a load."""
        was_enabled, self.enabled = self.enabled, enabled
        if enabled and not was_enabled:
            await self.load()
        elif not enabled:
            self._next_generation()
            self._update(data=None, error=None, status=FetchStatus.IDLE)

    async def _load(self, force: bool) -> Optional[Any]:
        if not self.enabled:
            logger.debug(f"Skipping fetch for disabled hook: {self.key}")
            return None
        if not self.mounted:
            return None

        generation = self._next_generation()
        cached_fresh = not force and self._coordinator.has_cache(self.key)
        changes = {"status": FetchStatus.LOADING, "error": None}
        if self.data is None:
            cached = self._coordinator.get_cache(self.key)
            if cached is not None:
                changes["data"] = cached
        self._update(**changes)

        try:
            if self.stale_while_revalidate and not force:
                value = await self._coordinator.fetch_with_stale(
                    self.key,
                    self.fetch_fn,
                    ttl=self.ttl,
                    priority=self.priority,
                    on_revalidated=lambda v: self._apply_revalidated(generation, v),
                )
            else:
                value = await self._coordinator.fetch(
                    self.key,
                    self.fetch_fn,
                    ttl=self.ttl,
                    priority=self.priority,
                    skip_cache=force,
                )
        except FetchError as e:
            if self._is_current(generation):
                self._update(error=e, status=FetchStatus.IDLE)
                if self.on_error is not None:
                    self.on_error(e)
            return None

        if not self._is_current(generation):
            return value

        self._update(data=value, error=None, status=FetchStatus.IDLE)
        if self.on_success is not None:
            self.on_success(value)
        if cached_fresh and self.stale_while_revalidate:
            self._trail_revalidation(generation)
        return value

    def _trail_revalidation(self, generation: int) -> None:
        task = self._coordinator.revalidate(self.key, self.fetch_fn, ttl=self.ttl)

        def apply(finished) -> None:
            if not finished.cancelled() and finished.result() is not None:
                self._apply_revalidated(generation, finished.result())

        task.add_done_callback(apply)

    def _apply_revalidated(self, generation: int, value: Any) -> None:
        if self._is_current(generation):
            self._update(data=value)
