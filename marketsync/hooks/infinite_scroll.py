"""
Paginated (infinite-scroll) hook.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from ..cache.coordinator import RequestCoordinator
from ..cache.core import Priority
from ..cache.keys import KeyLike, key_to_str
from ..errors import FetchError
from .base import HookLifecycle

logger = logging.getLogger("hooks.infinite_scroll")

PageFetchFn = Callable[[int, int], Awaitable[Sequence[Any]]]

DEFAULT_PAGE_SIZE = 10
DEFAULT_TTL_SECONDS = 300.0


@dataclass
class ScrollState:
    """What a list screen renders."""
    items: List[Any] = field(default_factory=list)
    loading: bool = False
    loading_more: bool = False
    has_more: bool = True
    error: Optional[FetchError] = None


class InfiniteScroll(HookLifecycle):
    """
    Accumulates pages of ``fetch_page(offset, limit)`` under one cache key.

    The cache key holds the accumulated sequence, so returning to a list
    shows everything already scrolled through. ``has_more`` stays True
    until a page comes back shorter than ``limit``.
    """

    def __init__(
        self,
        coordinator: RequestCoordinator,
        cache_key: KeyLike,
        fetch_page: PageFetchFn,
        limit: int = DEFAULT_PAGE_SIZE,
        priority: Priority = Priority.HIGH,
        ttl: Optional[float] = DEFAULT_TTL_SECONDS,
        enabled: bool = True,
        on_change: Optional[Callable[[ScrollState], None]] = None,
    ):
        if limit <= 0:
            raise ValueError("limit must be positive")
        super().__init__(on_change)
        self._coordinator = coordinator
        self.cache_key = key_to_str(cache_key)
        self.fetch_page = fetch_page
        self.limit = limit
        self.priority = priority
        self.ttl = ttl
        self.enabled = enabled

        self.items: List[Any] = []
        self.loading = False
        self.loading_more = False
        self.has_more = True
        self.error: Optional[FetchError] = None
        self._offset = 0

    def snapshot(self) -> ScrollState:
        return ScrollState(
            items=list(self.items),
            loading=self.loading,
            loading_more=self.loading_more,
            has_more=self.has_more,
            error=self.error,
        )

    def _has_more_after(self, items: Sequence[Any]) -> bool:
        # Accumulated sequences hold whole pages except a short final page
        return len(items) > 0 and len(items) % self.limit == 0

    async def load(self, force: bool = False) -> None:
        """Load page zero, or the accumulated sequence if it is cached and fresh."""
        if not self.enabled:
            logger.debug(f"Skipping load for disabled list: {self.cache_key}")
            return
        if not self.mounted:
            return

        generation = self._next_generation()
        self._update(loading=True, error=None)

        try:
            items = await self._coordinator.fetch(
                self.cache_key,
                self._first_page,
                ttl=self.ttl,
                priority=self.priority,
                skip_cache=force,
            )
        except FetchError as e:
            if self._is_current(generation):
                self._update(loading=False, error=e)
            return

        if not self._is_current(generation):
            return
        items = list(items)
        self._offset = len(items)
        self._update(
            items=items,
            loading=False,
            has_more=self._has_more_after(items),
        )

    async def _first_page(self) -> List[Any]:
        return list(await self.fetch_page(0, self.limit))

    async def load_more(self) -> bool:
        """
        Append the next page.

        A no-op while any page fetch of this list is in flight, when there
        are no more pages, or when disabled.

        Returns:
            True if a page was appended
        """
        if not self.enabled or not self.mounted:
            return False
        if self.loading or self.loading_more or not self.has_more:
            logger.debug(f"Ignoring load_more for {self.cache_key}")
            return False

        generation = self._generation
        offset = self._offset
        self._update(loading_more=True, error=None)

        try:
            page = await self._coordinator.fetch_uncached(
                f"{self.cache_key}:page:{offset}",
                lambda: self._page_at(offset),
                priority=self.priority,
            )
        except FetchError as e:
            if self._is_current(generation):
                self._update(loading_more=False, error=e)
            return False

        if not self._is_current(generation):
            return False

        items = self.items + list(page)
        self._offset = offset + len(page)
        self._coordinator.set_cache(self.cache_key, items, ttl=self.ttl)
        self._update(
            items=items,
            loading_more=False,
            has_more=len(page) >= self.limit,
        )
        return True

    async def _page_at(self, offset: int) -> List[Any]:
        return list(await self.fetch_page(offset, self.limit))

    async def refresh(self) -> None:
        """
        Drop the accumulated sequence and refetch page zero from the network.

        Items on screen stay visible until page zero arrives, and remain if
        the refetch fails.
        """
        self._coordinator.store.invalidate(self.cache_key)
        self._offset = 0
        self._update(has_more=True, loading_more=False)
        await self.load(force=True)

    async def reset(self) -> None:
        """Clear everything, including what is on screen, then reload."""
        self._coordinator.store.invalidate(self.cache_key)
        self._offset = 0
        self._update(items=[], has_more=True, loading_more=False, error=None)
        await self.load(force=True)
