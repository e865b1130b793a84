"""
Session startup and teardown.

Critical data is fetched first at HIGH priority; only once all of it has
settled does the background prefetch queue start.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from .cache.coordinator import RequestCoordinator
from .cache.core import Priority
from .cache.keys import KeyLike, key_to_str
from .cache.prefetcher import BackgroundPrefetcher, PrefetchTask
from .errors import FetchError
from .preferences import LAST_TAB, PreferenceStore

logger = logging.getLogger("initialization")


@dataclass
class CriticalFetch:
    """Data the first screen cannot render without."""
    key: KeyLike
    fetch_fn: Callable[[], Awaitable[Any]]
    ttl: Optional[float] = None


class SessionInitializer:
    """
    Orchestrates the critical-path load and the background phase.

    Background tasks are registered per tab; the tab the user opened last
    (remembered in preferences) is prefetched first.
    """

    def __init__(
        self,
        coordinator: RequestCoordinator,
        prefetcher: BackgroundPrefetcher,
        preferences: Optional[PreferenceStore] = None,
    ):
        self._coordinator = coordinator
        self._prefetcher = prefetcher
        self._preferences = preferences
        self._tabs: Dict[str, List[PrefetchTask]] = {}

    def register_background(self, tab: str, tasks: Iterable[PrefetchTask]) -> None:
        self._tabs.setdefault(tab, []).extend(tasks)

    def _tab_order(self) -> List[str]:
        tabs = list(self._tabs)
        last_tab = self._preferences.get(LAST_TAB) if self._preferences else None
        if last_tab in self._tabs:
            tabs.remove(last_tab)
            tabs.insert(0, last_tab)
        return tabs

    async def initialize_critical(self, critical: Iterable[CriticalFetch]) -> Dict[str, Any]:
        """
        Fetch critical data, then start background prefetch.

        Every critical fetch is allowed to settle; failures are logged and
        left for the screens to retry.

        Returns:
            Results by key; failed keys map to their FetchError
        """
        critical = list(critical)
        results = await asyncio.gather(
            *(
                self._coordinator.fetch(
                    item.key, item.fetch_fn, ttl=item.ttl, priority=Priority.HIGH
                )
                for item in critical
            ),
            return_exceptions=True,
        )

        outcome: Dict[str, Any] = {}
        for item, result in zip(critical, results):
            cache_key = key_to_str(item.key)
            if isinstance(result, FetchError):
                logger.warning(f"Critical fetch failed: {cache_key} - {result}")
            elif isinstance(result, BaseException):
                raise result
            outcome[cache_key] = result

        self.start_background()
        return outcome

    def start_background(self) -> None:
        queued = 0
        for tab in self._tab_order():
            for task in self._tabs[tab]:
                if self._prefetcher.add_task(task.key, task.fetch_fn, task.ttl):
                    queued += 1
        logger.info(f"Starting background prefetch with {queued} task(s)")
        self._prefetcher.start()

    def prefetch_tab(self, tab: str) -> int:
        """
        Prefetch one tab's data now and remember it as the last tab.

        Returns:
            Number of tasks queued
        """
        if self._preferences is not None:
            self._preferences.set(LAST_TAB, tab)
        queued = 0
        for task in self._tabs.get(tab, []):
            if self._coordinator.prefetch(task.key, task.fetch_fn, task.ttl):
                queued += 1
        return queued

    def clear_all(self) -> None:
        """Logout: drop all cached data and stop background work."""
        self._prefetcher.stop()
        cleared = self._coordinator.clear_cache()
        logger.info(f"Session cleared ({cleared} cache entries)")
