"""
Explicit wiring of the sync layer.

Every component is built here from settings and handed to its owners;
nothing is reached through a module-level singleton.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from config.settings import Settings
from .cache.coordinator import RequestCoordinator
from .cache.invalidation import InvalidationBus
from .cache.prefetcher import BackgroundPrefetcher
from .cache.priority import PriorityScheduler
from .cache.store import CacheStore
from .initialization import SessionInitializer
from .live_updates.bridge import LiveUpdateBridge
from .live_updates.feed import PollingChangeFeed
from .preferences import PreferenceStore

logger = logging.getLogger("runtime")


@dataclass
class Runtime:
    """Every long-lived component of one client session."""
    settings: Settings
    store: CacheStore
    scheduler: PriorityScheduler
    bus: InvalidationBus
    coordinator: RequestCoordinator
    prefetcher: BackgroundPrefetcher
    bridge: LiveUpdateBridge
    preferences: PreferenceStore
    initializer: SessionInitializer
    feed: Optional[PollingChangeFeed] = None

    def start(self) -> None:
        """Start background loops; requires a running event loop."""
        if self.feed is not None:
            self.feed.start()

    def shutdown(self) -> None:
        if self.feed is not None:
            self.feed.stop()
        self.prefetcher.stop()
        self.bridge.close()
        self.preferences.close()
        logger.info("Runtime shut down")


def build_runtime(settings: Settings) -> Runtime:
    store = CacheStore(
        default_ttl=settings.cache_default_ttl_seconds,
        max_entries=settings.cache_max_entries,
    )
    scheduler = PriorityScheduler()
    bus = InvalidationBus(store)
    coordinator = RequestCoordinator(store, scheduler=scheduler, bus=bus)
    prefetcher = BackgroundPrefetcher(coordinator, delay=settings.prefetch_delay_seconds)
    bridge = LiveUpdateBridge(bus)
    preferences = PreferenceStore(settings.preferences_database_url)

    feed = None
    if settings.change_feed_url:
        feed = PollingChangeFeed(
            settings.change_feed_url,
            handler=bridge.publish,
            poll_interval=settings.change_feed_poll_seconds,
            timeout=settings.change_feed_timeout_seconds,
            max_attempts=settings.change_feed_max_attempts,
        )
        bridge.attach_channel(feed)
    else:
        logger.info("No change feed configured, live updates arrive via /live/notify only")

    return Runtime(
        settings=settings,
        store=store,
        scheduler=scheduler,
        bus=bus,
        coordinator=coordinator,
        prefetcher=prefetcher,
        bridge=bridge,
        preferences=preferences,
        initializer=SessionInitializer(coordinator, prefetcher, preferences),
        feed=feed,
    )
