"""
Tests for session startup: critical path first, then background prefetch.
"""
import pytest

from conftest import ControlledFetch
from marketsync.cache.keys import HOME, CacheKey, Domain
from marketsync.cache.prefetcher import BackgroundPrefetcher, PrefetchTask
from marketsync.errors import FetchError
from marketsync.initialization import CriticalFetch, SessionInitializer
from marketsync.preferences import LAST_TAB, PreferenceStore


def recording_fetch(log, name):
    async def fetch():
        log.append(name)
        return name
    return fetch


@pytest.fixture
def prefs(tmp_path):
    store = PreferenceStore(f"sqlite:///{tmp_path / 'prefs.db'}")
    yield store
    store.close()


@pytest.fixture
def prefetcher(coordinator):
    return BackgroundPrefetcher(coordinator, delay=0)


class TestSessionInitializer:

    @pytest.mark.asyncio
    async def test_critical_before_background(self, coordinator, prefetcher, store):
        log = []
        initializer = SessionInitializer(coordinator, prefetcher)
        initializer.register_background("events", [
            PrefetchTask("explore:events:all", recording_fetch(log, "events")),
        ])

        results = await initializer.initialize_critical([
            CriticalFetch(CacheKey(HOME, Domain.LISTINGS, "featured"), recording_fetch(log, "featured")),
            CriticalFetch(CacheKey(HOME, Domain.EVENTS, "upcoming", 5), recording_fetch(log, "upcoming")),
        ])
        await prefetcher.wait_idle()

        assert log == ["featured", "upcoming", "events"]
        assert results["home:listings:featured"] == "featured"
        assert store.get("explore:events:all") == "events"

    @pytest.mark.asyncio
    async def test_failed_critical_fetch_does_not_block_startup(self, coordinator, prefetcher):
        log = []
        initializer = SessionInitializer(coordinator, prefetcher)
        initializer.register_background("forum", [
            PrefetchTask("community:forum:latest", recording_fetch(log, "forum")),
        ])

        results = await initializer.initialize_critical([
            CriticalFetch("home:listings:featured", ControlledFetch(error=RuntimeError("down"))),
            CriticalFetch("home:events:upcoming", ControlledFetch(result=["e"])),
        ])
        await prefetcher.wait_idle()

        assert isinstance(results["home:listings:featured"], FetchError)
        assert results["home:events:upcoming"] == ["e"]
        assert log == ["forum"]

    @pytest.mark.asyncio
    async def test_last_tab_prefetched_first(self, coordinator, prefetcher, prefs):
        prefs.set(LAST_TAB, "profile")
        log = []
        initializer = SessionInitializer(coordinator, prefetcher, prefs)
        initializer.register_background("marketplace", [
            PrefetchTask("marketplace:listings:recent", recording_fetch(log, "marketplace")),
        ])
        initializer.register_background("profile", [
            PrefetchTask("user:garage:u1", recording_fetch(log, "garage")),
            PrefetchTask("stats:profile:u1", recording_fetch(log, "stats")),
        ])

        await initializer.initialize_critical([])
        await prefetcher.wait_idle()

        assert log == ["garage", "stats", "marketplace"]

    @pytest.mark.asyncio
    async def test_prefetch_tab_records_last_tab(self, coordinator, prefetcher, prefs):
        initializer = SessionInitializer(coordinator, prefetcher, prefs)
        initializer.register_background("events", [
            PrefetchTask("explore:events:all", ControlledFetch()),
        ])

        assert initializer.prefetch_tab("events") == 1
        assert prefs.get(LAST_TAB) == "events"
        assert prefetcher.pending_keys == ["explore:events:all"]
        assert initializer.prefetch_tab("unknown") == 0

    @pytest.mark.asyncio
    async def test_clear_all(self, coordinator, prefetcher, store):
        initializer = SessionInitializer(coordinator, prefetcher)
        store.set("home:events:upcoming:5", [])
        prefetcher.add_task("explore:events:all", ControlledFetch())

        initializer.clear_all()

        assert len(store) == 0
        assert prefetcher.pending_keys == []
        assert not prefetcher.is_running
