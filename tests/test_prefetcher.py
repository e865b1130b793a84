"""
Tests for the background prefetch queue.
"""
import asyncio

import pytest

from conftest import ControlledFetch, settle
from marketsync.cache.prefetcher import BackgroundPrefetcher


def recording_fetch(log, name, error=None):
    async def fetch():
        log.append(name)
        if error is not None:
            raise error
        return name
    return fetch


class TestBackgroundPrefetcher:

    @pytest.mark.asyncio
    async def test_runs_in_fifo_order(self, coordinator, store):
        prefetcher = BackgroundPrefetcher(coordinator, delay=0)
        log = []
        for name in ["a", "b", "c"]:
            prefetcher.add_task(name, recording_fetch(log, name))

        prefetcher.start()
        await prefetcher.wait_idle()

        assert log == ["a", "b", "c"]
        assert store.get("b") == "b"
        assert prefetcher.get_stats()["completed"] == 3

    @pytest.mark.asyncio
    async def test_nothing_runs_before_start(self, coordinator):
        prefetcher = BackgroundPrefetcher(coordinator, delay=0)
        fetch = ControlledFetch()
        prefetcher.add_task("a", fetch)
        await settle()
        assert fetch.calls == 0
        assert prefetcher.pending_keys == ["a"]

    @pytest.mark.asyncio
    async def test_delay_between_tasks(self, coordinator):
        prefetcher = BackgroundPrefetcher(coordinator, delay=0.05)
        log = []
        prefetcher.add_task("a", recording_fetch(log, "a"))
        prefetcher.add_task("b", recording_fetch(log, "b"))

        prefetcher.start()
        await settle()
        assert log == ["a"]

        await prefetcher.wait_idle()
        assert log == ["a", "b"]

    def test_add_task_is_idempotent(self, coordinator):
        prefetcher = BackgroundPrefetcher(coordinator, delay=0)
        assert prefetcher.add_task("a", ControlledFetch()) is True
        assert prefetcher.add_task("a", ControlledFetch()) is False
        assert prefetcher.pending_keys == ["a"]

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_the_queue(self, coordinator, store):
        prefetcher = BackgroundPrefetcher(coordinator, delay=0)
        log = []
        prefetcher.add_task("a", recording_fetch(log, "a", error=RuntimeError("down")))
        prefetcher.add_task("b", recording_fetch(log, "b"))

        prefetcher.start()
        await prefetcher.wait_idle()

        assert log == ["a", "b"]
        assert not store.has("a")
        assert store.get("b") == "b"
        assert prefetcher.get_stats()["failed"] == 1

    @pytest.mark.asyncio
    async def test_fresh_keys_cost_nothing(self, coordinator, store):
        store.set("a", "cached", ttl=100)
        prefetcher = BackgroundPrefetcher(coordinator, delay=0)
        fetch = ControlledFetch()
        prefetcher.add_task("a", fetch)
        prefetcher.start()
        await prefetcher.wait_idle()
        assert fetch.calls == 0

    @pytest.mark.asyncio
    async def test_tasks_added_after_start_are_drained(self, coordinator):
        prefetcher = BackgroundPrefetcher(coordinator, delay=0)
        prefetcher.start()
        log = []
        prefetcher.add_task("late", recording_fetch(log, "late"))
        await prefetcher.wait_idle()
        assert log == ["late"]

    @pytest.mark.asyncio
    async def test_stop_drops_queued_tasks(self, coordinator):
        prefetcher = BackgroundPrefetcher(coordinator, delay=10)
        log = []
        prefetcher.add_task("a", recording_fetch(log, "a"))
        prefetcher.add_task("b", recording_fetch(log, "b"))
        prefetcher.start()
        await settle()

        prefetcher.stop()
        await settle()

        assert log == ["a"]
        assert prefetcher.pending_keys == []
        assert not prefetcher.is_running

    @pytest.mark.asyncio
    async def test_waits_for_high_work(self, coordinator):
        prefetcher = BackgroundPrefetcher(coordinator, delay=0)
        high = ControlledFetch(result="h", blocking=True)
        background = ControlledFetch(result="bg")

        high_task = asyncio.create_task(coordinator.fetch("visible", high))
        await asyncio.sleep(0)
        prefetcher.add_task("background", background)
        prefetcher.start()
        await settle()
        assert background.calls == 0

        high.release()
        await high_task
        await prefetcher.wait_idle()
        assert background.calls == 1

    @pytest.mark.asyncio
    async def test_delay_holds_after_queue_runs_empty(self, coordinator):
        prefetcher = BackgroundPrefetcher(coordinator, delay=0.2)
        loop = asyncio.get_running_loop()
        started = {}

        def timed_fetch(name):
            async def fetch():
                started[name] = loop.time()
                return name
            return fetch

        prefetcher.add_task("a", timed_fetch("a"))
        prefetcher.start()
        await prefetcher.wait_idle()

        prefetcher.add_task("b", timed_fetch("b"))
        await settle()
        assert "b" not in started

        await prefetcher.wait_idle()
        assert started["b"] - started["a"] >= 0.15

    @pytest.mark.asyncio
    async def test_drains_behind_high_work_when_started_inside_it(self, coordinator):
        prefetcher = BackgroundPrefetcher(coordinator, delay=0)
        background = ControlledFetch(result="bg")
        gate = asyncio.Event()

        async def visible():
            prefetcher.add_task("background", background)
            prefetcher.start()
            await gate.wait()
            return "v"

        high_task = asyncio.create_task(coordinator.fetch("visible", visible))
        await settle()
        assert background.calls == 0

        gate.set()
        await high_task
        await prefetcher.wait_idle()
        assert background.calls == 1
