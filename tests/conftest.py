"""
Shared fakes for the sync layer tests.
"""
import asyncio

import pytest

from marketsync.cache.coordinator import RequestCoordinator
from marketsync.cache.store import CacheStore


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ControlledFetch:
    """
    Async fetch function that counts calls.

    With ``blocking=True`` every call waits until ``release()``.
    """

    def __init__(self, result="value", error=None, blocking=False):
        self.result = result
        self.error = error
        self.calls = 0
        self.gate = asyncio.Event()
        if not blocking:
            self.gate.set()

    async def __call__(self):
        self.calls += 1
        await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.result

    def release(self) -> None:
        self.gate.set()


async def settle(rounds: int = 20) -> None:
    """Let pending tasks and callbacks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return CacheStore(default_ttl=600.0, clock=clock)


@pytest.fixture
def coordinator(store):
    return RequestCoordinator(store)
