"""
Background prefetch queue, drained one task at a time after critical
startup data has loaded.
"""
import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional

from ..errors import FetchError
from .coordinator import RequestCoordinator
from .core import Priority
from .keys import KeyLike, key_to_str

logger = logging.getLogger("cache.prefetcher")

DEFAULT_DELAY_SECONDS = 1.0


@dataclass
class PrefetchTask:
    """A queued background fetch."""
    key: str
    fetch_fn: Callable[[], Awaitable[Any]]
    ttl: Optional[float] = None


class BackgroundPrefetcher:
    """
    FIFO queue of LOW priority fetches.

    Tasks run strictly one after another, with ``delay`` seconds between
    consecutive tasks, so at most one background request is in flight.
    Each task goes through the coordinator, so a key that is already
    fresh costs nothing and LOW work still yields to HIGH work.
    """

    def __init__(
        self,
        coordinator: RequestCoordinator,
        delay: float = DEFAULT_DELAY_SECONDS,
    ):
        self._coordinator = coordinator
        self.delay = delay
        self._queue: Deque[PrefetchTask] = deque()
        self._started = False
        self._drainer: Optional["asyncio.Task[None]"] = None
        self._last_finished: Optional[float] = None
        self._completed = 0
        self._failed = 0
        coordinator.prefetcher = self

    def add_task(
        self,
        key: KeyLike,
        fetch_fn: Callable[[], Awaitable[Any]],
        ttl: Optional[float] = None,
    ) -> bool:
        """
        Queue a prefetch task. A key that is already queued is skipped.

        Returns:
            True if the task was queued
        """
        cache_key = key_to_str(key)
        if any(task.key == cache_key for task in self._queue):
            logger.debug(f"Prefetch already queued: {cache_key}")
            return False

        self._queue.append(PrefetchTask(key=cache_key, fetch_fn=fetch_fn, ttl=ttl))
        if self._started:
            self._ensure_draining()
        return True

    def start(self) -> None:
        """Start draining the queue (after critical data has loaded)."""
        self._started = True
        self._ensure_draining()

    def _ensure_draining(self) -> None:
        if self._drainer is not None and not self._drainer.done():
            return
        if not self._queue:
            return
        self._drainer = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        self._coordinator.scheduler.detach()
        loop = asyncio.get_running_loop()
        while self._started and self._queue:
            # The spacing also holds across drainers, for tasks added after
            # the queue ran empty
            if self._last_finished is not None:
                remaining = self.delay - (loop.time() - self._last_finished)
                if remaining > 0:
                    await asyncio.sleep(remaining)
                    if not self._started or not self._queue:
                        break

            task = self._queue.popleft()
            try:
                await self._coordinator.fetch(
                    task.key, task.fetch_fn, ttl=task.ttl, priority=Priority.LOW
                )
                self._completed += 1
                logger.debug(f"Prefetched {task.key}")
            except FetchError as e:
                self._failed += 1
                logger.warning(f"Prefetch failed for {task.key}: {e}")
            finally:
                self._last_finished = loop.time()

    async def wait_idle(self) -> None:
        """Wait until the queue has been drained."""
        if self._drainer is not None:
            await asyncio.shield(self._drainer)

    def stop(self) -> None:
        """
        Stop draining and drop queued tasks.

        A fetch already issued is not cancelled; the coordinator shares it
        with any other caller and still caches its result.
        """
        self._started = False
        self._queue.clear()
        if self._drainer is not None and not self._drainer.done():
            self._drainer.cancel()
        self._drainer = None

    def clear(self) -> None:
        """Drop queued tasks."""
        self._queue.clear()

    @property
    def pending_keys(self) -> List[str]:
        return [task.key for task in self._queue]

    @property
    def is_running(self) -> bool:
        return self._drainer is not None and not self._drainer.done()

    def get_stats(self) -> Dict[str, Any]:
        return {
            "queued": len(self._queue),
            "running": self.is_running,
            "started": self._started,
            "completed": self._completed,
            "failed": self._failed,
        }
