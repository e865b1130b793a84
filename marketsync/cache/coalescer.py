"""
Request coalescing to prevent duplicate upstream calls.

When multiple concurrent callers ask for the same key, only one
underlying fetch runs and every caller shares its result.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

from ..errors import FetchError

logger = logging.getLogger("cache.coalescer")

FetchFn = Callable[[], Awaitable[Any]]


@dataclass
class InFlightRequest:
    """Tracks an in-progress upstream request."""
    task: "asyncio.Task[Any]"
    started_at: float = field(default_factory=time.monotonic)
    waiter_count: int = 1


class RequestCoalescer:
    """
    Ensures concurrent requests for the same cache key share one upstream call.

    Pattern:
    - First request for a key starts the fetch in its own task
    - Subsequent requests for the same key await that task
    - The entry is removed the moment the fetch settles, before any
      waiter resumes, so the next miss starts a new fetch
    - Waiters await through ``asyncio.shield``: a cancelled waiter stops
      observing without aborting the fetch for everyone else

    Usage:
        coalescer = RequestCoalescer()
        result = await coalescer.get_or_fetch(
            cache_key="home:events:upcoming:5",
            fetch_fn=fetch_upcoming,
        )
    """

    def __init__(self):
        self._in_flight: Dict[str, InFlightRequest] = {}

    def join_or_start(
        self,
        cache_key: str,
        fetch_fn: FetchFn,
        on_success: Optional[Callable[[Any], None]] = None,
    ) -> "asyncio.Task[Any]":
        """
        Return the in-flight task for a key, starting one if needed.

        Runs without suspending, so two callers in the same tick cannot
        both start a fetch.
        """
        in_flight = self._in_flight.get(cache_key)
        if in_flight is not None:
            in_flight.waiter_count += 1
            logger.debug(
                f"Coalescing request for {cache_key} "
                f"(waiters: {in_flight.waiter_count})"
            )
            return in_flight.task

        logger.debug(f"Initiating fetch for {cache_key}")
        task = asyncio.get_running_loop().create_task(
            self._run(cache_key, fetch_fn, on_success)
        )
        task.add_done_callback(_mark_retrieved)
        self._in_flight[cache_key] = InFlightRequest(task=task)
        return task

    async def get_or_fetch(
        self,
        cache_key: str,
        fetch_fn: FetchFn,
        on_success: Optional[Callable[[Any], None]] = None,
    ) -> Any:
        """
        Either join an existing in-flight request or initiate a new one.

        Args:
            cache_key: Unique key for this request
            fetch_fn: Zero-argument callable returning an awaitable
            on_success: Called with the result before the request is released

        Returns:
            The fetched data (shared among all concurrent callers)

        Raises:
            FetchError: The shared fetch failed; every caller gets the same error
        """
        task = self.join_or_start(cache_key, fetch_fn, on_success)
        return await asyncio.shield(task)

    async def _run(
        self,
        cache_key: str,
        fetch_fn: FetchFn,
        on_success: Optional[Callable[[Any], None]],
    ) -> Any:
        try:
            result = await fetch_fn()
            if on_success is not None:
                on_success(result)
            return result
        except FetchError as e:
            logger.warning(f"Fetch failed for {cache_key}: {e}")
            raise
        except Exception as e:
            logger.warning(f"Fetch failed for {cache_key}: {e}")
            raise FetchError(cache_key, e) from e
        finally:
            current = self._in_flight.get(cache_key)
            if current is not None and current.task is asyncio.current_task():
                del self._in_flight[cache_key]

    def is_pending(self, cache_key: str) -> bool:
        return cache_key in self._in_flight

    @property
    def active_requests(self) -> int:
        """Number of currently in-flight requests."""
        return len(self._in_flight)

    def get_stats(self) -> Dict[str, Any]:
        """Get coalescer statistics."""
        return {
            "active_requests": len(self._in_flight),
            "active_keys": list(self._in_flight.keys()),
        }


def _mark_retrieved(task: "asyncio.Task[Any]") -> None:
    # Every waiter may have been cancelled; keep asyncio from reporting
    # the failure as never retrieved.
    if not task.cancelled():
        task.exception()
