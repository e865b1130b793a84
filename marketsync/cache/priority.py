"""
Priority-based ordering of fetch work.

Priority only decides when LOW work may start. It never changes which
fetch runs or what callers receive.
"""
import asyncio
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Iterator

from .core import Priority

logger = logging.getLogger("cache.priority")

# True while the current task, or a task it spawned, runs inside HIGH work
_inside_high: ContextVar[bool] = ContextVar("inside_high_work", default=False)


class PriorityScheduler:
    """
    Orders fetch work by priority.

    - HIGH: starts immediately; while any HIGH work executes, LOW work waits
    - MEDIUM: starts immediately, never holds back other work
    - LOW: waits until no HIGH work is executing, unless it is issued from
      inside HIGH work (a fetch function or mutation reading another key),
      which would otherwise wait on its own caller

    HIGH work never waits on anything, so a HIGH caller that joins a fetch
    started by a LOW caller simply joins a task that is already running.
    """

    def __init__(self):
        self._active_high = 0
        self._high_idle = asyncio.Event()
        self._high_idle.set()
        self._started: Dict[Priority, int] = {p: 0 for p in Priority}
        self._deferred = 0
        self._nested = 0

    @contextmanager
    def active(self, priority: Priority) -> Iterator[None]:
        """Mark work of the given priority as executing for the block."""
        self._started[priority] += 1
        if priority is not Priority.HIGH:
            yield
            return

        self._active_high += 1
        self._high_idle.clear()
        token = _inside_high.set(True)
        try:
            yield
        finally:
            _inside_high.reset(token)
            self._active_high -= 1
            if self._active_high == 0:
                self._high_idle.set()

    @staticmethod
    def detach() -> None:
        """
        Mark the current task as background work.

        Tasks spawned from inside HIGH work inherit its context; background
        loops call this first so their LOW fetches still yield to HIGH work.
        """
        _inside_high.set(False)

    async def wait_turn(self, priority: Priority) -> None:
        """Suspend LOW work until no HIGH work is executing."""
        if priority is not Priority.LOW or self._active_high == 0:
            return
        if _inside_high.get():
            self._nested += 1
            logger.debug("LOW work issued inside HIGH work, not deferring")
            return
        self._deferred += 1
        logger.debug(f"Deferring LOW work behind {self._active_high} HIGH request(s)")
        while self._active_high > 0:
            await self._high_idle.wait()

    @property
    def high_active(self) -> int:
        return self._active_high

    def get_stats(self) -> Dict[str, Any]:
        return {
            "high_active": self._active_high,
            "low_deferred": self._deferred,
            "low_nested": self._nested,
            "started": {p.name: count for p, count in self._started.items()},
        }
