"""
Shared lifecycle for fetch hooks.
"""
import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Optional

logger = logging.getLogger("hooks")


class FetchStatus(Enum):
    """idle -> loading -> idle; there is no terminal failure state."""
    IDLE = "idle"
    LOADING = "loading"


class HookLifecycle:
    """
    Mount/unmount bookkeeping for hooks owned by a screen.

    After ``unmount`` no state changes and no listener calls happen.
    Unmounting only stops observation: shared fetches keep running for
    their other callers. Each load bumps a generation counter so results
    of superseded loads are dropped.
    """

    def __init__(self, on_change: Optional[Callable[[Any], None]] = None):
        self.on_change = on_change
        self._mounted = True
        self._generation = 0
        self._task: Optional["asyncio.Task[Any]"] = None

    @property
    def mounted(self) -> bool:
        return self._mounted

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _is_current(self, generation: int) -> bool:
        return self._mounted and generation == self._generation

    def _update(self, **changes: Any) -> bool:
        if not self._mounted:
            return False
        for name, value in changes.items():
            setattr(self, name, value)
        if self.on_change is not None:
            self.on_change(self.snapshot())
        return True

    def snapshot(self) -> Any:
        raise NotImplementedError

    async def load(self) -> Any:
        raise NotImplementedError

    def start(self) -> "asyncio.Task[Any]":
        """Mount: run the initial load in a task owned by this hook."""
        self._task = asyncio.get_running_loop().create_task(self.load())
        return self._task

    def unmount(self) -> None:
        self._mounted = False
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
