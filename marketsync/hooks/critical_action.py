"""
Hook for user writes (save, like, RSVP, comment).
"""
from typing import Any, Awaitable, Callable, Iterable, Optional

from ..cache.coordinator import RequestCoordinator
from ..cache.invalidation import InvalidationTarget
from ..errors import FetchError


class CriticalAction:
    """
    Runs a write through ``RequestCoordinator.run_mutation`` and tracks
    loading and error state. Every target in ``invalidate`` is cleared
    right after a successful write, before ``on_success`` refreshes any
    visible data.
    """

    def __init__(
        self,
        coordinator: RequestCoordinator,
        action_fn: Callable[[], Awaitable[Any]],
        invalidate: Iterable[InvalidationTarget] = (),
        label: str = "action",
        on_success: Optional[Callable[[Any], None]] = None,
        on_error: Optional[Callable[[FetchError], None]] = None,
    ):
        self._coordinator = coordinator
        self.action_fn = action_fn
        self.invalidate = list(invalidate)
        self.label = label
        self.on_success = on_success
        self.on_error = on_error
        self.loading = False
        self.error: Optional[FetchError] = None

    async def execute(self) -> Optional[Any]:
        """
        Run the action.

        Returns:
            The action's result, or None if it failed (see ``error``)
        """
        self.loading = True
        self.error = None
        try:
            result = await self._coordinator.run_mutation(
                self.action_fn, invalidate=self.invalidate, label=self.label
            )
        except FetchError as e:
            self.error = e
            if self.on_error is not None:
                self.on_error(e)
            return None
        finally:
            self.loading = False

        if self.on_success is not None:
            self.on_success(result)
        return result
