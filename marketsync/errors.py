"""
Error taxonomy for the sync layer.
"""
from typing import Optional


class MarketSyncError(Exception):
    """Base class for errors raised by marketsync."""


class FetchError(MarketSyncError):
    """
    An underlying fetch function failed (network or service failure).

    The coordinator wraps a failing fetch once, inside the shared request,
    so every caller of the same miss episode receives this same object.
    The original exception is chained as ``__cause__``.
    """

    def __init__(self, key: str, cause: Optional[BaseException] = None):
        self.key = key
        self.cause = cause
        message = f"Fetch failed for {key}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class NotAuthenticatedError(FetchError):
    """Raised by fetch functions when there is no signed-in user."""

    def __init__(self, key: str = "", cause: Optional[BaseException] = None):
        super().__init__(key, cause)


class ChannelError(MarketSyncError):
    """The push channel could not be reached after retrying."""
