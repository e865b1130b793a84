"""
MarketSync: client-side data synchronization for a marketplace and
community app.

Caching with request coalescing, priority ordering, background prefetch,
invalidation, live updates and fetch hooks for screens.
"""
from .errors import ChannelError, FetchError, MarketSyncError, NotAuthenticatedError

__all__ = [
    "MarketSyncError",
    "FetchError",
    "NotAuthenticatedError",
    "ChannelError",
]
