"""
Fetch hooks consumed by screens.
"""
from .base import FetchStatus, HookLifecycle
from .data_fetch import DataFetch, FetchState
from .infinite_scroll import InfiniteScroll, ScrollState
from .critical_action import CriticalAction

__all__ = [
    "FetchStatus",
    "HookLifecycle",
    "DataFetch",
    "FetchState",
    "InfiniteScroll",
    "ScrollState",
    "CriticalAction",
]
