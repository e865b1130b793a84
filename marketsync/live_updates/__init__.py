"""
Live updates: push-based change notifications that invalidate cached
views and notify subscribed screens.
"""
from .models import ChangeNotification, ChangeType, topic_for
from .bridge import LiveUpdateBridge, PushChannel, Subscription
from .feed import PollingChangeFeed

__all__ = [
    # Models
    "ChangeNotification",
    "ChangeType",
    "topic_for",
    # Bridge
    "LiveUpdateBridge",
    "PushChannel",
    "Subscription",
    # Channels
    "PollingChangeFeed",
]
