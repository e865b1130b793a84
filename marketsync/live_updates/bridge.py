"""
Bridge between the push channel and the cache.

Change notifications invalidate the related cached views first, then
reach the screen-level callbacks subscribed to the domain.
"""
import asyncio
import inspect
import itertools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol

from ..cache.invalidation import InvalidationBus
from ..cache.keys import Domain
from .models import ChangeNotification, topic_for

logger = logging.getLogger("live_updates.bridge")

ChangeCallback = Callable[[ChangeNotification], Any]
Unsubscribe = Callable[[], None]


class PushChannel(Protocol):
    """
    Interface for push channels.

    Implementations:
    - PollingChangeFeed: polls the data service change feed over HTTP
    """

    def join(self, topic: str) -> None:
        """Start receiving notifications for a topic."""
        ...

    def leave(self, topic: str) -> None:
        """Stop receiving notifications for a topic."""
        ...

    def start(self) -> None:
        ...

    def stop(self) -> None:
        ...


@dataclass
class Subscription:
    """One screen-level subscription."""
    id: int
    domain: Domain
    entity_id: Optional[str]
    callback: ChangeCallback

    @property
    def topic(self) -> str:
        return topic_for(self.domain, self.entity_id)


class LiveUpdateBridge:
    """
    Routes change notifications to the InvalidationBus and to subscribers.

    Subscriptions are reference counted per topic: the channel joins a topic
    on its first subscriber and leaves it when the last one unsubscribes.
    Notifications that arrive while nobody is subscribed still invalidate
    the cache but are not buffered for later subscribers.
    """

    def __init__(self, bus: InvalidationBus, channel: Optional[PushChannel] = None):
        self._bus = bus
        self._channel = channel
        self._subscriptions: Dict[str, Dict[int, Subscription]] = {}
        self._ids = itertools.count(1)
        self._tasks: set = set()

    def attach_channel(self, channel: PushChannel) -> None:
        """Use a push channel, joining every topic that already has subscribers."""
        self._channel = channel
        for topic in self._subscriptions:
            channel.join(topic)

    def subscribe_to_domain_change(
        self,
        domain: Domain,
        callback: ChangeCallback,
        entity_id: Optional[str] = None,
    ) -> Unsubscribe:
        """
        Subscribe to changes in a domain, or to one entity of a domain.

        Args:
            domain: Resource domain to watch
            callback: Called with each ChangeNotification; may be async
            entity_id: Only notifications for this entity

        Returns:
            Unsubscribe function; the owner must call it on teardown.
            Calling it more than once is harmless.
        """
        subscription = Subscription(
            id=next(self._ids),
            domain=Domain(domain),
            entity_id=str(entity_id) if entity_id is not None else None,
            callback=callback,
        )
        topic = subscription.topic
        subscribers = self._subscriptions.get(topic)
        if subscribers is None:
            subscribers = self._subscriptions[topic] = {}
            if self._channel is not None:
                self._channel.join(topic)
            logger.debug(f"Joined topic {topic}")
        subscribers[subscription.id] = subscription

        def unsubscribe() -> None:
            current = self._subscriptions.get(topic)
            if current is None or subscription.id not in current:
                return
            del current[subscription.id]
            if not current:
                del self._subscriptions[topic]
                if self._channel is not None:
                    self._channel.leave(topic)
                logger.debug(f"Left topic {topic}")

        return unsubscribe

    def publish(self, notification: ChangeNotification) -> int:
        """
        Deliver a change notification.

        Invalidation runs first so callbacks that re-fetch see a cache miss.

        Returns:
            Number of callbacks invoked
        """
        removed = self._bus.invalidate_domain(
            notification.domain, user_id=notification.user_id
        )
        logger.info(
            f"Change {notification.change_type.value} on {notification.domain.value}"
            f"{':' + notification.entity_id if notification.entity_id else ''}, "
            f"invalidated {removed} entries"
        )

        delivered = 0
        for topic in notification.topics:
            for subscription in list(self._subscriptions.get(topic, {}).values()):
                try:
                    result = subscription.callback(notification)
                    if inspect.isawaitable(result):
                        self._track(asyncio.ensure_future(result), topic)
                    delivered += 1
                except Exception:
                    logger.exception(f"Change callback failed for topic {topic}")
        return delivered

    def _track(self, task: "asyncio.Future[Any]", topic: str) -> None:
        self._tasks.add(task)

        def done(finished: "asyncio.Future[Any]") -> None:
            self._tasks.discard(finished)
            if not finished.cancelled() and finished.exception() is not None:
                logger.error(
                    f"Async change callback failed for topic {topic}",
                    exc_info=finished.exception(),
                )

        task.add_done_callback(done)

    def subscriber_count(self, domain: Optional[Domain] = None) -> int:
        return sum(
            1
            for subscribers in self._subscriptions.values()
            for subscription in subscribers.values()
            if domain is None or subscription.domain is domain
        )

    @property
    def topics(self) -> list:
        return sorted(self._subscriptions)

    def close(self) -> None:
        """Drop every subscription and leave every topic."""
        for topic in list(self._subscriptions):
            if self._channel is not None:
                self._channel.leave(topic)
        self._subscriptions.clear()
