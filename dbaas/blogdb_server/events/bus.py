"""
Topic-based publish/subscribe for live notifications.

The EventBus delivers every published payload to every subscription that
is registered on the payload's topic at the moment of publishing. There is
no history: a subscription only sees events published after it was created.

Delivery model:
    publish() is synchronous and never blocks. Each subscription owns a
    bounded buffer; publish() appends to it and wakes the consumer, which
    reads with ``async for``. When a buffer is full the oldest buffered
    event is discarded (drop-oldest) and counted in Subscription.dropped.
    No other backpressure exists: a slow consumer loses its oldest events
    instead of slowing down publishers.

Invariants:
    - Subscriptions on a topic receive events in publish order
    - Delivery is broadcast: every subscription gets every event
    - unsubscribe() is idempotent
    - Events published with no subscribers are dropped

How to change safely:
    - Publish from the event loop thread that consumes the subscriptions;
      the consumer wake-up uses an asyncio.Event
    - Keep publish() non-blocking, it runs inside store transactions
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import threading
from collections import deque
from typing import Any, Deque, Dict, List, Optional

from .topics import Topic

logger = logging.getLogger(__name__)

DEFAULT_MAX_QUEUE_SIZE = 1000


class EventBusError(Exception):
    """Base exception for event bus operations."""
    pass


class SubscriptionClosed(EventBusError):
    """The subscription was unsubscribed and its buffer is drained."""
    pass


class Subscription:
    """Handle on a live, ordered stream of events for one topic.

    Iterate with ``async for``; iteration ends once the subscription is
    unsubscribed and every already-buffered event has been read.

    Attributes:
        id: Subscription id, unique per bus
        topic: Topic subscribed to
        max_queue_size: Buffer bound before drop-oldest applies
        delivered: Number of events delivered to the buffer
        dropped: Number of events discarded by the overflow policy

    Example:
        >>> async with bus.subscribe(Topic.posts()) as sub:
        ...     async for event in sub:
        ...         print(event.mutation, event.data.title)
    """

    def __init__(
        self,
        bus: EventBus,
        subscription_id: int,
        topic: Topic,
        max_queue_size: int,
    ) -> None:
        if max_queue_size < 1:
            raise ValueError("max_queue_size must be >= 1")
        self.id = subscription_id
        self.topic = topic
        self.max_queue_size = max_queue_size
        self.delivered = 0
        self.dropped = 0
        self._bus = bus
        self._buffer: Deque[Any] = deque()
        self._ready = asyncio.Event()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Number of buffered, unread events."""
        return len(self._buffer)

    def unsubscribe(self) -> None:
        """Stop further delivery (idempotent)."""
        self._bus.unsubscribe(self)

    def drain(self) -> List[Any]:
        """Return and remove every buffered event without waiting."""
        events = list(self._buffer)
        self._buffer.clear()
        return events

    async def get(self, timeout: Optional[float] = None) -> Any:
        """Wait for the next event.

        Args:
            timeout: Maximum seconds to wait (None waits forever)

        Returns:
            The next event payload

        Raises:
            asyncio.TimeoutError: If nothing arrives within timeout
            SubscriptionClosed: If unsubscribed and the buffer is empty
        """
        await asyncio.wait_for(self._wait(), timeout=timeout)
        if not self._buffer:
            raise SubscriptionClosed(f"Subscription {self.id} on {self.topic} is closed")
        return self._buffer.popleft()

    def _deliver(self, payload: Any) -> bool:
        if self._closed:
            return False

        if len(self._buffer) >= self.max_queue_size:
            self._buffer.popleft()
            self.dropped += 1
            logger.warning(
                "Subscriber buffer full, dropped oldest event",
                extra={
                    "topic": self.topic.key,
                    "subscription_id": self.id,
                    "dropped": self.dropped,
                },
            )

        self._buffer.append(payload)
        self.delivered += 1
        self._ready.set()
        return True

    def _close(self) -> None:
        self._closed = True
        self._ready.set()

    async def _wait(self) -> None:
        while not self._buffer and not self._closed:
            self._ready.clear()
            await self._ready.wait()

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> Any:
        await self._wait()
        if not self._buffer:
            raise StopAsyncIteration
        return self._buffer.popleft()

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.unsubscribe()

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.unsubscribe()

    def __repr__(self) -> str:
        return (
            f"Subscription(id={self.id}, topic={self.topic.key!r}, "
            f"pending={len(self._buffer)}, closed={self._closed})"
        )


class EventBus:
    """In-process publish/subscribe dispatcher keyed by Topic.

    Attributes:
        max_queue_size: Default buffer bound for new subscriptions

    Thread safety:
        The registration table is guarded by a lock. Consumer wake-ups are
        asyncio-based, see the module docstring.

    Example:
        >>> bus = EventBus()
        >>> sub = bus.subscribe(Topic.posts())
        >>> bus.publish(Topic.posts(), "hello")
        1
        >>> sub.drain()
        ['hello']
        >>> bus.unsubscribe(sub)
        True
        >>> bus.unsubscribe(sub)
        False
    """

    def __init__(self, max_queue_size: int = DEFAULT_MAX_QUEUE_SIZE) -> None:
        if max_queue_size < 1:
            raise ValueError("max_queue_size must be >= 1")
        self.max_queue_size = max_queue_size
        self._subscriptions: Dict[str, List[Subscription]] = {}
        self._ids = itertools.count(1)
        self._lock = threading.RLock()

    def subscribe(self, topic: Topic, max_queue_size: Optional[int] = None) -> Subscription:
        """Register a new subscription on a topic.

        Args:
            topic: Topic to subscribe to
            max_queue_size: Override of the bus default buffer bound

        Returns:
            Subscription receiving events published from now on
        """
        with self._lock:
            subscription = Subscription(
                self,
                next(self._ids),
                topic,
                max_queue_size or self.max_queue_size,
            )
            self._subscriptions.setdefault(topic.key, []).append(subscription)

        logger.debug(
            "Subscription registered",
            extra={"topic": topic.key, "subscription_id": subscription.id},
        )
        return subscription

    def unsubscribe(self, subscription: Subscription) -> bool:
        """Remove a subscription.

        Calling this more than once has the same effect as calling it once.

        Returns:
            True if the subscription was registered, False if already removed
        """
        with self._lock:
            registered = self._subscriptions.get(subscription.topic.key, [])
            removed = subscription in registered
            if removed:
                registered.remove(subscription)
                if not registered:
                    del self._subscriptions[subscription.topic.key]
            subscription._close()

        if removed:
            logger.debug(
                "Subscription removed",
                extra={"topic": subscription.topic.key, "subscription_id": subscription.id},
            )
        return removed

    def publish(self, topic: Topic, payload: Any) -> int:
        """Deliver a payload to every subscription on a topic.

        Args:
            topic: Topic to publish on
            payload: Event payload

        Returns:
            Number of subscriptions the payload was delivered to
        """
        with self._lock:
            targets = list(self._subscriptions.get(topic.key, ()))
            delivered = sum(1 for subscription in targets if subscription._deliver(payload))

        logger.debug(
            "Event published",
            extra={"topic": topic.key, "delivered": delivered},
        )
        return delivered

    def subscriber_count(self, topic: Topic) -> int:
        with self._lock:
            return len(self._subscriptions.get(topic.key, ()))

    def close(self) -> None:
        """Unsubscribe everything; consumers finish after draining."""
        with self._lock:
            subscriptions = [s for subs in self._subscriptions.values() for s in subs]
        for subscription in subscriptions:
            self.unsubscribe(subscription)
        logger.debug("EventBus closed", extra={"subscriptions": len(subscriptions)})
