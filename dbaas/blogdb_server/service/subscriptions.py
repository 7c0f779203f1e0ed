"""
Live event streams for external consumers.

A thin layer over the EventBus that knows the two streams the service
offers: post events and the comment events of one post.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..events import EventBus, Subscription, Topic

logger = logging.getLogger(__name__)


class SubscriptionService:
    """Open and close subscriptions on post and comment topics.

    Streams only carry events published after subscribing.

    Example:
        >>> subscriptions = SubscriptionService(bus)
        >>> async with subscriptions.post_events() as events:
        ...     async for event in events:
        ...         handle(event.mutation, event.data)
    """

    def __init__(self, bus: EventBus) -> None:
        self.bus = bus

    def post_events(self, max_queue_size: Optional[int] = None) -> Subscription:
        """Subscribe to CREATED/UPDATED/DELETED events of published posts."""
        subscription = self.bus.subscribe(Topic.posts(), max_queue_size)
        logger.info("Post subscription opened", extra={"subscription_id": subscription.id})
        return subscription

    def comment_events(self, post_id: str, max_queue_size: Optional[int] = None) -> Subscription:
        """Subscribe to CREATED/DELETED events of the comments on one post.

        The post does not need to exist yet.
        """
        subscription = self.bus.subscribe(Topic.comment_thread(post_id), max_queue_size)
        logger.info(
            "Comment subscription opened",
            extra={"subscription_id": subscription.id, "post_id": post_id},
        )
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if self.bus.unsubscribe(subscription):
            logger.info(
                "Subscription closed",
                extra={
                    "subscription_id": subscription.id,
                    "topic": subscription.topic.key,
                    "dropped": subscription.dropped,
                },
            )
