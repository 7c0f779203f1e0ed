"""
Events module for BlogDB - live notification dispatch.

This module provides:
- Typed topic keys (global post topic, per-post comment threads)
- MutationKind / MutationEvent payloads
- The EventBus and its Subscription handles

Invariants:
    - Delivery is broadcast and ordered per topic
    - No persistence, no replay for late subscribers
"""

from .bus import (
    DEFAULT_MAX_QUEUE_SIZE,
    EventBus,
    EventBusError,
    Subscription,
    SubscriptionClosed,
)
from .topics import Topic, TopicKind
from .types import MutationEvent, MutationKind

__all__ = [
    "DEFAULT_MAX_QUEUE_SIZE",
    "EventBus",
    "EventBusError",
    "Subscription",
    "SubscriptionClosed",
    "Topic",
    "TopicKind",
    "MutationEvent",
    "MutationKind",
]
