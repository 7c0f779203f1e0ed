"""
Service context shared by every request.

One ServiceContext owns one Store and one EventBus and builds the four
services on top of them. Transports receive the context explicitly; there
is no module-level store.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Dict, Optional

from ..events import DEFAULT_MAX_QUEUE_SIZE, EventBus
from ..store import Store
from .mutation import MutationService
from .query import QueryService
from .relations import RelationResolver
from .subscriptions import SubscriptionService


class ServiceContext:
    """Store, event bus and the services that operate on them.

    Attributes:
        store: Entity store
        bus: Event bus
        queries: Read-only queries
        mutations: Validated writes with event derivation
        relations: Relationship resolution
        subscriptions: Live event streams

    Example:
        >>> ctx = ServiceContext.create()
        >>> user = ctx.mutations.create_user({"name": "Ann", "email": "ann@example.com"})
        >>> ctx.queries.users("ann")
        [User(id='...', name='Ann', email='ann@example.com', age=None)]
    """

    def __init__(self, store: Store, bus: EventBus) -> None:
        self.store = store
        self.bus = bus
        self.queries = QueryService(store)
        self.mutations = MutationService(store, bus)
        self.relations = RelationResolver(store)
        self.subscriptions = SubscriptionService(bus)

    @classmethod
    def create(
        cls,
        id_factory: Optional[Callable[[], str]] = None,
        max_queue_size: int = DEFAULT_MAX_QUEUE_SIZE,
    ) -> ServiceContext:
        """Build a context with a fresh, empty store and bus."""
        return cls(Store(id_factory=id_factory), EventBus(max_queue_size=max_queue_size))

    def health(self) -> Dict[str, Any]:
        """Health summary used by the HTTP health endpoint."""
        return {"healthy": True, "counts": self.store.counts()}

    def close(self) -> None:
        """End every open subscription."""
        self.bus.close()
