"""
In-memory relational store for BlogDB.

The store owns every User, Post and Comment. It holds one Collection per
entity kind and the lock that turns a multi-step operation
(existence check -> insert, find -> remove cascade) into a single
mutual-exclusion region.

Invariants:
    - The store is the only owner of entity instances
    - All data is lost on process exit
    - Referential integrity is enforced by the mutation layer inside
      transaction(); the store itself does not know about relations

How to change safely:
    - Every read-check-write sequence must run inside transaction()
    - Keep id generation injectable so tests can use deterministic ids
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Dict

from .collection import Collection
from .models import Comment, Post, User

logger = logging.getLogger(__name__)


def default_id_factory() -> str:
    """Generate a globally unique string id (UUID4)."""
    return str(uuid.uuid4())


class Store:
    """Container for the three entity collections.

    Attributes:
        users: User collection
        posts: Post collection
        comments: Comment collection

    Thread safety:
        transaction() holds a re-entrant lock. Services wrap each logical
        operation in it, so store reads and writes may come from any thread.
        Mutations also publish on the EventBus, whose consumers are woken on
        the event loop; call mutations from the loop thread when
        subscriptions are being consumed.

    Example:
        >>> store = Store()
        >>> with store.transaction():
        ...     store.users.insert(User(store.new_id(), "Ann", "ann@example.com"))
    """

    def __init__(self, id_factory: Callable[[], str] | None = None) -> None:
        """Initialize an empty store.

        Args:
            id_factory: Callable returning a fresh unique id (UUID4 by default)
        """
        self.users: Collection[User] = Collection("users")
        self.posts: Collection[Post] = Collection("posts")
        self.comments: Collection[Comment] = Collection("comments")
        self._id_factory = id_factory or default_id_factory
        self._lock = threading.RLock()

    @contextmanager
    def transaction(self) -> Iterator[Store]:
        """Hold the store lock for the duration of one logical operation."""
        with self._lock:
            yield self

    def new_id(self) -> str:
        return self._id_factory()

    def counts(self) -> Dict[str, int]:
        """Return the number of entities per collection."""
        with self._lock:
            return {
                "users": len(self.users),
                "posts": len(self.posts),
                "comments": len(self.comments),
            }

    def clear(self) -> None:
        """Drop every entity (testing helper). Issued ids stay retired."""
        with self._lock:
            for collection in (self.users, self.posts, self.comments):
                collection.remove_where(lambda _: True)
        logger.debug("Store cleared")
