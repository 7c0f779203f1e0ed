"""
Ordered, id-keyed entity collection.

A Collection is the storage unit of the in-memory store: one per entity
kind. Entities are kept in a dict keyed by id, which preserves insertion
order, so listing a collection returns entities in the order they were
created.

Invariants:
    - An id is present at most once
    - An id is never reused, even after the entity holding it was removed
    - remove()/remove_where() hand back the removed entities so callers can
      inspect their last state

How to change safely:
    - Keep all operations synchronous; atomicity across collections is
      provided by Store.transaction(), not here
    - Predicates must not mutate the collection they are scanning
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from typing import Dict, Generic, List, Optional, Set, TypeVar

from ..errors import IdConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Predicate = Callable[[T], bool]


class Collection(Generic[T]):
    """Insertion-ordered mapping from id to entity.

    Attributes:
        name: Collection name used in logs and errors

    Example:
        >>> users = Collection("users")
        >>> users.insert(User(id="u1", name="Ann", email="ann@example.com"))
        >>> users.get("u1").name
        'Ann'
        >>> [u.id for u in users.remove_where(lambda u: u.name == "Ann")]
        ['u1']
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._items: Dict[str, T] = {}
        self._issued: Set[str] = set()

    def insert(self, entity: T) -> T:
        """Insert an entity.

        Args:
            entity: Entity with an ``id`` attribute

        Returns:
            The inserted entity

        Raises:
            IdConflictError: If the id is present or was used before
        """
        entity_id = entity.id  # type: ignore[attr-defined]
        if entity_id in self._issued:
            raise IdConflictError(self.name, entity_id)

        self._items[entity_id] = entity
        self._issued.add(entity_id)
        return entity

    def get(self, entity_id: str) -> Optional[T]:
        return self._items.get(entity_id)

    def exists(self, entity_id: str) -> bool:
        return entity_id in self._items

    def find(self, predicate: Optional[Predicate] = None) -> List[T]:
        """Return matching entities in insertion order (all if no predicate)."""
        if predicate is None:
            return list(self._items.values())
        return [item for item in self._items.values() if predicate(item)]

    def any(self, predicate: Predicate) -> bool:
        return any(predicate(item) for item in self._items.values())

    def remove(self, entity_id: str) -> Optional[T]:
        """Remove an entity by id.

        Returns:
            The removed entity, or None if the id was not present
        """
        return self._items.pop(entity_id, None)

    def remove_where(self, predicate: Predicate) -> List[T]:
        """Remove every entity matching the predicate.

        Returns:
            Removed entities in insertion order
        """
        doomed = [entity_id for entity_id, item in self._items.items() if predicate(item)]
        removed = [self._items.pop(entity_id) for entity_id in doomed]
        if removed:
            logger.debug(
                "Removed entities",
                extra={"collection": self.name, "count": len(removed)},
            )
        return removed

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items.values()))

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._items

    def __repr__(self) -> str:
        return f"Collection(name={self.name!r}, size={len(self._items)})"
