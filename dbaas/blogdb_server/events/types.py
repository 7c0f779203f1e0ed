"""
Event payloads published by the mutation layer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, TypeVar

T = TypeVar("T")


class MutationKind(Enum):
    """Classification of an event, derived from a state transition."""

    CREATED = "CREATED"
    UPDATED = "UPDATED"
    DELETED = "DELETED"


@dataclass(frozen=True)
class MutationEvent(Generic[T]):
    """An event delivered to subscribers.

    Attributes:
        mutation: What happened from the subscriber's point of view
        data: The entity the event is about (Post or Comment)

    Example:
        {
            "mutation": "CREATED",
            "data": {"id": "...", "title": "Hello", "isPublished": true, ...}
        }
    """

    mutation: MutationKind
    data: T

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire form sent to subscribers."""
        return {
            "mutation": self.mutation.value,
            "data": self.data.to_dict(),  # type: ignore[attr-defined]
        }
