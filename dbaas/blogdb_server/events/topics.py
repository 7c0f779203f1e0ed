"""
Typed topic keys for the event bus.

Two kinds of topic exist:
- the global post topic, carrying events about published posts
- one comment thread topic per post, carrying events about its comments

Topics are built through the constructors below and mapped to the string
keys used for dispatch. Code never formats topic strings by hand.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class TopicKind(Enum):
    """Kinds of event topics."""

    POSTS = "post"
    COMMENT_THREAD = "comment"


@dataclass(frozen=True)
class Topic:
    """Key identifying one event stream.

    Attributes:
        kind: Topic kind
        post_id: Post id for comment thread topics, None for the post topic
    """

    kind: TopicKind
    post_id: Optional[str] = None

    def __post_init__(self) -> None:
        if self.kind is TopicKind.COMMENT_THREAD and not self.post_id:
            raise ValueError("Comment thread topics require a post_id")
        if self.kind is TopicKind.POSTS and self.post_id is not None:
            raise ValueError("The post topic does not take a post_id")

    @classmethod
    def posts(cls) -> Topic:
        return cls(TopicKind.POSTS)

    @classmethod
    def comment_thread(cls, post_id: str) -> Topic:
        return cls(TopicKind.COMMENT_THREAD, post_id)

    @property
    def key(self) -> str:
        """Dispatch key: ``post`` or ``comment:<post id>``."""
        if self.kind is TopicKind.POSTS:
            return self.kind.value
        return f"{self.kind.value}:{self.post_id}"

    def __str__(self) -> str:
        return self.key
