"""
Entity records held by the in-memory store.

Relations between entities are stored as ids, never as object references.
A post points at its author by user id, a comment at its author and post.
Related entities are looked up through the store on demand
(see service/relations.py).

Attributes use snake_case; to_dict() produces the wire form used by the
HTTP API and by event payloads (camelCase, e.g. ``isPublished``).
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class User:
    """A registered user.

    Attributes:
        id: Unique user identifier (immutable)
        name: Display name
        email: Email address, unique across all users
        age: Optional age in years
    """

    id: str
    name: str
    email: str
    age: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "age": self.age,
        }


@dataclass
class Post:
    """A post written by a user.

    Attributes:
        id: Unique post identifier
        title: Post title
        body: Post body text
        is_published: Publication flag; drives post events and gates comments
        author: Id of the authoring user
    """

    id: str
    title: str
    body: str
    is_published: bool
    author: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "body": self.body,
            "isPublished": self.is_published,
            "author": self.author,
        }


@dataclass
class Comment:
    """A comment left by a user on a post.

    Attributes:
        id: Unique comment identifier
        text: Comment text
        author: Id of the authoring user
        post: Id of the post commented on
    """

    id: str
    text: str
    author: str
    post: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "author": self.author,
            "post": self.post,
        }


def snapshot(entity: Any) -> Any:
    """Return a detached copy of an entity.

    Used to keep the pre-update state of a post for event payloads.
    """
    return dataclasses.replace(entity)
