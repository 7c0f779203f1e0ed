"""
Read-only queries over the store.

Queries never mutate and never publish events.
"""

from __future__ import annotations

from typing import List, Optional

from ..errors import NotFoundError
from ..store import Comment, Post, Store, User


def _contains(haystack: str, needle: str) -> bool:
    return needle.casefold() in haystack.casefold()


class QueryService:
    """Listing and lookup operations.

    Example:
        >>> queries = QueryService(store)
        >>> [u.name for u in queries.users("a")]
        ['Andrew', 'Sarah']
    """

    def __init__(self, store: Store) -> None:
        self.store = store

    def users(self, filter: Optional[str] = None) -> List[User]:
        """List users, optionally those whose name contains filter (case-insensitive)."""
        with self.store.transaction():
            if not filter:
                return self.store.users.find()
            return self.store.users.find(lambda user: _contains(user.name, filter))

    def posts(self, filter: Optional[str] = None) -> List[Post]:
        """List posts, optionally those whose title or body contains filter."""
        with self.store.transaction():
            if not filter:
                return self.store.posts.find()
            return self.store.posts.find(
                lambda post: _contains(post.title, filter) or _contains(post.body, filter)
            )

    def comments(self) -> List[Comment]:
        with self.store.transaction():
            return self.store.comments.find()

    def user(self, user_id: str) -> User:
        user = self.store.users.get(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def post(self, post_id: str) -> Post:
        post = self.store.posts.get(post_id)
        if post is None:
            raise NotFoundError("Post", post_id)
        return post

    def comment(self, comment_id: str) -> Comment:
        comment = self.store.comments.get(comment_id)
        if comment is None:
            raise NotFoundError("Comment", comment_id)
        return comment
