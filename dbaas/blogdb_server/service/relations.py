"""
Relationship resolution between entities.

Relations are stored as ids. The resolver turns them into entities by
looking them up in the store every time it is asked; nothing is cached,
so results are never stale. Child lookups (a post's comments, a user's
posts) are linear scans of the collection.
"""

from __future__ import annotations

from typing import List, Optional

from ..store import Comment, Post, Store, User


class RelationResolver:
    """Resolve author, parent post and child collections of an entity."""

    def __init__(self, store: Store) -> None:
        self.store = store

    # Post relations

    def post_author(self, post: Post) -> Optional[User]:
        return self.store.users.get(post.author)

    def post_comments(self, post: Post) -> List[Comment]:
        with self.store.transaction():
            return self.store.comments.find(lambda comment: comment.post == post.id)

    # Comment relations

    def comment_author(self, comment: Comment) -> Optional[User]:
        return self.store.users.get(comment.author)

    def comment_post(self, comment: Comment) -> Optional[Post]:
        return self.store.posts.get(comment.post)

    # User relations

    def user_posts(self, user: User) -> List[Post]:
        with self.store.transaction():
            return self.store.posts.find(lambda post: post.author == user.id)

    def user_comments(self, user: User) -> List[Comment]:
        with self.store.transaction():
            return self.store.comments.find(lambda comment: comment.author == user.id)
