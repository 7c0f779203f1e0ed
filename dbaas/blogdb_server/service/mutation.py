"""
Mutations with referential integrity and event derivation.

The MutationService is the only writer of the store. Every operation:
1. validates its input and every reference it depends on,
2. applies the change (including cascades),
3. publishes the events derived from the change.

All three steps run inside one Store.transaction(), so a check and the
write it guards cannot interleave with another mutation.

Post events follow the publication flag, not the raw operation:

    before        after         event
    ------------  ------------  ------------------------------
    (new)         published     CREATED (new post)
    (new)         unpublished   -
    unpublished   published     CREATED (updated post)
    published     unpublished   DELETED (pre-update snapshot)
    published     published     UPDATED (updated post)
    unpublished   unpublished   -
    published     (deleted)     DELETED (removed post)
    unpublished   (deleted)     -

Comment events are published on the comment thread of the comment's post
for create and delete. Comment updates publish nothing.

Invariants:
    - Validation happens before any write; a failed mutation changes nothing
    - User emails are unique
    - Comments can only be created on published posts
    - Cascaded deletions never publish events

How to change safely:
    - Add new checks before the first write of an operation
    - Keep publish() calls after the writes they describe
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Union

from ..errors import DuplicateEmailError, InvalidReferenceError, NotFoundError
from ..events import EventBus, MutationEvent, MutationKind, Topic
from ..store import Comment, Post, Store, User, snapshot
from .inputs import (
    CreateCommentInput,
    CreatePostInput,
    CreateUserInput,
    UpdateCommentInput,
    UpdatePostInput,
    UpdateUserInput,
    coerce_input,
)

logger = logging.getLogger(__name__)

Payload = Union[Mapping[str, Any], Any]


class MutationService:
    """Create, update and delete users, posts and comments.

    Attributes:
        store: Store written to
        bus: EventBus derived events are published on

    Example:
        >>> mutations = MutationService(store, bus)
        >>> user = mutations.create_user({"name": "Ann", "email": "ann@example.com"})
        >>> post = mutations.create_post(
        ...     {"title": "Hi", "body": "...", "isPublished": True, "author": user.id}
        ... )
    """

    def __init__(self, store: Store, bus: EventBus) -> None:
        self.store = store
        self.bus = bus

    # Users

    def create_user(self, data: Payload) -> User:
        """Create a user.

        Raises:
            DuplicateEmailError: If the email is already in use
        """
        data = coerce_input(CreateUserInput, data)

        with self.store.transaction():
            self._check_email_free(data.email)
            user = self.store.users.insert(
                User(
                    id=self.store.new_id(),
                    name=data.name,
                    email=data.email,
                    age=data.age,
                )
            )

        logger.info("User created", extra={"user_id": user.id})
        return user

    def delete_user(self, user_id: str) -> User:
        """Delete a user with its posts, their comments and the user's comments.

        Returns:
            The removed user

        Raises:
            NotFoundError: If the user doesn't exist
        """
        with self.store.transaction():
            user = self.store.users.remove(user_id)
            if user is None:
                raise NotFoundError("User", user_id)

            posts = self.store.posts.remove_where(lambda post: post.author == user_id)
            post_ids = {post.id for post in posts}
            thread_comments = self.store.comments.remove_where(
                lambda comment: comment.post in post_ids
            )
            own_comments = self.store.comments.remove_where(
                lambda comment: comment.author == user_id
            )

        logger.info(
            "User deleted",
            extra={
                "user_id": user_id,
                "cascaded_posts": len(posts),
                "cascaded_comments": len(thread_comments) + len(own_comments),
            },
        )
        return user

    def update_user(self, user_id: str, data: Payload) -> User:
        """Apply the provided fields (name, email, age) to a user.

        Raises:
            NotFoundError: If the user doesn't exist
            DuplicateEmailError: If another user already has the new email
        """
        changes = coerce_input(UpdateUserInput, data).changes()

        with self.store.transaction():
            user = self._require(self.store.users.get(user_id), "User", user_id)
            if "email" in changes:
                self._check_email_free(changes["email"], exclude_id=user_id)

            for name, value in changes.items():
                setattr(user, name, value)

        logger.info("User updated", extra={"user_id": user_id, "fields": sorted(changes)})
        return user

    # Posts

    def create_post(self, data: Payload) -> Post:
        """Create a post; publishes CREATED if it is created published.

        Raises:
            InvalidReferenceError: If the author doesn't exist
        """
        data = coerce_input(CreatePostInput, data)

        with self.store.transaction():
            if not self.store.users.exists(data.author):
                raise InvalidReferenceError("author", data.author, "user does not exist")

            post = self.store.posts.insert(
                Post(
                    id=self.store.new_id(),
                    title=data.title,
                    body=data.body,
                    is_published=data.is_published,
                    author=data.author,
                )
            )
            if post.is_published:
                self._publish_post(MutationKind.CREATED, post)

        logger.info(
            "Post created",
            extra={"post_id": post.id, "author": post.author, "published": post.is_published},
        )
        return post

    def delete_post(self, post_id: str) -> Post:
        """Delete a post and its comments; publishes DELETED if it was published.

        Raises:
            NotFoundError: If the post doesn't exist
        """
        with self.store.transaction():
            post = self.store.posts.remove(post_id)
            if post is None:
                raise NotFoundError("Post", post_id)

            comments = self.store.comments.remove_where(lambda comment: comment.post == post_id)
            if post.is_published:
                self._publish_post(MutationKind.DELETED, post)

        logger.info(
            "Post deleted",
            extra={"post_id": post_id, "cascaded_comments": len(comments)},
        )
        return post

    def update_post(self, post_id: str, data: Payload) -> Post:
        """Apply the provided fields (title, body, isPublished) to a post.

        The event published depends on the publication flag transition,
        see the table in the module docstring.

        Raises:
            NotFoundError: If the post doesn't exist
        """
        changes = coerce_input(UpdatePostInput, data).changes()

        with self.store.transaction():
            post = self._require(self.store.posts.get(post_id), "Post", post_id)
            before = snapshot(post)

            for name, value in changes.items():
                setattr(post, name, value)

            kind, payload = self._derive_post_event(before, post, changes)
            if kind is not None:
                self._publish_post(kind, payload)

        logger.info(
            "Post updated",
            extra={
                "post_id": post_id,
                "fields": sorted(changes),
                "event": kind.value if kind else None,
            },
        )
        return post

    @staticmethod
    def _derive_post_event(
        before: Post,
        after: Post,
        changes: Mapping[str, Any],
    ) -> tuple[Optional[MutationKind], Post]:
        if "is_published" in changes and before.is_published != after.is_published:
            if after.is_published:
                return MutationKind.CREATED, after
            # The post disappears from the published set as it was
            return MutationKind.DELETED, before

        if after.is_published:
            return MutationKind.UPDATED, after
        return None, after

    # Comments

    def create_comment(self, data: Payload) -> Comment:
        """Create a comment on a published post; publishes CREATED on its thread.

        Raises:
            InvalidReferenceError: If the author doesn't exist, or the post
                doesn't exist or isn't published
        """
        data = coerce_input(CreateCommentInput, data)

        with self.store.transaction():
            if not self.store.users.exists(data.author):
                raise InvalidReferenceError("author", data.author, "user does not exist")

            post = self.store.posts.get(data.post)
            if post is None:
                raise InvalidReferenceError("post", data.post, "post does not exist")
            if not post.is_published:
                raise InvalidReferenceError("post", data.post, "post is not published")

            comment = self.store.comments.insert(
                Comment(
                    id=self.store.new_id(),
                    text=data.text,
                    author=data.author,
                    post=data.post,
                )
            )
            self._publish_comment(MutationKind.CREATED, comment)

        logger.info(
            "Comment created",
            extra={"comment_id": comment.id, "post_id": comment.post, "author": comment.author},
        )
        return comment

    def delete_comment(self, comment_id: str) -> Comment:
        """Delete a comment; publishes DELETED on its post's thread.

        The parent post is not required to still exist.

        Raises:
            NotFoundError: If the comment doesn't exist
        """
        with self.store.transaction():
            comment = self.store.comments.remove(comment_id)
            if comment is None:
                raise NotFoundError("Comment", comment_id)
            self._publish_comment(MutationKind.DELETED, comment)

        logger.info("Comment deleted", extra={"comment_id": comment_id, "post_id": comment.post})
        return comment

    def update_comment(self, comment_id: str, data: Payload) -> Comment:
        """Apply the provided text to a comment. Publishes nothing.

        Raises:
            NotFoundError: If the comment doesn't exist
        """
        changes = coerce_input(UpdateCommentInput, data).changes()

        with self.store.transaction():
            comment = self._require(self.store.comments.get(comment_id), "Comment", comment_id)
            if "text" in changes:
                comment.text = changes["text"]

        logger.info("Comment updated", extra={"comment_id": comment_id})
        return comment

    # Helpers

    def _check_email_free(self, email: str, exclude_id: Optional[str] = None) -> None:
        taken = self.store.users.any(
            lambda user: user.email == email and user.id != exclude_id
        )
        if taken:
            raise DuplicateEmailError(email)

    @staticmethod
    def _require(entity: Any, resource_type: str, resource_id: str) -> Any:
        if entity is None:
            raise NotFoundError(resource_type, resource_id)
        return entity

    def _publish_post(self, kind: MutationKind, post: Post) -> None:
        self.bus.publish(Topic.posts(), MutationEvent(kind, snapshot(post)))

    def _publish_comment(self, kind: MutationKind, comment: Comment) -> None:
        self.bus.publish(Topic.comment_thread(comment.post), MutationEvent(kind, snapshot(comment)))
