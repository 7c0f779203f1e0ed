"""
Unit tests for the mutation service.

Tests cover:
- User create/update/delete with email uniqueness
- Cascade deletes (user -> posts -> comments, user -> comments)
- Reference checks on posts and comments
- Post events derived from publication transitions
- Comment events on per-post topics
"""

import itertools

import pytest
from pydantic import ValidationError

from dbaas.blogdb_server.errors import (
    DuplicateEmailError,
    InvalidReferenceError,
    NotFoundError,
)
from dbaas.blogdb_server.events import MutationKind, Topic
from dbaas.blogdb_server.service import CreateUserInput, ServiceContext, UpdatePostInput


@pytest.fixture
def ctx():
    """Service context with deterministic ids."""
    counter = itertools.count(1)
    return ServiceContext.create(id_factory=lambda: f"id-{next(counter)}")


@pytest.fixture
def post_events(ctx):
    """Subscription on the global post topic."""
    return ctx.subscriptions.post_events()


def make_user(ctx, name, email=None, age=None):
    return ctx.mutations.create_user(
        {"name": name, "email": email or f"{name.lower()}@example.com", "age": age}
    )


def make_post(ctx, author, title="Title", published=True, body="Body"):
    return ctx.mutations.create_post(
        {"title": title, "body": body, "isPublished": published, "author": author.id}
    )


def make_comment(ctx, author, post, text="Comment"):
    return ctx.mutations.create_comment({"text": text, "author": author.id, "post": post.id})


class TestUserMutations:
    """Tests for user mutations."""

    def test_create_user_assigns_fresh_ids(self, ctx):
        """Every created user gets a distinct id."""
        users = [make_user(ctx, f"User{i}") for i in range(5)]
        assert len({u.id for u in users}) == 5

    def test_create_user_accepts_input_model(self, ctx):
        user = ctx.mutations.create_user(CreateUserInput(name="Ann", email="ann@example.com"))
        assert user.age is None
        assert ctx.store.users.get(user.id) is user

    def test_create_user_duplicate_email(self, ctx):
        """Duplicate email fails and the user count is unchanged."""
        make_user(ctx, "Ann", email="shared@example.com")

        with pytest.raises(DuplicateEmailError) as exc_info:
            make_user(ctx, "Bob", email="shared@example.com")

        assert exc_info.value.email == "shared@example.com"
        assert len(ctx.store.users) == 1

    def test_create_user_rejects_bad_scalars(self, ctx):
        """Scalar type checks happen before touching the store."""
        with pytest.raises(ValidationError):
            ctx.mutations.create_user({"name": "Ann", "email": "ann@example.com", "age": "old"})
        with pytest.raises(ValidationError):
            ctx.mutations.create_user({"name": "Ann"})
        assert len(ctx.store.users) == 0

    def test_update_user_applies_only_present_fields(self, ctx):
        user = make_user(ctx, "Ann", age=30)

        updated = ctx.mutations.update_user(user.id, {"name": "Annie"})

        assert updated.name == "Annie"
        assert updated.email == "ann@example.com"
        assert updated.age == 30

    def test_update_user_can_clear_age(self, ctx):
        user = make_user(ctx, "Ann", age=30)
        ctx.mutations.update_user(user.id, {"age": None})
        assert ctx.store.users.get(user.id).age is None

    def test_update_user_duplicate_email_changes_nothing(self, ctx):
        """A taken email fails the whole update."""
        make_user(ctx, "Ann")
        bob = make_user(ctx, "Bob", age=40)

        with pytest.raises(DuplicateEmailError):
            ctx.mutations.update_user(
                bob.id, {"name": "Robert", "email": "ann@example.com", "age": 41}
            )

        bob = ctx.store.users.get(bob.id)
        assert (bob.name, bob.email, bob.age) == ("Bob", "bob@example.com", 40)

    def test_update_user_keeping_own_email(self, ctx):
        """Re-sending a user's own email is not a conflict."""
        ann = make_user(ctx, "Ann")
        updated = ctx.mutations.update_user(ann.id, {"email": "ann@example.com", "age": 5})
        assert updated.age == 5

    def test_update_user_unknown(self, ctx):
        with pytest.raises(NotFoundError):
            ctx.mutations.update_user("missing", {"name": "X"})

    def test_delete_user_unknown(self, ctx):
        with pytest.raises(NotFoundError) as exc_info:
            ctx.mutations.delete_user("missing")
        assert exc_info.value.resource_type == "User"

    def test_delete_user_cascade(self, ctx):
        """User deletion removes exactly the union of dependent comments."""
        ann = make_user(ctx, "Ann")
        bob = make_user(ctx, "Bob")
        cid = make_user(ctx, "Cid")

        ann_post = make_post(ctx, ann, "Ann's")
        bob_post = make_post(ctx, bob, "Bob's")

        # On Ann's post: by Bob, by Cid, by Ann herself (counted in both sets)
        make_comment(ctx, bob, ann_post)
        make_comment(ctx, cid, ann_post)
        make_comment(ctx, ann, ann_post)
        # On Bob's post: by Ann (goes), by Cid (stays)
        make_comment(ctx, ann, bob_post)
        survivor = make_comment(ctx, cid, bob_post)

        removed = ctx.mutations.delete_user(ann.id)

        assert removed.id == ann.id
        assert not ctx.store.users.exists(ann.id)
        assert [p.id for p in ctx.store.posts] == [bob_post.id]
        assert [c.id for c in ctx.store.comments] == [survivor.id]
        assert ctx.store.counts() == {"users": 2, "posts": 1, "comments": 1}

    def test_delete_user_publishes_nothing(self, ctx, post_events):
        """Cascaded post deletions do not emit events."""
        ann = make_user(ctx, "Ann")
        make_post(ctx, ann)
        post_events.drain()

        ctx.mutations.delete_user(ann.id)

        assert post_events.drain() == []


class TestPostMutations:
    """Tests for post mutations and the publication state machine."""

    @pytest.fixture
    def author(self, ctx):
        return make_user(ctx, "Ann")

    def test_create_post_requires_author(self, ctx):
        with pytest.raises(InvalidReferenceError) as exc_info:
            ctx.mutations.create_post(
                {"title": "T", "body": "B", "isPublished": True, "author": "ghost"}
            )
        assert exc_info.value.field_name == "author"
        assert len(ctx.store.posts) == 0

    def test_create_post_accepts_attribute_name(self, ctx, author):
        post = ctx.mutations.create_post(
            {"title": "T", "body": "B", "is_published": False, "author": author.id}
        )
        assert post.is_published is False

    def test_create_published_post_emits_created(self, ctx, author, post_events):
        post = make_post(ctx, author, published=True)

        [event] = post_events.drain()
        assert event.mutation is MutationKind.CREATED
        assert event.data == post

    def test_create_unpublished_post_emits_nothing(self, ctx, author, post_events):
        make_post(ctx, author, published=False)
        assert post_events.drain() == []

    def test_publication_lifecycle(self, ctx, author, post_events):
        """Unpublished -> published -> edited -> unpublished."""
        post = make_post(ctx, author, title="Draft", published=False)
        assert post_events.drain() == []

        ctx.mutations.update_post(post.id, {"isPublished": True})
        [created] = post_events.drain()
        assert created.mutation is MutationKind.CREATED
        assert created.data.is_published is True
        assert created.data.title == "Draft"

        ctx.mutations.update_post(post.id, {"title": "new"})
        [updated] = post_events.drain()
        assert updated.mutation is MutationKind.UPDATED
        assert updated.data.title == "new"

        ctx.mutations.update_post(post.id, {"isPublished": False})
        [deleted] = post_events.drain()
        assert deleted.mutation is MutationKind.DELETED
        # Carries the still-published snapshot, not the new state
        assert deleted.data.is_published is True
        assert deleted.data.title == "new"
        assert ctx.store.posts.get(post.id).is_published is False

    def test_unpublish_with_other_edits_carries_old_values(self, ctx, author, post_events):
        post = make_post(ctx, author, title="Old", published=True)
        post_events.drain()

        ctx.mutations.update_post(post.id, {"title": "Renamed", "isPublished": False})

        [deleted] = post_events.drain()
        assert deleted.mutation is MutationKind.DELETED
        assert deleted.data.title == "Old"

    def test_edit_unpublished_emits_nothing(self, ctx, author, post_events):
        post = make_post(ctx, author, published=False)
        ctx.mutations.update_post(post.id, {"title": "Still hidden"})
        ctx.mutations.update_post(post.id, {"isPublished": False})
        assert post_events.drain() == []

    def test_same_publish_state_counts_as_edit(self, ctx, author, post_events):
        """isPublished present but unchanged on a published post -> UPDATED."""
        post = make_post(ctx, author, published=True)
        post_events.drain()

        ctx.mutations.update_post(post.id, UpdatePostInput(is_published=True, body="More"))

        [event] = post_events.drain()
        assert event.mutation is MutationKind.UPDATED
        assert event.data.body == "More"

    def test_update_post_unknown(self, ctx, post_events):
        with pytest.raises(NotFoundError):
            ctx.mutations.update_post("missing", {"title": "x"})
        assert post_events.drain() == []

    def test_update_post_rejects_non_bool_flag(self, ctx, author):
        post = make_post(ctx, author, published=False)
        with pytest.raises(ValidationError):
            ctx.mutations.update_post(post.id, {"isPublished": "yes"})
        assert ctx.store.posts.get(post.id).is_published is False

    def test_event_payload_is_detached(self, ctx, author, post_events):
        """Later edits don't change an already delivered event."""
        post = make_post(ctx, author, title="First", published=True)
        [created] = post_events.drain()

        ctx.mutations.update_post(post.id, {"title": "Second"})

        assert created.data.title == "First"

    def test_delete_published_post(self, ctx, author, post_events):
        """Deleting a published post emits DELETED and cascades its comments only."""
        reader = make_user(ctx, "Bob")
        post = make_post(ctx, author, "Doomed")
        other = make_post(ctx, author, "Kept")
        make_comment(ctx, reader, post)
        make_comment(ctx, author, post)
        kept = make_comment(ctx, reader, other)
        post_events.drain()

        removed = ctx.mutations.delete_post(post.id)

        assert removed.id == post.id
        assert [c.id for c in ctx.store.comments] == [kept.id]
        [event] = post_events.drain()
        assert event.mutation is MutationKind.DELETED
        assert event.data.id == post.id

    def test_delete_unpublished_post_emits_nothing(self, ctx, author, post_events):
        post = make_post(ctx, author, published=False)
        ctx.mutations.delete_post(post.id)
        assert post_events.drain() == []

    def test_delete_post_unknown(self, ctx):
        with pytest.raises(NotFoundError):
            ctx.mutations.delete_post("missing")


class TestCommentMutations:
    """Tests for comment mutations."""

    @pytest.fixture
    def author(self, ctx):
        return make_user(ctx, "Ann")

    @pytest.fixture
    def post(self, ctx, author):
        return make_post(ctx, author, published=True)

    def test_comment_on_unpublished_post_rejected(self, ctx, author):
        draft = make_post(ctx, author, published=False)

        with pytest.raises(InvalidReferenceError) as exc_info:
            make_comment(ctx, author, draft)

        assert exc_info.value.field_name == "post"
        assert len(ctx.store.comments) == 0

    def test_comment_requires_existing_post(self, ctx, author):
        with pytest.raises(InvalidReferenceError):
            ctx.mutations.create_comment({"text": "x", "author": author.id, "post": "ghost"})

    def test_comment_requires_existing_author(self, ctx, post):
        with pytest.raises(InvalidReferenceError) as exc_info:
            ctx.mutations.create_comment({"text": "x", "author": "ghost", "post": post.id})
        assert exc_info.value.field_name == "author"

    def test_create_comment_emits_on_thread_only(self, ctx, author, post, post_events):
        """CREATED goes to comment:<post id>, not to post or other threads."""
        other = make_post(ctx, author, "Other")
        thread = ctx.subscriptions.comment_events(post.id)
        other_thread = ctx.subscriptions.comment_events(other.id)
        post_events.drain()

        comment = make_comment(ctx, author, post, "Hello")

        [event] = thread.drain()
        assert event.mutation is MutationKind.CREATED
        assert event.data == comment
        assert other_thread.drain() == []
        assert post_events.drain() == []

    def test_delete_comment_emits_deleted(self, ctx, author, post):
        comment = make_comment(ctx, author, post)
        thread = ctx.subscriptions.comment_events(post.id)

        removed = ctx.mutations.delete_comment(comment.id)

        assert removed.id == comment.id
        assert len(ctx.store.comments) == 0
        [event] = thread.drain()
        assert event.mutation is MutationKind.DELETED
        assert event.data.id == comment.id

    def test_delete_comment_unknown(self, ctx):
        with pytest.raises(NotFoundError):
            ctx.mutations.delete_comment("missing")

    def test_delete_comment_without_parent_post(self, ctx, author, post):
        """Deleting does not require the parent post to exist."""
        comment = make_comment(ctx, author, post)
        # Detach the post without the cascade to simulate a missing parent
        ctx.store.posts.remove(post.id)
        thread = ctx.subscriptions.comment_events(post.id)

        ctx.mutations.delete_comment(comment.id)

        assert [e.mutation for e in thread.drain()] == [MutationKind.DELETED]

    def test_update_comment_emits_nothing(self, ctx, author, post):
        """Comment edits currently publish no event (unlike post edits)."""
        comment = make_comment(ctx, author, post, "Before")
        thread = ctx.subscriptions.comment_events(post.id)

        updated = ctx.mutations.update_comment(comment.id, {"text": "After"})

        assert updated.text == "After"
        assert thread.drain() == []

    def test_update_comment_without_text_is_noop(self, ctx, author, post):
        comment = make_comment(ctx, author, post, "Same")
        assert ctx.mutations.update_comment(comment.id, {}).text == "Same"

    def test_update_comment_unknown(self, ctx):
        with pytest.raises(NotFoundError):
            ctx.mutations.update_comment("missing", {"text": "x"})

    def test_comments_cascade_with_post_delete(self, ctx, author, post):
        """Post deletion cascades comments without comment events."""
        make_comment(ctx, author, post)
        thread = ctx.subscriptions.comment_events(post.id)

        ctx.mutations.delete_post(post.id)

        assert len(ctx.store.comments) == 0
        assert thread.drain() == []


class TestRoundTrip:
    """Fields accepted on create come back unchanged from queries."""

    def test_create_then_query(self, ctx):
        user = ctx.mutations.create_user({"name": "Ann", "email": "ann@example.com", "age": 33})
        post = ctx.mutations.create_post(
            {"title": "T", "body": "B", "isPublished": True, "author": user.id}
        )
        comment = ctx.mutations.create_comment({"text": "C", "author": user.id, "post": post.id})

        [queried_user] = [u for u in ctx.queries.users() if u.id == user.id]
        [queried_post] = [p for p in ctx.queries.posts() if p.id == post.id]
        [queried_comment] = [c for c in ctx.queries.comments() if c.id == comment.id]

        assert queried_user.to_dict() == {
            "id": user.id, "name": "Ann", "email": "ann@example.com", "age": 33,
        }
        assert queried_post.to_dict() == {
            "id": post.id, "title": "T", "body": "B", "isPublished": True, "author": user.id,
        }
        assert queried_comment.to_dict() == {
            "id": comment.id, "text": "C", "author": user.id, "post": post.id,
        }
