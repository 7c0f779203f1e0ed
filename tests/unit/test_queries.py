"""
Unit tests for queries and relation resolution.

Tests cover:
- Listing with case-insensitive substring filters
- Single-entity lookups
- Author / post / children resolution
"""

import itertools

import pytest

from dbaas.blogdb_server.errors import NotFoundError
from dbaas.blogdb_server.service import ServiceContext


@pytest.fixture
def ctx():
    """Context seeded with a few users, posts and comments."""
    counter = itertools.count(1)
    ctx = ServiceContext.create(id_factory=lambda: f"id-{next(counter)}")
    m = ctx.mutations

    andrew = m.create_user({"name": "Andrew", "email": "andrew@example.com", "age": 27})
    sarah = m.create_user({"name": "Sarah", "email": "sarah@example.com"})
    mike = m.create_user({"name": "Mike", "email": "mike@example.com"})

    graphql = m.create_post(
        {"title": "GraphQL 101", "body": "Learning queries", "isPublished": True, "author": andrew.id}
    )
    draft = m.create_post(
        {"title": "Draft", "body": "Advanced GRAPHQL", "isPublished": False, "author": andrew.id}
    )
    cooking = m.create_post(
        {"title": "Cooking", "body": "Pasta", "isPublished": True, "author": sarah.id}
    )

    m.create_comment({"text": "Great post", "author": sarah.id, "post": graphql.id})
    m.create_comment({"text": "Thanks", "author": andrew.id, "post": graphql.id})
    m.create_comment({"text": "Yum", "author": mike.id, "post": cooking.id})

    ctx.seeded = {
        "andrew": andrew, "sarah": sarah, "mike": mike,
        "graphql": graphql, "draft": draft, "cooking": cooking,
    }
    return ctx


class TestQueryService:
    """Tests for QueryService."""

    def test_users_all_in_insertion_order(self, ctx):
        assert [u.name for u in ctx.queries.users()] == ["Andrew", "Sarah", "Mike"]

    def test_users_filter_case_insensitive(self, ctx):
        assert [u.name for u in ctx.queries.users("AN")] == ["Andrew"]
        assert [u.name for u in ctx.queries.users("a")] == ["Andrew", "Sarah"]

    def test_users_filter_matches_name_only(self, ctx):
        """Email is not searched."""
        assert ctx.queries.users("example.com") == []

    def test_empty_filter_returns_everything(self, ctx):
        assert len(ctx.queries.users("")) == 3
        assert len(ctx.queries.posts("")) == 3

    def test_posts_filter_title_or_body(self, ctx):
        titles = [p.title for p in ctx.queries.posts("graphql")]
        assert titles == ["GraphQL 101", "Draft"]

    def test_posts_include_unpublished(self, ctx):
        """Queries are not restricted to published posts."""
        assert "Draft" in [p.title for p in ctx.queries.posts()]

    def test_posts_filter_no_match(self, ctx):
        assert ctx.queries.posts("nothing like this") == []

    def test_comments_unfiltered(self, ctx):
        assert [c.text for c in ctx.queries.comments()] == ["Great post", "Thanks", "Yum"]

    def test_lookups(self, ctx):
        andrew = ctx.seeded["andrew"]
        assert ctx.queries.user(andrew.id) is andrew

        with pytest.raises(NotFoundError):
            ctx.queries.user("missing")
        with pytest.raises(NotFoundError):
            ctx.queries.post("missing")
        with pytest.raises(NotFoundError):
            ctx.queries.comment("missing")

    def test_queries_publish_nothing(self, ctx):
        events = ctx.subscriptions.post_events()
        ctx.queries.users()
        ctx.queries.posts("x")
        ctx.queries.comments()
        assert events.drain() == []


class TestRelationResolver:
    """Tests for RelationResolver."""

    def test_post_author(self, ctx):
        post = ctx.seeded["cooking"]
        assert ctx.relations.post_author(post).name == "Sarah"

    def test_post_comments(self, ctx):
        comments = ctx.relations.post_comments(ctx.seeded["graphql"])
        assert [c.text for c in comments] == ["Great post", "Thanks"]
        assert ctx.relations.post_comments(ctx.seeded["draft"]) == []

    def test_comment_author_and_post(self, ctx):
        [yum] = [c for c in ctx.queries.comments() if c.text == "Yum"]
        assert ctx.relations.comment_author(yum).name == "Mike"
        assert ctx.relations.comment_post(yum).title == "Cooking"

    def test_user_posts_and_comments(self, ctx):
        andrew = ctx.seeded["andrew"]
        assert [p.title for p in ctx.relations.user_posts(andrew)] == ["GraphQL 101", "Draft"]
        assert [c.text for c in ctx.relations.user_comments(andrew)] == ["Thanks"]

    def test_resolution_is_never_stale(self, ctx):
        """Relations reflect the store at the time of the call."""
        graphql = ctx.seeded["graphql"]
        mike = ctx.seeded["mike"]

        ctx.mutations.create_comment({"text": "Late", "author": mike.id, "post": graphql.id})
        assert len(ctx.relations.post_comments(graphql)) == 3

        ctx.mutations.update_user(ctx.seeded["andrew"].id, {"name": "Drew"})
        assert ctx.relations.post_author(graphql).name == "Drew"

    def test_returns_store_instances(self, ctx):
        """Resolved entities are the store's own objects, not copies."""
        graphql = ctx.seeded["graphql"]
        assert ctx.relations.post_author(graphql) is ctx.store.users.get(graphql.author)
