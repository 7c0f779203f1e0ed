#!/usr/bin/env python3
"""
BlogDB Demo - Shows mutations, cascades and live events.

This demo uses the service context directly, without the HTTP server.

Run: python demo.py
"""

import asyncio

from dbaas.blogdb_server.errors import BlogDbError
from dbaas.blogdb_server.service import ServiceContext


def show_events(label, subscription):
    events = subscription.drain()
    if not events:
        print(f"  [{label}] no events")
    for event in events:
        print(f"  [{label}] {event.mutation.value}: {event.data.to_dict()}")


async def main():
    print("=" * 60)
    print("BlogDB Demo - Mutations, Cascades and Events")
    print("=" * 60)

    ctx = ServiceContext.create()
    post_events = ctx.subscriptions.post_events()

    # 1. Users
    print("\n[Step 1] Creating users...")
    users = [
        ctx.mutations.create_user({"name": "Andrew", "email": "andrew@example.com", "age": 27}),
        ctx.mutations.create_user({"name": "Sarah", "email": "sarah@example.com"}),
        ctx.mutations.create_user({"name": "Mike", "email": "mike@example.com"}),
    ]
    for user in users:
        print(f"  - {user.name} ({user.id})")

    try:
        ctx.mutations.create_user({"name": "Impostor", "email": "sarah@example.com"})
    except BlogDbError as e:
        print(f"  - rejected: {e.code} {e.message}")

    andrew, sarah, mike = users

    # 2. Posts and the publication state machine
    print("\n[Step 2] Publishing posts...")
    draft = ctx.mutations.create_post(
        {"title": "Draft", "body": "Not yet", "isPublished": False, "author": andrew.id}
    )
    show_events("post", post_events)

    ctx.mutations.update_post(draft.id, {"isPublished": True})
    show_events("post", post_events)

    ctx.mutations.update_post(draft.id, {"title": "Now public"})
    show_events("post", post_events)

    other = ctx.mutations.create_post(
        {"title": "Sarah's post", "body": "Hello", "isPublished": True, "author": sarah.id}
    )
    show_events("post", post_events)

    # 3. Comments
    print("\n[Step 3] Commenting...")
    thread = ctx.subscriptions.comment_events(draft.id)
    ctx.mutations.create_comment({"text": "Nice!", "author": sarah.id, "post": draft.id})
    ctx.mutations.create_comment({"text": "Agreed", "author": mike.id, "post": draft.id})
    ctx.mutations.create_comment({"text": "Me too", "author": andrew.id, "post": other.id})
    show_events(f"comment:{draft.id[:8]}", thread)

    # 4. Queries and relations
    print("\n[Step 4] Querying...")
    print(f"  - users matching 'a': {[u.name for u in ctx.queries.users('a')]}")
    print(f"  - posts matching 'hello': {[p.title for p in ctx.queries.posts('hello')]}")
    author = ctx.relations.post_author(draft)
    print(f"  - '{draft.title}' by {author.name}, {len(ctx.relations.post_comments(draft))} comments")

    # 5. Cascade
    print("\n[Step 5] Deleting Andrew (cascade)...")
    print(f"  - before: {ctx.store.counts()}")
    ctx.mutations.delete_user(andrew.id)
    print(f"  - after:  {ctx.store.counts()}")
    show_events("post", post_events)

    ctx.close()
    print("\nDone.")


if __name__ == "__main__":
    asyncio.run(main())
