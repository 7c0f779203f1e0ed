"""
BlogDB Server - in-memory relational data service with live notifications.

This package implements a data service over three related entities:
- Users, Posts and Comments held in an in-memory store
- Referential integrity and cascade deletes enforced by the mutation layer
- Post/comment events derived from publication-state transitions
- Topic-based publish/subscribe delivering events to live subscribers

Architecture:
    ┌─────────────┐     ┌──────────────┐     ┌──────────────────┐
    │   Client    │────▶│  HTTP / SSE  │────▶│  ServiceContext  │
    └─────────────┘     └──────────────┘     └────────┬─────────┘
                                                      │
                 ┌───────────────┬────────────────────┼──────────────────┐
                 ▼               ▼                    ▼                  ▼
          ┌────────────┐  ┌────────────┐      ┌──────────────┐   ┌──────────────┐
          │  Queries   │  │ Relations  │      │  Mutations   │   │Subscriptions │
          └─────┬──────┘  └─────┬──────┘      └──┬────────┬──┘   └──────┬───────┘
                │               │                │        │ publish     │ subscribe
                ▼               ▼                ▼        ▼             ▼
          ┌──────────────────────────────────────────┐  ┌──────────────────────┐
          │     Store (users / posts / comments)     │  │       EventBus       │
          └──────────────────────────────────────────┘  └──────────────────────┘

Invariants:
    - The store is the only owner of entity data; nothing survives restarts
    - Only the mutation layer writes to the store or publishes events
    - Failed mutations leave the store unchanged
    - Ids are never reused

Version: see _version.py.
"""

from ._version import __version__

__all__ = ["__version__"]
