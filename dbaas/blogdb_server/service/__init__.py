"""
Service module for BlogDB - operations over the store.

This module provides:
- QueryService: listings with case-insensitive filtering, lookups
- MutationService: validated writes, cascades, event derivation
- RelationResolver: author / post / children resolution by id
- SubscriptionService: post and comment-thread event streams
- ServiceContext: one store + bus with the services built on them

Invariants:
    - Only MutationService writes to the store or publishes events
    - Failed mutations leave the store unchanged
"""

from .context import ServiceContext
from .inputs import (
    CreateCommentInput,
    CreatePostInput,
    CreateUserInput,
    UpdateCommentInput,
    UpdatePostInput,
    UpdateUserInput,
)
from .mutation import MutationService
from .query import QueryService
from .relations import RelationResolver
from .subscriptions import SubscriptionService

__all__ = [
    "ServiceContext",
    "MutationService",
    "QueryService",
    "RelationResolver",
    "SubscriptionService",
    "CreateUserInput",
    "UpdateUserInput",
    "CreatePostInput",
    "UpdatePostInput",
    "CreateCommentInput",
    "UpdateCommentInput",
]
