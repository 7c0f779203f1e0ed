"""
Store module for BlogDB - in-memory entity storage.

This module handles:
- Entity records (User, Post, Comment)
- Ordered id-keyed collections with never-reused ids
- The Store container and its transaction lock

Invariants:
    - Entities reference each other by id only
    - The store is the sole owner of entity instances
"""

from .collection import Collection
from .models import Comment, Post, User, snapshot
from .store import Store, default_id_factory

__all__ = [
    "Collection",
    "Comment",
    "Post",
    "User",
    "snapshot",
    "Store",
    "default_id_factory",
]
