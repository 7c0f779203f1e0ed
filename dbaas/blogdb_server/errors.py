"""
Error types for BlogDB Server.

This module defines the exceptions raised by the store and the services:
- BlogDbError: Base exception
- DuplicateEmailError: Email uniqueness violated
- NotFoundError: Mutation target or lookup id does not exist
- InvalidReferenceError: Foreign reference missing or fails a policy check
- IdConflictError: An id was inserted twice or reused

Invariants:
    - All errors inherit from BlogDbError
    - Errors are raised before any store mutation takes place
    - code and details are stable for programmatic handling (HTTP mapping)
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class BlogDbError(Exception):
    """Base exception for all BlogDB errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "BLOGDB_ERROR"
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the error body returned by the HTTP API."""
        return {
            "error": self.message,
            "error_code": self.code,
            "details": self.details,
        }


class DuplicateEmailError(BlogDbError):
    """Email is already used by another user.

    Raised by create_user and update_user.
    """

    def __init__(self, email: str) -> None:
        super().__init__(
            f"Email '{email}' is already in use",
            code="DUPLICATE_EMAIL",
            details={"email": email},
        )
        self.email = email


class NotFoundError(BlogDbError):
    """Resource not found.

    Raised when:
    - The target of an update/delete doesn't exist
    - A single-entity lookup misses
    """

    def __init__(self, resource_type: str, resource_id: str) -> None:
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            code="NOT_FOUND",
            details={
                "resource_type": resource_type,
                "resource_id": resource_id,
            },
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class InvalidReferenceError(BlogDbError):
    """A required foreign reference is invalid.

    Raised when:
    - A post's author is not an existing user
    - A comment's author is not an existing user
    - A comment's post does not exist or is not published
    """

    def __init__(
        self,
        field_name: str,
        reference_id: str,
        reason: str,
    ) -> None:
        super().__init__(
            f"Invalid reference in '{field_name}' to '{reference_id}': {reason}",
            code="INVALID_REFERENCE",
            details={
                "field": field_name,
                "reference_id": reference_id,
                "reason": reason,
            },
        )
        self.field_name = field_name
        self.reference_id = reference_id
        self.reason = reason


class IdConflictError(BlogDbError):
    """An entity id is already present, or was held before and removed."""

    def __init__(self, collection: str, entity_id: str) -> None:
        super().__init__(
            f"Id '{entity_id}' already used in {collection}",
            code="ID_CONFLICT",
            details={"collection": collection, "id": entity_id},
        )
        self.collection = collection
        self.entity_id = entity_id
