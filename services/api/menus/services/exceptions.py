"""Exceptions raised by the copy-on-write services.

Exception Hierarchy:
    ForkError (base)
    ├── NotFound              -> 404, never triggers forking
    ├── AccessDenied          -> 403, membership/ownership gate refused
    ├── CopyFailure           -> 500, a copy step failed; transaction rolls back
    └── ConsistencyViolation  -> 500, an expected fork or link row is missing

The services never commit or retry. Every one of these propagates to the route
layer, where the enclosing transaction is rolled back before the error is mapped
to an HTTP response in ``menus.main``.
"""

from typing import Optional


class ForkError(Exception):
    """Base exception for ownership checks and copy-on-write forking."""

    pass


class NotFound(ForkError):
    """Raised when a referenced collection, recipe, ingredient or link row is missing."""

    def __init__(self, entity_type: str, entity_id: Optional[int]):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} with ID {entity_id} not found")


class AccessDenied(ForkError):
    """Raised when a household has no legitimate path to the requested entity."""

    def __init__(self, message: str = "Access denied"):
        self.message = message
        super().__init__(message)


class CopyFailure(ForkError):
    """Raised when an entity copy step fails (constraint violation, slug exhaustion)."""

    def __init__(self, entity_type: str, source_id: int, reason: str):
        self.entity_type = entity_type
        self.source_id = source_id
        self.reason = reason
        super().__init__(f"Failed to copy {entity_type} {source_id}: {reason}")


class ConsistencyViolation(ForkError):
    """Raised when a cascade finished but the row it should have produced is missing."""

    pass
