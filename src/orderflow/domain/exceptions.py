"""Domain-level exceptions.

All failures are expressed as subclasses of DomainException so the
application boundary and the CLI can catch them uniformly.  Each error may
carry a ``context`` mapping (entity ids, stage name) that is logged but never
shown to the caller.
"""

from __future__ import annotations

from typing import Any


class DomainException(Exception):
    """Base class for all domain errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = dict(context or {})


class ValidationError(DomainException):
    """A business rule or invariant was violated."""


class ConflictError(ValidationError):
    """The entity is in a state that conflicts with the requested change."""


class NotFoundError(DomainException):
    """A requested entity or status code does not exist."""


class DatabaseError(DomainException):
    """The underlying store failed."""


class ServiceError(DomainException):
    """Generic failure surfaced to callers; the cause is chained for logs."""
