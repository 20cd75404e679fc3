"""Typed failures raised by registry operations.

Every operation validates all of its preconditions before it stages a single
write, so any of these exceptions means nothing was committed.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Failure categories surfaced to callers."""

    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    UNAUTHORIZED = "UNAUTHORIZED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    LIMIT_EXCEEDED = "LIMIT_EXCEEDED"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    INTERNAL_INCONSISTENCY = "INTERNAL_INCONSISTENCY"
    CONFLICT = "CONFLICT"  # Retryable substrate serialization conflict


class RegistryError(Exception):
    """Base exception for registry operations.

    Attributes:
        kind: Failure category.
        details: Structured context (entity keys, limits, offending field).
    """

    kind: ErrorKind = ErrorKind.INTERNAL_INCONSISTENCY

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details

    def to_dict(self) -> dict[str, Any]:
        """Structured representation for callers and logs."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "details": dict(self.details),
        }


class NotFoundError(RegistryError):
    """Referenced entity is absent."""

    kind = ErrorKind.NOT_FOUND


class AlreadyExistsError(RegistryError):
    """Unique-key collision: the derived address is already occupied."""

    kind = ErrorKind.ALREADY_EXISTS


class UnauthorizedError(RegistryError):
    """Caller is not the authority recorded on the target record."""

    kind = ErrorKind.UNAUTHORIZED


class PermissionDeniedError(RegistryError):
    """A capability flag or lifecycle gate forbids the operation."""

    kind = ErrorKind.PERMISSION_DENIED


class LimitExceededError(RegistryError):
    """A configured cap would be exceeded."""

    kind = ErrorKind.LIMIT_EXCEEDED


class InvalidArgumentError(RegistryError):
    """Malformed or mutually inconsistent arguments."""

    kind = ErrorKind.INVALID_ARGUMENT


class InternalInconsistencyError(RegistryError):
    """A derived invariant was violated. Fatal."""

    kind = ErrorKind.INTERNAL_INCONSISTENCY


class CounterOverflowError(InternalInconsistencyError):
    """An unsigned counter would wrap past its maximum."""


class ConflictError(RegistryError):
    """A record read by the transaction changed before commit.

    Raised only by the ledger substrate. The caller may retry.
    """

    kind = ErrorKind.CONFLICT
