from __future__ import annotations

from typing import Sequence


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class InvalidTimeRangeError(ValidationError):
    """Raised when a session does not end after it starts."""


class PastStartError(ValidationError):
    """Raised when a session would start at or before the current instant."""


class SessionOverlapError(ValidationError):
    """Raised when a session overlaps another session of the same class."""

    def __init__(self, message: str, conflicting: Sequence = ()):
        super().__init__(message)
        self.conflicting = tuple(conflicting)


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""


class NotFoundError(DomainError):
    """Raised when a referenced entity does not exist."""


class DuplicateRecordError(DomainError):
    """Raised by repositories when the store rejects a duplicate key."""
