from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Caller roles as provided by the external identity layer."""

    ADMIN = "admin"
    DELEGATE = "delegate"
    STUDENT = "student"


class SessionStatus(str, Enum):
    """Derived from the clock on every read, never stored."""

    SCHEDULED = "scheduled"
    OPEN = "open"
    CLOSED = "closed"


class AttendanceStatus(str, Enum):
    """Attendance status persisted with each record."""

    PRESENT = "present"
    LATE = "late"
    ABSENT = "absent"


class MarkErrorCode(str, Enum):
    """Error codes returned by attendance marking / token verification."""

    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    INVALID_TOKEN = "INVALID_TOKEN"
    SESSION_NOT_STARTED = "SESSION_NOT_STARTED"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    NOT_ENROLLED = "NOT_ENROLLED"
    ALREADY_MARKED = "ALREADY_MARKED"
    INTERNAL_ERROR = "INTERNAL_ERROR"
