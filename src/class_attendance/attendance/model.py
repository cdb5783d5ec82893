from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from ..core.enums import AttendanceStatus, MarkErrorCode, SessionStatus


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: one student's attendance for one session.

    At most one record exists per (session, student); records are never
    updated or deleted once written.
    """

    attendance_id: int
    session_id: int
    student_id: int
    status: AttendanceStatus
    marked_at: datetime


@dataclass(frozen=True)
class MarkEligibility:
    allowed: bool
    reason: str
    session_status: SessionStatus
    code: Optional[MarkErrorCode] = None


@dataclass(frozen=True)
class MarkResult:
    """Outcome of a mark attempt; denials are results, not exceptions."""

    success: bool
    message: str
    code: Optional[MarkErrorCode] = None
    record: Optional[AttendanceRecord] = None

    @classmethod
    def denied(cls, code: MarkErrorCode, message: str) -> "MarkResult":
        return cls(success=False, message=message, code=code)

    def to_envelope(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": self.success, "message": self.message}
        if self.code is not None:
            body["error_code"] = self.code.value
        if self.record is not None:
            body["data"] = {
                "attendance_id": self.record.attendance_id,
                "timestamp": self.record.marked_at.isoformat(),
                "status": self.record.status.value,
            }
        return body
