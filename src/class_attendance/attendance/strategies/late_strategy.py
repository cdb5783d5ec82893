from __future__ import annotations

from datetime import datetime, timedelta

from ...core.enums import AttendanceStatus
from .base import AttendanceStrategy, StatusDecision


class LateStrategy(AttendanceStrategy):
    """Marked after the late window, while the session is still open."""

    def decide(self, *, now: datetime, starts_at: datetime, late_window: timedelta) -> StatusDecision:
        late_minutes = int((now - starts_at).total_seconds() // 60)
        return StatusDecision(status=AttendanceStatus.LATE, message=f"Attendance marked as LATE ({late_minutes} min)")
