from __future__ import annotations

from datetime import datetime, timedelta

from ...core.enums import AttendanceStatus
from .base import AttendanceStrategy, StatusDecision


class PresentStrategy(AttendanceStrategy):
    """Marked within the late window."""

    def decide(self, *, now: datetime, starts_at: datetime, late_window: timedelta) -> StatusDecision:
        return StatusDecision(status=AttendanceStatus.PRESENT, message="Attendance marked successfully!")
