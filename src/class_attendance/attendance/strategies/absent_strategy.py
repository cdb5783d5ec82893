from __future__ import annotations

from datetime import datetime, timedelta

from ...core.enums import AttendanceStatus
from .base import AttendanceStrategy, StatusDecision


class AbsentStrategy(AttendanceStrategy):
    """No mark before the session closed."""

    def decide(self, *, now: datetime, starts_at: datetime, late_window: timedelta) -> StatusDecision:
        return StatusDecision(status=AttendanceStatus.ABSENT, message="Marked absent at session closure")
