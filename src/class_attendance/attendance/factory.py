from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from .strategies.absent_strategy import AbsentStrategy
from .strategies.base import AttendanceStrategy
from .strategies.late_strategy import LateStrategy
from .strategies.present_strategy import PresentStrategy


@dataclass
class AttendanceStrategyFactory:
    """Factory Pattern: choose appropriate strategy based on rules."""

    def for_mark(self, *, now: datetime, starts_at: datetime, late_window: timedelta) -> AttendanceStrategy:
        if now <= starts_at + late_window:
            return PresentStrategy()
        return LateStrategy()

    def for_closure(self) -> AttendanceStrategy:
        return AbsentStrategy()
