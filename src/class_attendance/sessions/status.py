"""Session status engine.

The single rule every component uses to classify a session against the
clock:

- scheduled: now < start
- open:      start <= now <= end
- closed:    now > end
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..common.datetime_utils import as_utc, now_utc
from ..core.enums import SessionStatus
from .model import Session


def window_status(starts_at: datetime, ends_at: datetime, now: datetime) -> SessionStatus:
    now = as_utc(now)
    if now < starts_at:
        return SessionStatus.SCHEDULED
    if now <= ends_at:
        return SessionStatus.OPEN
    return SessionStatus.CLOSED


def session_status(session: Session, now: Optional[datetime] = None) -> SessionStatus:
    return window_status(session.starts_at, session.ends_at, now or now_utc())


@dataclass(frozen=True)
class TimeRemaining:
    kind: str  # "start" | "end" | "ended"
    minutes: int
    label: str


def _format_minutes(minutes: int, suffix: str) -> str:
    hours, mins = divmod(minutes, 60)
    if hours > 0:
        return f"{hours}h {mins}m {suffix}"
    return f"{mins}m {suffix}"


def time_remaining(session: Session, now: Optional[datetime] = None) -> TimeRemaining:
    """Countdown until the session starts, or until it ends while open."""
    now = as_utc(now or now_utc())
    status = window_status(session.starts_at, session.ends_at, now)

    if status == SessionStatus.SCHEDULED:
        minutes = int((session.starts_at - now).total_seconds() // 60)
        return TimeRemaining(kind="start", minutes=minutes, label=_format_minutes(minutes, "until start"))
    if status == SessionStatus.OPEN:
        minutes = int((session.ends_at - now).total_seconds() // 60)
        return TimeRemaining(kind="end", minutes=minutes, label=_format_minutes(minutes, "remaining"))
    return TimeRemaining(kind="ended", minutes=0, label="Session ended")
