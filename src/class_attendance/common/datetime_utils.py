"""Conversion between the fixed local civil offset and UTC instants.

Every comparison between a session's civil date/time and "now" goes through
these helpers so scheduling, status and display never disagree.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone

from ..core.constants import LOCAL_TZ_NAME, LOCAL_UTC_OFFSET_HOURS
from ..core.exceptions import ValidationError

LOCAL_OFFSET = timedelta(hours=LOCAL_UTC_OFFSET_HOURS)
LOCAL_TZ = timezone(LOCAL_OFFSET, LOCAL_TZ_NAME)


def to_utc(session_date: date, hour: int, minute: int) -> datetime:
    """Civil (date, hour, minute) in the local offset -> aware UTC instant."""
    local = datetime(session_date.year, session_date.month, session_date.day, hour, minute, tzinfo=LOCAL_TZ)
    return local.astimezone(timezone.utc)


def local_to_utc(session_date: date, value: time) -> datetime:
    return to_utc(session_date, value.hour, value.minute)


def to_local(instant: datetime) -> datetime:
    return as_utc(instant).astimezone(LOCAL_TZ)


def now_utc() -> datetime:
    """Current instant (UTC).

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive values read back from the store."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_db_utc(value: datetime) -> datetime:
    """Naive UTC value for DATETIME columns, truncated to whole seconds."""
    return as_utc(value).replace(tzinfo=None, microsecond=0)


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    try:
        return datetime.strptime(str(value or "").strip(), "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError("Invalid date (YYYY-MM-DD)")


def parse_hhmm(value: str) -> time:
    try:
        return datetime.strptime(str(value or "").strip(), "%H:%M").time()
    except ValueError:
        raise ValidationError("Invalid time (HH:MM)")
