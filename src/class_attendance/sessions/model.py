from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time

from ..common.datetime_utils import local_to_utc


@dataclass(frozen=True)
class Session:
    """Domain entity: an attendance-taking window for a class on one date.

    Sessions are never mutated after creation; their status is derived from
    the clock (see sessions.status).
    """

    session_id: int
    class_id: int
    course_id: int
    session_date: date
    start_time: time
    end_time: time
    token: str
    expires_at: datetime

    @property
    def starts_at(self) -> datetime:
        return local_to_utc(self.session_date, self.start_time)

    @property
    def ends_at(self) -> datetime:
        return local_to_utc(self.session_date, self.end_time)


@dataclass(frozen=True)
class NewSession:
    class_id: int
    session_date: date
    start_time: time
    end_time: time
    token: str
    expires_at: datetime
