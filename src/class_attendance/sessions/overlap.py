from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
from typing import Optional, Sequence

from ..core.exceptions import SessionOverlapError
from .model import Session
from .repository import SessionRepository


def intervals_overlap(start: time, end: time, other_start: time, other_end: time) -> bool:
    """Half-open overlap: touching endpoints do not conflict."""
    return start < other_end and end > other_start


@dataclass(frozen=True)
class OverlapCheck:
    has_overlap: bool
    conflicting: tuple[Session, ...] = ()


class OverlapValidator:
    def __init__(self, sessions: SessionRepository):
        self._sessions = sessions

    def check(
        self,
        *,
        class_id: int,
        session_date: date,
        start_time: time,
        end_time: time,
        exclude_session_id: Optional[int] = None,
    ) -> OverlapCheck:
        existing = self._sessions.list_for_class_and_date(class_id=int(class_id), session_date=session_date)
        conflicting = tuple(
            s
            for s in existing
            if s.session_id != exclude_session_id
            and intervals_overlap(start_time, end_time, s.start_time, s.end_time)
        )
        return OverlapCheck(has_overlap=bool(conflicting), conflicting=conflicting)


def overlap_error(conflicting: Sequence[Session]) -> SessionOverlapError:
    starts = ", ".join(s.start_time.strftime("%H:%M") for s in conflicting)
    return SessionOverlapError(f"Session overlaps with existing session(s) at {starts}", conflicting)
