"""Read models for callers: sessions bucketed by derived status, rosters
and per-student summaries. Every view recomputes status from the clock."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Iterable, Optional, Sequence

from ..attendance.repository import AttendanceRepository
from ..common.datetime_utils import as_utc, now_utc
from ..core.enums import AttendanceStatus, SessionStatus
from ..core.exceptions import NotFoundError
from ..courses.repository import ClassRepository, EnrollmentRepository
from .model import Session
from .repository import SessionRepository
from .status import TimeRemaining, session_status, time_remaining


@dataclass(frozen=True)
class SessionView:
    session: Session
    class_name: str
    status: SessionStatus
    remaining: TimeRemaining
    is_marked: bool = False
    attendance_status: Optional[AttendanceStatus] = None
    attendance_count: int = 0

    def refreshed(self, now: datetime) -> "SessionView":
        return replace(self, status=session_status(self.session, now), remaining=time_remaining(self.session, now))

    def to_dict(self) -> dict[str, Any]:
        s = self.session
        return {
            "id": s.session_id,
            "class_id": s.class_id,
            "course_id": s.course_id,
            "class_name": self.class_name,
            "date": s.session_date.isoformat(),
            "start_time": s.start_time.strftime("%H:%M"),
            "end_time": s.end_time.strftime("%H:%M"),
            "status": self.status.value,
            "time_remaining": self.remaining.label,
            "is_marked": self.is_marked,
            "attendance_status": self.attendance_status.value if self.attendance_status else None,
            "attendance_count": self.attendance_count,
        }


@dataclass(frozen=True)
class SessionBuckets:
    scheduled: tuple[SessionView, ...] = ()
    open: tuple[SessionView, ...] = ()
    closed: tuple[SessionView, ...] = ()

    @classmethod
    def from_views(cls, views: Iterable[SessionView]) -> "SessionBuckets":
        by_status: dict[SessionStatus, list[SessionView]] = {s: [] for s in SessionStatus}
        for view in views:
            by_status[view.status].append(view)
        return cls(
            scheduled=tuple(by_status[SessionStatus.SCHEDULED]),
            open=tuple(by_status[SessionStatus.OPEN]),
            closed=tuple(by_status[SessionStatus.CLOSED]),
        )

    def all(self) -> tuple[SessionView, ...]:
        return self.scheduled + self.open + self.closed

    @property
    def needing_attention(self) -> tuple[SessionView, ...]:
        """Open sessions the student has not marked yet."""
        return tuple(v for v in self.open if not v.is_marked)

    def to_dict(self) -> dict[str, list[dict[str, Any]]]:
        return {
            "scheduled": [v.to_dict() for v in self.scheduled],
            "open": [v.to_dict() for v in self.open],
            "closed": [v.to_dict() for v in self.closed],
        }


@dataclass(frozen=True)
class RosterEntry:
    student_id: int
    status: Optional[AttendanceStatus] = None
    marked_at: Optional[datetime] = None
    attendance_id: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "student_id": self.student_id,
            "status": self.status.value if self.status else "pending",
            "marked_at": self.marked_at.isoformat() if self.marked_at else None,
            "attendance_id": self.attendance_id,
        }


@dataclass(frozen=True)
class SessionRoster:
    session: Session
    status: SessionStatus
    entries: tuple[RosterEntry, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session.session_id,
            "status": self.status.value,
            "entries": [e.to_dict() for e in self.entries],
        }


@dataclass(frozen=True)
class AttendanceSummary:
    total: int
    present: int
    late: int
    absent: int

    @property
    def rate(self) -> float:
        """Share of recorded sessions attended (present or late), 0-100."""
        if self.total == 0:
            return 0.0
        return round((self.present + self.late) * 100.0 / self.total, 1)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "present": self.present,
            "late": self.late,
            "absent": self.absent,
            "rate": self.rate,
        }


class SessionQueryService:
    def __init__(
        self,
        sessions: SessionRepository,
        classes: ClassRepository,
        enrollments: EnrollmentRepository,
        attendance: AttendanceRepository,
    ):
        self._sessions = sessions
        self._classes = classes
        self._enrollments = enrollments
        self._attendance = attendance

    def sessions_by_status_for_student(self, student_id: int, *, now: datetime | None = None) -> SessionBuckets:
        now = as_utc(now or now_utc())

        course_ids = self._enrollments.list_course_ids_for_student(int(student_id))
        classes = self._classes.list_for_courses(course_ids)
        names = {c.class_id: c.class_name for c in classes}
        sessions = self._sessions.list_for_classes(list(names))

        marked = {r.session_id: r.status for r in self._attendance.list_for_student(int(student_id))}

        return SessionBuckets.from_views(
            SessionView(
                session=s,
                class_name=names.get(s.class_id, ""),
                status=session_status(s, now),
                remaining=time_remaining(s, now),
                is_marked=s.session_id in marked,
                attendance_status=marked.get(s.session_id),
            )
            for s in sessions
        )

    def sessions_by_status_for_delegate(self, delegate_id: int, *, now: datetime | None = None) -> SessionBuckets:
        now = as_utc(now or now_utc())

        classes = self._classes.list_for_delegate(int(delegate_id))
        names = {c.class_id: c.class_name for c in classes}
        sessions = self._sessions.list_for_classes(list(names))
        counts = self._attendance.count_by_session([s.session_id for s in sessions])

        return SessionBuckets.from_views(
            SessionView(
                session=s,
                class_name=names.get(s.class_id, ""),
                status=session_status(s, now),
                remaining=time_remaining(s, now),
                attendance_count=counts.get(s.session_id, 0),
            )
            for s in sessions
        )

    def session_roster(self, session_id: int, *, now: datetime | None = None) -> SessionRoster:
        now = as_utc(now or now_utc())

        session = self._sessions.get_by_id(int(session_id))
        if not session:
            raise NotFoundError("Session not found")

        records = {r.student_id: r for r in self._attendance.list_for_session(session.session_id)}
        student_ids: Sequence[int] = sorted(set(self._enrollments.list_student_ids_for_course(session.course_id)) | set(records))

        entries = []
        for sid in student_ids:
            rec = records.get(sid)
            entries.append(
                RosterEntry(
                    student_id=sid,
                    status=rec.status if rec else None,
                    marked_at=rec.marked_at if rec else None,
                    attendance_id=rec.attendance_id if rec else None,
                )
            )
        return SessionRoster(session=session, status=session_status(session, now), entries=tuple(entries))

    def attendance_summary(self, student_id: int) -> AttendanceSummary:
        records = self._attendance.list_for_student(int(student_id))
        statuses = [r.status for r in records]
        return AttendanceSummary(
            total=len(statuses),
            present=statuses.count(AttendanceStatus.PRESENT),
            late=statuses.count(AttendanceStatus.LATE),
            absent=statuses.count(AttendanceStatus.ABSENT),
        )
