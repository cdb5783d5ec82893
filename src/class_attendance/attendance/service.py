from __future__ import annotations

import hmac
import logging
from datetime import datetime, timedelta
from typing import Optional

from ..common.datetime_utils import as_utc, now_utc
from ..core.constants import LATE_WINDOW_MINUTES
from ..core.enums import MarkErrorCode, SessionStatus
from ..core.exceptions import DuplicateRecordError
from ..courses.repository import EnrollmentRepository
from ..sessions.model import Session
from ..sessions.repository import SessionRepository
from ..sessions.status import session_status
from .factory import AttendanceStrategyFactory
from .model import MarkEligibility, MarkResult
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)

MSG_NOT_STARTED = "Session has not started yet"
MSG_CLOSED = "Session has ended. Attendance is locked."
MSG_NOT_ENROLLED = "You are not enrolled in this course"
MSG_ALREADY_MARKED = "You have already marked attendance for this session"


class AttendanceService:
    """Admission rules for marking attendance.

    Checks run in order: session open, student enrolled, no existing record.
    The existing-record check is advisory; the store's (session, student)
    uniqueness constraint is what actually rejects concurrent duplicates.
    """

    def __init__(
        self,
        attendance: AttendanceRepository,
        sessions: SessionRepository,
        enrollments: EnrollmentRepository,
        *,
        strategy_factory: AttendanceStrategyFactory | None = None,
        late_window_minutes: int = LATE_WINDOW_MINUTES,
    ):
        self._attendance = attendance
        self._sessions = sessions
        self._enrollments = enrollments
        self._factory = strategy_factory or AttendanceStrategyFactory()
        self._late_window = timedelta(minutes=int(late_window_minutes))

    def can_mark(self, session: Session, student_id: int, *, now: datetime | None = None) -> MarkEligibility:
        now = as_utc(now or now_utc())
        status = session_status(session, now)

        if status == SessionStatus.SCHEDULED:
            return MarkEligibility(False, MSG_NOT_STARTED, status, MarkErrorCode.SESSION_NOT_STARTED)
        if status == SessionStatus.CLOSED:
            return MarkEligibility(False, MSG_CLOSED, status, MarkErrorCode.SESSION_EXPIRED)

        if not self._enrollments.is_enrolled(student_id=int(student_id), course_id=session.course_id):
            return MarkEligibility(False, MSG_NOT_ENROLLED, status, MarkErrorCode.NOT_ENROLLED)

        existing = self._attendance.get_for_session_and_student(session_id=session.session_id, student_id=int(student_id))
        if existing:
            return MarkEligibility(False, MSG_ALREADY_MARKED, status, MarkErrorCode.ALREADY_MARKED)

        return MarkEligibility(True, "Ready to mark attendance", status)

    def mark(self, session: Session, student_id: int, *, now: datetime | None = None) -> MarkResult:
        now = as_utc(now or now_utc())

        eligibility = self.can_mark(session, student_id, now=now)
        if not eligibility.allowed:
            logger.info(
                "Mark denied for student %s on session %s: %s",
                student_id,
                session.session_id,
                eligibility.code.value if eligibility.code else eligibility.reason,
            )
            return MarkResult.denied(eligibility.code or MarkErrorCode.INTERNAL_ERROR, eligibility.reason)

        strategy = self._factory.for_mark(now=now, starts_at=session.starts_at, late_window=self._late_window)
        decision = strategy.decide(now=now, starts_at=session.starts_at, late_window=self._late_window)

        try:
            record = self._attendance.create(
                session_id=session.session_id,
                student_id=int(student_id),
                status=decision.status,
                marked_at=now,
            )
        except DuplicateRecordError:
            logger.warning("Concurrent duplicate mark for student %s on session %s", student_id, session.session_id)
            return MarkResult.denied(MarkErrorCode.ALREADY_MARKED, MSG_ALREADY_MARKED)

        logger.info(
            "Student %s marked %s on session %s (attendance %s)",
            student_id,
            record.status.value,
            session.session_id,
            record.attendance_id,
        )
        return MarkResult(success=True, message=decision.message, record=record)

    def mark_by_id(self, session_id: int, student_id: int, *, now: datetime | None = None) -> MarkResult:
        session = self._sessions.get_by_id(int(session_id))
        if not session:
            return MarkResult.denied(MarkErrorCode.SESSION_NOT_FOUND, "Session not found")
        return self.mark(session, student_id, now=now)

    def verify_and_mark(
        self,
        *,
        session_id: Optional[int],
        token: Optional[str],
        student_id: Optional[int],
        now: datetime | None = None,
    ) -> MarkResult:
        """Token-gated marking for remote callers.

        Token and expiry are checked before the attendance table is touched.
        A retry after a success reports ALREADY_MARKED.
        """

        now = as_utc(now or now_utc())

        if not student_id:
            return MarkResult.denied(MarkErrorCode.NOT_AUTHENTICATED, "Not authenticated")

        session = self._sessions.get_by_id(int(session_id)) if session_id else None
        if not session:
            return MarkResult.denied(MarkErrorCode.SESSION_NOT_FOUND, "Session not found")

        if not token or not hmac.compare_digest(str(session.token).encode(), str(token).encode()):
            return MarkResult.denied(MarkErrorCode.INVALID_TOKEN, "Invalid session token")

        if as_utc(session.expires_at) < now:
            return MarkResult.denied(
                MarkErrorCode.SESSION_EXPIRED,
                "Session has expired. Attendance marking is no longer available.",
            )

        return self.mark(session, int(student_id), now=now)
