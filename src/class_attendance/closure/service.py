from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from ..attendance.factory import AttendanceStrategyFactory
from ..attendance.repository import AttendanceRepository
from ..common.datetime_utils import as_utc, now_utc
from ..core.enums import SessionStatus
from ..courses.repository import EnrollmentRepository
from ..sessions.model import Session
from ..sessions.repository import SessionRepository
from ..sessions.status import session_status

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClosureResult:
    session_id: int
    processed: bool
    absent_count: int
    message: str


class ClosureService:
    """Backfills ABSENT records once a session is closed.

    Safe to run any number of times, from any number of processes: the set
    of students without a record is recomputed on every call, and the bulk
    insert skips rows the uniqueness constraint already holds.
    """

    def __init__(
        self,
        attendance: AttendanceRepository,
        sessions: SessionRepository,
        enrollments: EnrollmentRepository,
        *,
        strategy_factory: AttendanceStrategyFactory | None = None,
    ):
        self._attendance = attendance
        self._sessions = sessions
        self._enrollments = enrollments
        self._factory = strategy_factory or AttendanceStrategyFactory()

    def process_closure(self, session: Session, *, now: datetime | None = None) -> ClosureResult:
        now = as_utc(now or now_utc())

        status = session_status(session, now)
        if status != SessionStatus.CLOSED:
            logger.debug("Closure skipped for session %s: status is %s", session.session_id, status.value)
            return ClosureResult(session.session_id, False, 0, "Session is not closed yet")

        enrolled = self._enrollments.list_student_ids_for_course(session.course_id)
        recorded = set(self._attendance.list_student_ids_for_session(session.session_id))
        missing = [sid for sid in enrolled if sid not in recorded]

        if not missing:
            return ClosureResult(session.session_id, True, 0, "No absent students")

        decision = self._factory.for_closure().decide(now=now, starts_at=session.starts_at, late_window=timedelta(0))
        inserted = self._attendance.create_bulk(
            session_id=session.session_id,
            student_ids=missing,
            status=decision.status,
            marked_at=now,
        )
        logger.info(
            "Session %s closed: %s student(s) marked %s",
            session.session_id,
            inserted,
            decision.status.value,
        )
        return ClosureResult(session.session_id, True, inserted, f"{inserted} student(s) marked absent")

    def process_closure_by_id(self, session_id: int, *, now: datetime | None = None) -> ClosureResult:
        session = self._sessions.get_by_id(int(session_id))
        if not session:
            return ClosureResult(int(session_id), False, 0, "Session not found")
        return self.process_closure(session, now=now)
