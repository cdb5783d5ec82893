from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .attendance.factory import AttendanceStrategyFactory
from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.repository import AttendanceRepository
from .attendance.service import AttendanceService
from .closure.service import ClosureService
from .core.constants import LATE_WINDOW_MINUTES
from .courses.mysql_course_repository import MySQLClassRepository, MySQLEnrollmentRepository
from .courses.repository import ClassRepository, EnrollmentRepository
from .database.connection import DBConfig, DatabaseConnection
from .sessions.mysql_session_repository import MySQLSessionRepository
from .sessions.queries import SessionQueryService
from .sessions.repository import SessionRepository
from .sessions.service import SessionService


@dataclass(frozen=True)
class Container:
    conn: Optional[DatabaseConnection]

    sessions_repo: SessionRepository
    classes_repo: ClassRepository
    enrollments_repo: EnrollmentRepository
    attendance_repo: AttendanceRepository

    session_service: SessionService
    attendance_service: AttendanceService
    closure_service: ClosureService
    query_service: SessionQueryService


def assemble_container(
    *,
    sessions_repo: SessionRepository,
    classes_repo: ClassRepository,
    enrollments_repo: EnrollmentRepository,
    attendance_repo: AttendanceRepository,
    conn: Optional[DatabaseConnection] = None,
    late_window_minutes: int = LATE_WINDOW_MINUTES,
) -> Container:
    """Wire services over any set of repositories (MySQL or in-memory)."""
    factory = AttendanceStrategyFactory()

    session_service = SessionService(sessions_repo, classes_repo)
    attendance_service = AttendanceService(
        attendance_repo,
        sessions_repo,
        enrollments_repo,
        strategy_factory=factory,
        late_window_minutes=late_window_minutes,
    )
    closure_service = ClosureService(attendance_repo, sessions_repo, enrollments_repo, strategy_factory=factory)
    query_service = SessionQueryService(sessions_repo, classes_repo, enrollments_repo, attendance_repo)

    return Container(
        conn=conn,
        sessions_repo=sessions_repo,
        classes_repo=classes_repo,
        enrollments_repo=enrollments_repo,
        attendance_repo=attendance_repo,
        session_service=session_service,
        attendance_service=attendance_service,
        closure_service=closure_service,
        query_service=query_service,
    )


def build_container(*, db_config: dict, late_window_minutes: int = LATE_WINDOW_MINUTES) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config))

    return assemble_container(
        conn=conn,
        sessions_repo=MySQLSessionRepository(conn),
        classes_repo=MySQLClassRepository(conn),
        enrollments_repo=MySQLEnrollmentRepository(conn),
        attendance_repo=MySQLAttendanceRepository(conn),
        late_window_minutes=late_window_minutes,
    )
