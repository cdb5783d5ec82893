from __future__ import annotations

import logging
import secrets
import string
from datetime import date, datetime, time
from typing import Callable, Optional

from ..common.datetime_utils import local_to_utc, now_utc
from ..core.constants import SESSION_TOKEN_ATTEMPTS, SESSION_TOKEN_LENGTH
from ..core.enums import Role, SessionStatus
from ..core.exceptions import (
    AuthorizationError,
    DuplicateRecordError,
    InvalidTimeRangeError,
    NotFoundError,
    PastStartError,
)
from ..courses.model import CourseClass
from ..courses.repository import ClassRepository
from .model import NewSession, Session
from .overlap import OverlapValidator, overlap_error
from .repository import SessionRepository
from .status import window_status

logger = logging.getLogger(__name__)

_TOKEN_ALPHABET = string.ascii_letters + string.digits


def generate_session_token(length: int = SESSION_TOKEN_LENGTH) -> str:
    """Unguessable alphanumeric token (62 symbols per character)."""
    return "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(length))


class SessionService:
    """Schedules sessions after validating ordering, start time and overlap."""

    def __init__(
        self,
        sessions: SessionRepository,
        classes: ClassRepository,
        *,
        overlap: OverlapValidator | None = None,
        token_factory: Callable[[], str] = generate_session_token,
    ):
        self._sessions = sessions
        self._classes = classes
        self._overlap = overlap or OverlapValidator(sessions)
        self._token_factory = token_factory

    def create_session(
        self,
        *,
        delegate_id: int,
        class_id: int,
        session_date: date,
        start_time: time,
        end_time: time,
        current_role: Role = Role.DELEGATE,
        now: datetime | None = None,
    ) -> Session:
        course_class = self._classes.get_by_id(int(class_id))
        if not course_class:
            raise NotFoundError("Class not found")
        self._require_owner(course_class, delegate_id=delegate_id, current_role=current_role)

        self._validate_window(session_date, start_time, end_time, now=now or now_utc())
        self._require_no_overlap(course_class.class_id, session_date, start_time, end_time)
        return self._insert(course_class, session_date, start_time, end_time)

    def create_session_for_course(
        self,
        *,
        delegate_id: int,
        course_id: int,
        session_date: date,
        start_time: time,
        end_time: time,
        now: datetime | None = None,
    ) -> Session:
        """Create a session for the delegate's class of a course.

        The class is created on the first request for a (course, delegate)
        pair; a brand-new class has no sessions to overlap with.
        """

        self._validate_window(session_date, start_time, end_time, now=now or now_utc())

        course_class = self._classes.find_for_course_and_delegate(course_id=int(course_id), delegate_id=int(delegate_id))
        if course_class:
            self._require_no_overlap(course_class.class_id, session_date, start_time, end_time)
        else:
            course_class = self._classes.create(course_id=int(course_id), delegate_id=int(delegate_id))
            logger.info("Created class %s for course %s / delegate %s", course_class.class_id, course_id, delegate_id)

        return self._insert(course_class, session_date, start_time, end_time)

    def get_owned_session(self, *, delegate_id: int, session_id: int, current_role: Role = Role.DELEGATE) -> Session:
        session = self._sessions.get_by_id(int(session_id))
        if not session:
            raise NotFoundError("Session not found")
        course_class = self._classes.get_by_id(session.class_id)
        if not course_class:
            raise NotFoundError("Class not found")
        self._require_owner(course_class, delegate_id=delegate_id, current_role=current_role)
        return session

    @staticmethod
    def _require_owner(course_class: CourseClass, *, delegate_id: int, current_role: Role) -> None:
        if current_role == Role.ADMIN:
            return
        if current_role != Role.DELEGATE or course_class.delegate_id != int(delegate_id):
            raise AuthorizationError("You do not manage this class")

    @staticmethod
    def _validate_window(session_date: date, start_time: time, end_time: time, *, now: datetime) -> None:
        if start_time >= end_time:
            raise InvalidTimeRangeError("End time must be after start time")

        starts_at = local_to_utc(session_date, start_time)
        ends_at = local_to_utc(session_date, end_time)
        if window_status(starts_at, ends_at, now) != SessionStatus.SCHEDULED:
            raise PastStartError("Session start time cannot be in the past")

    def _require_no_overlap(self, class_id: int, session_date: date, start_time: time, end_time: time) -> None:
        check = self._overlap.check(
            class_id=class_id,
            session_date=session_date,
            start_time=start_time,
            end_time=end_time,
        )
        if check.has_overlap:
            raise overlap_error(check.conflicting)

    def _insert(self, course_class: CourseClass, session_date: date, start_time: time, end_time: time) -> Session:
        expires_at = local_to_utc(session_date, end_time)
        last_error: Optional[DuplicateRecordError] = None

        for _ in range(SESSION_TOKEN_ATTEMPTS):
            try:
                session = self._sessions.create(
                    NewSession(
                        class_id=course_class.class_id,
                        session_date=session_date,
                        start_time=start_time,
                        end_time=end_time,
                        token=self._token_factory(),
                        expires_at=expires_at,
                    )
                )
            except DuplicateRecordError as exc:
                last_error = exc
                logger.warning("Session token collision for class %s, retrying", course_class.class_id)
                continue

            logger.info(
                "Created session %s for class %s on %s %s-%s",
                session.session_id,
                course_class.class_id,
                session_date.isoformat(),
                start_time.strftime("%H:%M"),
                end_time.strftime("%H:%M"),
            )
            return session

        raise last_error or DuplicateRecordError("Could not allocate a session token")
