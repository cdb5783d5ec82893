from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import date, datetime, time

import pytest

from class_attendance.attendance.model import AttendanceRecord
from class_attendance.common.datetime_utils import LOCAL_TZ, local_to_utc
from class_attendance.container import Container, assemble_container
from class_attendance.core.exceptions import DuplicateRecordError, NotFoundError
from class_attendance.courses.model import CourseClass
from class_attendance.sessions.model import NewSession, Session
from class_attendance.sessions.overlap import intervals_overlap, overlap_error

DAY = date(2026, 3, 2)

COURSE_ID = 101
DELEGATE_ID = 7
OTHER_DELEGATE_ID = 8
ENROLLED = (1, 2, 3)
OUTSIDER = 9


class FakeClassRepo:
    def __init__(self):
        self._next_id = 1
        self.courses: dict[int, str] = {}
        self._rows: dict[int, CourseClass] = {}

    def add_course(self, course_id, title):
        self.courses[int(course_id)] = title

    def add_class(self, *, course_id, delegate_id):
        return self.create(course_id=course_id, delegate_id=delegate_id)

    def get_by_id(self, class_id):
        return self._rows.get(int(class_id))

    def find_for_course_and_delegate(self, *, course_id, delegate_id):
        for c in self._rows.values():
            if c.course_id == int(course_id) and c.delegate_id == int(delegate_id):
                return c
        return None

    def create(self, *, course_id, delegate_id):
        if int(course_id) not in self.courses:
            raise NotFoundError("Course not found")
        cid = self._next_id
        self._next_id += 1
        self._rows[cid] = CourseClass(
            class_id=cid,
            class_name=self.courses[int(course_id)],
            course_id=int(course_id),
            delegate_id=int(delegate_id),
        )
        return self._rows[cid]

    def list_for_delegate(self, delegate_id):
        return [c for c in self._rows.values() if c.delegate_id == int(delegate_id)]

    def list_for_courses(self, course_ids):
        wanted = {int(c) for c in course_ids}
        return [c for c in self._rows.values() if c.course_id in wanted]


class FakeEnrollmentRepo:
    def __init__(self):
        self._pairs: set[tuple[int, int]] = set()

    def enroll(self, student_id, course_id):
        self._pairs.add((int(student_id), int(course_id)))

    def is_enrolled(self, *, student_id, course_id):
        return (int(student_id), int(course_id)) in self._pairs

    def list_student_ids_for_course(self, course_id):
        return sorted(s for s, c in self._pairs if c == int(course_id))

    def list_course_ids_for_student(self, student_id):
        return sorted(c for s, c in self._pairs if s == int(student_id))


class FakeSessionRepo:
    def __init__(self, classes: FakeClassRepo):
        self._classes = classes
        self._next_id = 1
        self._rows: dict[int, Session] = {}
        self.create_calls = 0

    def get_by_id(self, session_id):
        return self._rows.get(int(session_id))

    def list_for_class_and_date(self, *, class_id, session_date):
        return [s for s in self._rows.values() if s.class_id == int(class_id) and s.session_date == session_date]

    def list_for_classes(self, class_ids):
        wanted = {int(c) for c in class_ids}
        rows = [s for s in self._rows.values() if s.class_id in wanted]
        return sorted(rows, key=lambda s: (s.session_date, s.start_time), reverse=True)

    def create(self, new: NewSession):
        self.create_calls += 1
        if any(s.token == new.token for s in self._rows.values()):
            raise DuplicateRecordError("Duplicate session token")
        clashes = [
            s
            for s in self.list_for_class_and_date(class_id=new.class_id, session_date=new.session_date)
            if intervals_overlap(new.start_time, new.end_time, s.start_time, s.end_time)
        ]
        if clashes:
            raise overlap_error(clashes)
        sid = self._next_id
        self._next_id += 1
        self._rows[sid] = Session(
            session_id=sid,
            class_id=new.class_id,
            course_id=self._classes.get_by_id(new.class_id).course_id,
            session_date=new.session_date,
            start_time=new.start_time,
            end_time=new.end_time,
            token=new.token,
            expires_at=new.expires_at,
        )
        return self._rows[sid]


class FakeAttendanceRepo:
    """Enforces the (session_id, student_id) uniqueness constraint atomically."""

    def __init__(self):
        self._lock = threading.Lock()
        self._next_id = 1
        self._rows: dict[tuple[int, int], AttendanceRecord] = {}
        self.bulk_calls = 0

    def _insert(self, session_id, student_id, status, marked_at):
        rec = AttendanceRecord(
            attendance_id=self._next_id,
            session_id=int(session_id),
            student_id=int(student_id),
            status=status,
            marked_at=marked_at,
        )
        self._next_id += 1
        self._rows[(int(session_id), int(student_id))] = rec
        return rec

    def get_for_session_and_student(self, *, session_id, student_id):
        return self._rows.get((int(session_id), int(student_id)))

    def create(self, *, session_id, student_id, status, marked_at):
        with self._lock:
            if (int(session_id), int(student_id)) in self._rows:
                raise DuplicateRecordError("Duplicate attendance")
            return self._insert(session_id, student_id, status, marked_at)

    def create_bulk(self, *, session_id, student_ids, status, marked_at):
        with self._lock:
            self.bulk_calls += 1
            inserted = 0
            for sid in student_ids:
                if (int(session_id), int(sid)) in self._rows:
                    continue
                self._insert(session_id, sid, status, marked_at)
                inserted += 1
            return inserted

    def list_student_ids_for_session(self, session_id):
        return [k[1] for k in self._rows if k[0] == int(session_id)]

    def list_for_session(self, session_id):
        return [r for k, r in self._rows.items() if k[0] == int(session_id)]

    def list_for_student(self, student_id):
        return [r for k, r in self._rows.items() if k[1] == int(student_id)]

    def count_by_session(self, session_ids):
        counts: dict[int, int] = {}
        for sid, _ in self._rows:
            if sid in set(session_ids):
                counts[sid] = counts.get(sid, 0) + 1
        return counts


@dataclass
class Store:
    classes: FakeClassRepo
    enrollments: FakeEnrollmentRepo
    sessions: FakeSessionRepo
    attendance: FakeAttendanceRepo
    course_class: CourseClass
    container: Container

    def add_session(self, start=time(8, 0), end=time(10, 0), *, session_date=DAY, token=None, class_id=None):
        """Insert a session directly, skipping scheduling validation."""
        class_id = class_id or self.course_class.class_id
        return self.sessions.create(
            NewSession(
                class_id=class_id,
                session_date=session_date,
                start_time=start,
                end_time=end,
                token=token or f"token-{self.sessions._next_id:02d}-abcdefghijklmnopqrst",
                expires_at=local_to_utc(session_date, end),
            )
        )


def local(hour: int, minute: int = 0, *, day: date = DAY) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=LOCAL_TZ)


@pytest.fixture()
def at():
    """Instants on the test day, in local civil time."""
    return local


@pytest.fixture()
def fixed_now():
    return local(8, 5)


@pytest.fixture()
def store() -> Store:
    classes = FakeClassRepo()
    classes.add_course(COURSE_ID, "Algorithms")
    classes.add_course(202, "Databases")
    course_class = classes.add_class(course_id=COURSE_ID, delegate_id=DELEGATE_ID)

    enrollments = FakeEnrollmentRepo()
    for student_id in ENROLLED:
        enrollments.enroll(student_id, COURSE_ID)

    sessions = FakeSessionRepo(classes)
    attendance = FakeAttendanceRepo()
    container = assemble_container(
        sessions_repo=sessions,
        classes_repo=classes,
        enrollments_repo=enrollments,
        attendance_repo=attendance,
    )
    return Store(
        classes=classes,
        enrollments=enrollments,
        sessions=sessions,
        attendance=attendance,
        course_class=course_class,
        container=container,
    )
