from __future__ import annotations

from typing import Optional, Sequence

import mysql.connector

from ..core.exceptions import NotFoundError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, in_clause, is_duplicate_key
from .model import CourseClass
from .repository import ClassRepository, EnrollmentRepository


def _to_class(r: dict) -> CourseClass:
    return CourseClass(
        class_id=int(r["class_id"]),
        class_name=r["class_name"],
        course_id=int(r["course_id"]),
        delegate_id=int(r["delegate_id"]),
    )


class MySQLClassRepository(ClassRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, class_id: int) -> Optional[CourseClass]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT class_id, class_name, course_id, delegate_id FROM classes WHERE class_id=%s",
                (int(class_id),),
            )
            r = fetchone(cur)
            return _to_class(r) if r else None

    def find_for_course_and_delegate(self, *, course_id: int, delegate_id: int) -> Optional[CourseClass]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT class_id, class_name, course_id, delegate_id
                FROM classes
                WHERE course_id=%s AND delegate_id=%s
                """,
                (int(course_id), int(delegate_id)),
            )
            r = fetchone(cur)
            return _to_class(r) if r else None

    def create(self, *, course_id: int, delegate_id: int) -> CourseClass:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute("SELECT course_title FROM courses WHERE course_id=%s", (int(course_id),))
                course = fetchone(cur)
                if not course:
                    raise NotFoundError("Course not found")
                cur.execute(
                    "INSERT INTO classes(class_name, course_id, delegate_id) VALUES(%s,%s,%s)",
                    (course["course_title"], int(course_id), int(delegate_id)),
                )
                return CourseClass(
                    class_id=int(cur.lastrowid),
                    class_name=course["course_title"],
                    course_id=int(course_id),
                    delegate_id=int(delegate_id),
                )
        except mysql.connector.IntegrityError as exc:
            # Another request created the same (course, delegate) class first.
            if not is_duplicate_key(exc):
                raise
        existing = self.find_for_course_and_delegate(course_id=course_id, delegate_id=delegate_id)
        if not existing:
            raise NotFoundError("Class not found")
        return existing

    def list_for_delegate(self, delegate_id: int) -> Sequence[CourseClass]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT class_id, class_name, course_id, delegate_id
                FROM classes
                WHERE delegate_id=%s
                ORDER BY class_id
                """,
                (int(delegate_id),),
            )
            return [_to_class(r) for r in fetchall(cur)]

    def list_for_courses(self, course_ids: Sequence[int]) -> Sequence[CourseClass]:
        if not course_ids:
            return []
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT class_id, class_name, course_id, delegate_id
                FROM classes
                WHERE course_id IN ({in_clause(course_ids)})
                ORDER BY class_id
                """,
                tuple(int(c) for c in course_ids),
            )
            return [_to_class(r) for r in fetchall(cur)]


class MySQLEnrollmentRepository(EnrollmentRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def is_enrolled(self, *, student_id: int, course_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT 1 AS ok FROM enrollments WHERE student_id=%s AND course_id=%s",
                (int(student_id), int(course_id)),
            )
            return fetchone(cur) is not None

    def list_student_ids_for_course(self, course_id: int) -> Sequence[int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT student_id FROM enrollments WHERE course_id=%s ORDER BY student_id",
                (int(course_id),),
            )
            return [int(r["student_id"]) for r in fetchall(cur)]

    def list_course_ids_for_student(self, student_id: int) -> Sequence[int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT course_id FROM enrollments WHERE student_id=%s ORDER BY course_id",
                (int(student_id),),
            )
            return [int(r["course_id"]) for r in fetchall(cur)]
