from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import CourseClass


class ClassRepository(Protocol):
    def get_by_id(self, class_id: int) -> Optional[CourseClass]:
        raise NotImplementedError

    def find_for_course_and_delegate(self, *, course_id: int, delegate_id: int) -> Optional[CourseClass]:
        raise NotImplementedError

    def create(self, *, course_id: int, delegate_id: int) -> CourseClass:
        """Create a class named after the course title.

        Raises NotFoundError when the course does not exist.
        """

        raise NotImplementedError

    def list_for_delegate(self, delegate_id: int) -> Sequence[CourseClass]:
        raise NotImplementedError

    def list_for_courses(self, course_ids: Sequence[int]) -> Sequence[CourseClass]:
        raise NotImplementedError


class EnrollmentRepository(Protocol):
    """Read-only view of enrollments."""

    def is_enrolled(self, *, student_id: int, course_id: int) -> bool:
        raise NotImplementedError

    def list_student_ids_for_course(self, course_id: int) -> Sequence[int]:
        raise NotImplementedError

    def list_course_ids_for_student(self, student_id: int) -> Sequence[int]:
        raise NotImplementedError
