from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CourseClass:
    """A course taught by one delegate; sessions are scheduled per class."""

    class_id: int
    class_name: str
    course_id: int
    delegate_id: int
