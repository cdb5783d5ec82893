from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import AttendanceStatus
from .model import AttendanceRecord


class AttendanceRepository(Protocol):
    def get_for_session_and_student(self, *, session_id: int, student_id: int) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def create(
        self,
        *,
        session_id: int,
        student_id: int,
        status: AttendanceStatus,
        marked_at: datetime,
    ) -> AttendanceRecord:
        """Insert one record.

        Raises DuplicateRecordError when (session_id, student_id) already exists.
        """

        raise NotImplementedError

    def create_bulk(
        self,
        *,
        session_id: int,
        student_ids: Sequence[int],
        status: AttendanceStatus,
        marked_at: datetime,
    ) -> int:
        """Insert one record per student, skipping students that already have one.

        Returns the number of rows actually inserted.
        """

        raise NotImplementedError

    def list_student_ids_for_session(self, session_id: int) -> Sequence[int]:
        raise NotImplementedError

    def list_for_session(self, session_id: int) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def list_for_student(self, student_id: int) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def count_by_session(self, session_ids: Sequence[int]) -> dict[int, int]:
        raise NotImplementedError
