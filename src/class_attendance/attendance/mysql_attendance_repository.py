from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

import mysql.connector

from ..common.datetime_utils import as_utc, to_db_utc
from ..core.enums import AttendanceStatus
from ..core.exceptions import DuplicateRecordError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, in_clause, is_duplicate_key
from .model import AttendanceRecord
from .repository import AttendanceRepository


def _to_record(r: dict) -> AttendanceRecord:
    return AttendanceRecord(
        attendance_id=int(r["attendance_id"]),
        session_id=int(r["session_id"]),
        student_id=int(r["student_id"]),
        status=AttendanceStatus(r["status"]),
        marked_at=as_utc(r["marked_at"]),
    )


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_for_session_and_student(self, *, session_id: int, student_id: int) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT attendance_id, session_id, student_id, status, marked_at
                FROM attendance_records
                WHERE session_id=%s AND student_id=%s
                """,
                (int(session_id), int(student_id)),
            )
            r = fetchone(cur)
            return _to_record(r) if r else None

    def create(
        self,
        *,
        session_id: int,
        student_id: int,
        status: AttendanceStatus,
        marked_at: datetime,
    ) -> AttendanceRecord:
        stored_at = to_db_utc(marked_at)
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO attendance_records(session_id, student_id, status, marked_at)
                    VALUES(%s,%s,%s,%s)
                    """,
                    (int(session_id), int(student_id), status.value, stored_at),
                )
                attendance_id = int(cur.lastrowid)
        except mysql.connector.IntegrityError as exc:
            if is_duplicate_key(exc):
                raise DuplicateRecordError("Attendance already marked") from exc
            raise

        return AttendanceRecord(
            attendance_id=attendance_id,
            session_id=int(session_id),
            student_id=int(student_id),
            status=status,
            marked_at=as_utc(stored_at),
        )

    def create_bulk(
        self,
        *,
        session_id: int,
        student_ids: Sequence[int],
        status: AttendanceStatus,
        marked_at: datetime,
    ) -> int:
        if not student_ids:
            return 0
        marked = to_db_utc(marked_at)
        rows = [(int(session_id), int(sid), status.value, marked) for sid in student_ids]
        with db_cursor(self._conn_factory) as (_, cur):
            # No-op update on duplicates: a concurrent closer or a last-second
            # mark keeps its row and is not counted.
            cur.executemany(
                """
                INSERT INTO attendance_records(session_id, student_id, status, marked_at)
                VALUES(%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE attendance_id=attendance_id
                """,
                rows,
            )
            return max(int(cur.rowcount), 0)

    def list_student_ids_for_session(self, session_id: int) -> Sequence[int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT student_id FROM attendance_records WHERE session_id=%s",
                (int(session_id),),
            )
            return [int(r["student_id"]) for r in fetchall(cur)]

    def list_for_session(self, session_id: int) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT attendance_id, session_id, student_id, status, marked_at
                FROM attendance_records
                WHERE session_id=%s
                ORDER BY marked_at ASC
                """,
                (int(session_id),),
            )
            return [_to_record(r) for r in fetchall(cur)]

    def list_for_student(self, student_id: int) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT attendance_id, session_id, student_id, status, marked_at
                FROM attendance_records
                WHERE student_id=%s
                ORDER BY marked_at DESC
                """,
                (int(student_id),),
            )
            return [_to_record(r) for r in fetchall(cur)]

    def count_by_session(self, session_ids: Sequence[int]) -> dict[int, int]:
        if not session_ids:
            return {}
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT session_id, COUNT(*) AS total
                FROM attendance_records
                WHERE session_id IN ({in_clause(session_ids)})
                GROUP BY session_id
                """,
                tuple(int(s) for s in session_ids),
            )
            return {int(r["session_id"]): int(r["total"]) for r in fetchall(cur)}
