from __future__ import annotations

from datetime import date
from typing import Optional, Sequence

import mysql.connector

from ..common.datetime_utils import as_utc, to_db_utc
from ..core.exceptions import DuplicateRecordError, NotFoundError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, in_clause, is_duplicate_key, normalize_mysql_time
from .model import NewSession, Session
from .overlap import overlap_error
from .repository import SessionRepository

_SELECT = """
    SELECT s.session_id, s.class_id, c.course_id, s.session_date, s.start_time, s.end_time,
           s.token, s.expires_at
    FROM sessions s
    JOIN classes c ON c.class_id = s.class_id
"""


def _to_session(r: dict) -> Session:
    return Session(
        session_id=int(r["session_id"]),
        class_id=int(r["class_id"]),
        course_id=int(r["course_id"]),
        session_date=r["session_date"],
        start_time=normalize_mysql_time(r["start_time"]),
        end_time=normalize_mysql_time(r["end_time"]),
        token=r["token"],
        expires_at=as_utc(r["expires_at"]),
    )


class MySQLSessionRepository(SessionRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, session_id: int) -> Optional[Session]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_SELECT + " WHERE s.session_id=%s", (int(session_id),))
            r = fetchone(cur)
            return _to_session(r) if r else None

    def list_for_class_and_date(self, *, class_id: int, session_date: date) -> Sequence[Session]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                _SELECT + " WHERE s.class_id=%s AND s.session_date=%s ORDER BY s.start_time",
                (int(class_id), session_date),
            )
            return [_to_session(r) for r in fetchall(cur)]

    def list_for_classes(self, class_ids: Sequence[int]) -> Sequence[Session]:
        if not class_ids:
            return []
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                _SELECT
                + f" WHERE s.class_id IN ({in_clause(class_ids)})"
                + " ORDER BY s.session_date DESC, s.start_time DESC",
                tuple(int(c) for c in class_ids),
            )
            return [_to_session(r) for r in fetchall(cur)]

    def create(self, new: NewSession) -> Session:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                # Creates for the same class serialize on its row lock, so the
                # overlap re-check sees every committed session of that day.
                cur.execute("SELECT class_id FROM classes WHERE class_id=%s FOR UPDATE", (int(new.class_id),))
                if not fetchone(cur):
                    raise NotFoundError("Class not found")
                cur.execute(
                    _SELECT
                    + " WHERE s.class_id=%s AND s.session_date=%s AND s.start_time < %s AND s.end_time > %s"
                    + " ORDER BY s.start_time FOR UPDATE",
                    (int(new.class_id), new.session_date, new.end_time, new.start_time),
                )
                clashes = [_to_session(r) for r in fetchall(cur)]
                if clashes:
                    raise overlap_error(clashes)

                cur.execute(
                    """
                    INSERT INTO sessions(class_id, session_date, start_time, end_time, token, expires_at)
                    VALUES(%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        int(new.class_id),
                        new.session_date,
                        new.start_time,
                        new.end_time,
                        new.token,
                        to_db_utc(new.expires_at),
                    ),
                )
                session_id = int(cur.lastrowid)
        except mysql.connector.IntegrityError as exc:
            if is_duplicate_key(exc):
                raise DuplicateRecordError("Session token already exists") from exc
            raise

        created = self.get_by_id(session_id)
        if not created:
            raise NotFoundError("Session not found after insert")
        return created
