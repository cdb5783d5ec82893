from datetime import date, datetime, time, timedelta, timezone
from pathlib import Path

import mysql.connector
import pytest
from mysql.connector import errorcode

import class_attendance
from class_attendance.attendance.mysql_attendance_repository import MySQLAttendanceRepository
from class_attendance.core.enums import AttendanceStatus
from class_attendance.core.exceptions import DuplicateRecordError, SessionOverlapError
from class_attendance.database.bootstrap import SCHEMA_PATH, _iter_sql_statements, _strip_create_db_and_use
from class_attendance.database.mysql_base import is_duplicate_key, normalize_mysql_time
from class_attendance.sessions.model import NewSession
from class_attendance.sessions.mysql_session_repository import MySQLSessionRepository


class FakeCursor:
    def __init__(self, error=None):
        self._error = error
        self.lastrowid = 42
        self.rowcount = 0
        self.executed = []

    def execute(self, sql, params=None):
        self.executed.append((sql, params))
        if self._error is not None:
            raise self._error

    def executemany(self, sql, rows):
        self.executed.append((sql, rows))
        self.rowcount = len(rows)

    def close(self):
        pass


class FakeConnection:
    def __init__(self, cursor):
        self._cursor = cursor
        self.committed = False
        self.rolled_back = False
        self.closed = False

    def cursor(self, dictionary=False):
        return self._cursor

    def commit(self):
        self.committed = True

    def rollback(self):
        self.rolled_back = True

    def close(self):
        self.closed = True


class FakeConnFactory:
    def __init__(self, cursor):
        self.connection = FakeConnection(cursor)

    def connect(self, *, with_database=True):
        return self.connection


def _dup_error():
    return mysql.connector.IntegrityError(msg="Duplicate entry", errno=errorcode.ER_DUP_ENTRY)


def test_schema_splits_into_statements_without_database_selection():
    sql = _strip_create_db_and_use(SCHEMA_PATH.read_text(encoding="utf-8"))
    statements = [
        "\n".join(line for line in stmt.splitlines() if not line.strip().startswith("--")).strip()
        for stmt in _iter_sql_statements(sql)
    ]

    assert not any(s.upper().startswith(("CREATE DATABASE", "USE ")) for s in statements)
    tables = [s for s in statements if s.upper().startswith("CREATE TABLE")]
    assert len(tables) == 6
    assert any("UNIQUE" in s and "session_id" in s and "student_id" in s for s in tables)


def test_schema_ships_inside_the_package():
    package_dir = Path(class_attendance.__file__).resolve().parent

    assert SCHEMA_PATH.is_file()
    assert package_dir in SCHEMA_PATH.resolve().parents


def test_splitter_keeps_semicolons_inside_quotes():
    assert list(_iter_sql_statements("SELECT 'a;b'; SELECT 2;")) == ["SELECT 'a;b'", "SELECT 2"]


@pytest.mark.parametrize(
    "value, expected",
    [
        (time(8, 30), time(8, 30)),
        (timedelta(hours=8, minutes=30), time(8, 30)),
        ("08:30:00", time(8, 30)),
        (None, None),
    ],
)
def test_normalize_mysql_time(value, expected):
    assert normalize_mysql_time(value) == expected


def test_is_duplicate_key_only_for_dup_entry():
    assert is_duplicate_key(_dup_error())
    assert not is_duplicate_key(mysql.connector.IntegrityError(msg="fk", errno=errorcode.ER_NO_REFERENCED_ROW_2))
    assert not is_duplicate_key(ValueError("x"))


def test_create_translates_duplicate_key_and_rolls_back():
    factory = FakeConnFactory(FakeCursor(error=_dup_error()))
    repo = MySQLAttendanceRepository(factory)

    with pytest.raises(DuplicateRecordError):
        repo.create(
            session_id=1,
            student_id=2,
            status=AttendanceStatus.PRESENT,
            marked_at=datetime(2026, 3, 2, 7, 5, tzinfo=timezone.utc),
        )

    assert factory.connection.rolled_back is True
    assert factory.connection.closed is True


def test_create_stores_naive_utc_and_commits():
    cursor = FakeCursor()
    factory = FakeConnFactory(cursor)
    repo = MySQLAttendanceRepository(factory)

    record = repo.create(
        session_id=1,
        student_id=2,
        status=AttendanceStatus.LATE,
        marked_at=datetime(2026, 3, 2, 8, 20, tzinfo=timezone(timedelta(hours=1))),
    )

    _, params = cursor.executed[0]
    assert params == (1, 2, "late", datetime(2026, 3, 2, 7, 20))
    assert record.attendance_id == 42
    assert factory.connection.committed is True


def test_create_bulk_is_duplicate_tolerant():
    cursor = FakeCursor()
    repo = MySQLAttendanceRepository(FakeConnFactory(cursor))

    inserted = repo.create_bulk(
        session_id=1,
        student_ids=[1, 2],
        status=AttendanceStatus.ABSENT,
        marked_at=datetime(2026, 3, 2, 9, 5, tzinfo=timezone.utc),
    )

    sql, rows = cursor.executed[0]
    assert "ON DUPLICATE KEY UPDATE" in sql
    assert [r[2] for r in rows] == ["absent", "absent"]
    assert inserted == 2
    assert repo.create_bulk(session_id=1, student_ids=[], status=AttendanceStatus.ABSENT, marked_at=datetime.now(timezone.utc)) == 0


def test_create_returns_the_instant_as_stored():
    cursor = FakeCursor()
    repo = MySQLAttendanceRepository(FakeConnFactory(cursor))

    record = repo.create(
        session_id=1,
        student_id=3,
        status=AttendanceStatus.PRESENT,
        marked_at=datetime(2026, 3, 2, 7, 5, 9, 987654, tzinfo=timezone.utc),
    )

    _, params = cursor.executed[0]
    assert params[3] == datetime(2026, 3, 2, 7, 5, 9)
    assert record.marked_at == datetime(2026, 3, 2, 7, 5, 9, tzinfo=timezone.utc)
    assert record.marked_at.isoformat() == "2026-03-02T07:05:09+00:00"


class ScriptedCursor(FakeCursor):
    def __init__(self, one=(), many=()):
        super().__init__()
        self._one = list(one)
        self._many = list(many)

    def fetchone(self):
        return self._one.pop(0) if self._one else None

    def fetchall(self):
        return self._many.pop(0) if self._many else []


def _new_session(start, end):
    return NewSession(
        class_id=1,
        session_date=date(2026, 3, 2),
        start_time=start,
        end_time=end,
        token="T" * 32,
        expires_at=datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc),
    )


def test_session_create_locks_class_and_rejects_committed_overlap():
    clash = {
        "session_id": 5,
        "class_id": 1,
        "course_id": 101,
        "session_date": date(2026, 3, 2),
        "start_time": timedelta(hours=8),
        "end_time": timedelta(hours=10),
        "token": "X" * 32,
        "expires_at": datetime(2026, 3, 2, 9, 0),
    }
    cursor = ScriptedCursor(one=[{"class_id": 1}], many=[[clash]])
    factory = FakeConnFactory(cursor)

    with pytest.raises(SessionOverlapError) as exc:
        MySQLSessionRepository(factory).create(_new_session(time(9, 0), time(11, 0)))

    lock_sql, _ = cursor.executed[0]
    assert "FOR UPDATE" in lock_sql
    assert not any("INSERT" in sql for sql, _ in cursor.executed)
    assert [s.session_id for s in exc.value.conflicting] == [5]
    assert factory.connection.rolled_back is True
