from datetime import date, time, timezone, datetime

import pytest

from class_attendance.core.enums import Role
from class_attendance.core.exceptions import (
    AuthorizationError,
    InvalidTimeRangeError,
    NotFoundError,
    PastStartError,
    SessionOverlapError,
)
from class_attendance.sessions.overlap import OverlapCheck
from class_attendance.sessions.service import SessionService, generate_session_token

DAY = date(2026, 3, 2)


def test_end_before_start_is_rejected_and_nothing_is_persisted(store, at):
    with pytest.raises(InvalidTimeRangeError):
        store.container.session_service.create_session(
            delegate_id=7,
            class_id=store.course_class.class_id,
            session_date=DAY,
            start_time=time(9, 0),
            end_time=time(8, 0),
            now=at(6, 0),
        )

    assert store.sessions.create_calls == 0


def test_start_in_the_past_is_rejected(store, at):
    with pytest.raises(PastStartError):
        store.container.session_service.create_session(
            delegate_id=7,
            class_id=store.course_class.class_id,
            session_date=DAY,
            start_time=time(8, 0),
            end_time=time(10, 0),
            now=at(8, 0),
        )
    assert store.sessions.create_calls == 0


def test_ordering_is_checked_before_past_start(store, at):
    with pytest.raises(InvalidTimeRangeError):
        store.container.session_service.create_session(
            delegate_id=7,
            class_id=store.course_class.class_id,
            session_date=DAY,
            start_time=time(9, 0),
            end_time=time(8, 0),
            now=at(12, 0),
        )


def test_overlap_is_rejected_with_conflicting_sessions(store, at):
    existing = store.add_session(time(8, 0), time(10, 0))

    with pytest.raises(SessionOverlapError) as exc:
        store.container.session_service.create_session(
            delegate_id=7,
            class_id=store.course_class.class_id,
            session_date=DAY,
            start_time=time(9, 30),
            end_time=time(11, 0),
            now=at(6, 0),
        )

    assert "08:00" in str(exc.value)
    assert [s.session_id for s in exc.value.conflicting] == [existing.session_id]


def test_created_session_has_token_and_expiry_at_end(store, at):
    created = store.container.session_service.create_session(
        delegate_id=7,
        class_id=store.course_class.class_id,
        session_date=DAY,
        start_time=time(10, 0),
        end_time=time(12, 0),
        now=at(6, 0),
    )

    assert len(created.token) >= 20
    assert created.token.isalnum()
    assert created.expires_at == datetime(2026, 3, 2, 11, 0, tzinfo=timezone.utc)
    assert created.course_id == 101


def test_tokens_are_unique():
    tokens = {generate_session_token() for _ in range(200)}
    assert len(tokens) == 200


def test_other_delegate_cannot_schedule_for_class(store, at):
    with pytest.raises(AuthorizationError):
        store.container.session_service.create_session(
            delegate_id=8,
            class_id=store.course_class.class_id,
            session_date=DAY,
            start_time=time(10, 0),
            end_time=time(12, 0),
            now=at(6, 0),
        )


def test_admin_may_schedule_for_any_class(store, at):
    created = store.container.session_service.create_session(
        delegate_id=1000,
        class_id=store.course_class.class_id,
        session_date=DAY,
        start_time=time(10, 0),
        end_time=time(12, 0),
        current_role=Role.ADMIN,
        now=at(6, 0),
    )
    assert created.session_id


def test_unknown_class_is_not_found(store, at):
    with pytest.raises(NotFoundError):
        store.container.session_service.create_session(
            delegate_id=7,
            class_id=999,
            session_date=DAY,
            start_time=time(10, 0),
            end_time=time(12, 0),
            now=at(6, 0),
        )


def test_create_for_course_reuses_existing_class(store, at):
    created = store.container.session_service.create_session_for_course(
        delegate_id=7,
        course_id=101,
        session_date=DAY,
        start_time=time(10, 0),
        end_time=time(12, 0),
        now=at(6, 0),
    )
    assert created.class_id == store.course_class.class_id


def test_create_for_course_creates_class_named_after_course(store, at):
    created = store.container.session_service.create_session_for_course(
        delegate_id=8,
        course_id=202,
        session_date=DAY,
        start_time=time(10, 0),
        end_time=time(12, 0),
        now=at(6, 0),
    )

    course_class = store.classes.get_by_id(created.class_id)
    assert course_class.class_name == "Databases"
    assert course_class.delegate_id == 8


def test_create_for_course_still_checks_overlap(store, at):
    store.add_session(time(8, 0), time(10, 0))

    with pytest.raises(SessionOverlapError):
        store.container.session_service.create_session_for_course(
            delegate_id=7,
            course_id=101,
            session_date=DAY,
            start_time=time(9, 0),
            end_time=time(9, 30),
            now=at(6, 0),
        )


def test_token_collision_retries_with_fresh_token(store, at):
    store.add_session(time(8, 0), time(9, 0), token="A" * 32)
    tokens = iter(["A" * 32, "B" * 32])
    service = SessionService(store.sessions, store.classes, token_factory=lambda: next(tokens))

    created = service.create_session(
        delegate_id=7,
        class_id=store.course_class.class_id,
        session_date=DAY,
        start_time=time(10, 0),
        end_time=time(12, 0),
        now=at(6, 0),
    )

    assert created.token == "B" * 32


def test_get_owned_session_checks_owner(store):
    s = store.add_session()
    service = store.container.session_service

    assert service.get_owned_session(delegate_id=7, session_id=s.session_id) == s
    with pytest.raises(AuthorizationError):
        service.get_owned_session(delegate_id=8, session_id=s.session_id)
    with pytest.raises(AuthorizationError):
        service.get_owned_session(delegate_id=7, session_id=s.session_id, current_role=Role.STUDENT)
    with pytest.raises(NotFoundError):
        service.get_owned_session(delegate_id=7, session_id=404)


class _StaleOverlapView:
    """Sees the store as it was before a concurrent create committed."""

    def check(self, **kwargs):
        return OverlapCheck(has_overlap=False)


def test_store_rejects_overlap_committed_after_the_pre_check(store, at):
    committed = store.add_session(time(8, 0), time(10, 0))
    service = SessionService(store.sessions, store.classes, overlap=_StaleOverlapView())

    with pytest.raises(SessionOverlapError) as exc:
        service.create_session(
            delegate_id=7,
            class_id=store.course_class.class_id,
            session_date=DAY,
            start_time=time(9, 0),
            end_time=time(11, 0),
            now=at(6, 0),
        )

    assert [s.session_id for s in exc.value.conflicting] == [committed.session_id]
    assert len(store.sessions.list_for_class_and_date(class_id=store.course_class.class_id, session_date=DAY)) == 1
