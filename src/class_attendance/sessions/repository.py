from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence

from .model import NewSession, Session


class SessionRepository(Protocol):
    def get_by_id(self, session_id: int) -> Optional[Session]:
        raise NotImplementedError

    def list_for_class_and_date(self, *, class_id: int, session_date: date) -> Sequence[Session]:
        raise NotImplementedError

    def list_for_classes(self, class_ids: Sequence[int]) -> Sequence[Session]:
        """Sessions of the given classes, most recent date first."""

        raise NotImplementedError

    def create(self, new: NewSession) -> Session:
        """Insert a session.

        Raises DuplicateRecordError when the token is already taken and
        SessionOverlapError when a session of the same class and date
        committed first overlaps it.
        """

        raise NotImplementedError
