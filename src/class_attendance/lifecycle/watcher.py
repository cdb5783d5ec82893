from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler

from ..closure.service import ClosureResult, ClosureService
from ..common.datetime_utils import as_utc, now_utc
from ..core.constants import DEFAULT_REFRESH_SECONDS, DEFAULT_STATUS_POLL_SECONDS
from ..core.enums import SessionStatus
from ..sessions.queries import SessionBuckets, SessionQueryService

logger = logging.getLogger(__name__)

BucketLoader = Callable[[datetime], SessionBuckets]


class LifecycleWatcher:
    """Keeps a caller's sessions bucketed by status and triggers closure.

    A session observed crossing into CLOSED is handed to the closure service
    once per watcher. Other watchers may do the same for the same session;
    closure is idempotent, so the local seen-set only saves work.
    """

    def __init__(
        self,
        loader: BucketLoader,
        closure: ClosureService,
        *,
        clock: Callable[[], datetime] = now_utc,
        status_interval: int = DEFAULT_STATUS_POLL_SECONDS,
        refresh_interval: int = DEFAULT_REFRESH_SECONDS,
        close_stale_on_load: bool = False,
        scheduler: Optional[BaseScheduler] = None,
    ):
        self._loader = loader
        self._closure = closure
        self._clock = clock
        self._status_interval = int(status_interval)
        self._refresh_interval = int(refresh_interval)
        self._close_stale_on_load = close_stale_on_load
        self._scheduler = scheduler

        self._lock = threading.RLock()
        self._buckets = SessionBuckets()
        self._known: dict[int, SessionStatus] = {}
        self._pending: set[int] = set()
        self._closed_seen: set[int] = set()
        self._last_update: Optional[datetime] = None

    @classmethod
    def for_student(cls, queries: SessionQueryService, closure: ClosureService, student_id: int, **kwargs) -> "LifecycleWatcher":
        return cls(lambda now: queries.sessions_by_status_for_student(student_id, now=now), closure, **kwargs)

    @classmethod
    def for_delegate(cls, queries: SessionQueryService, closure: ClosureService, delegate_id: int, **kwargs) -> "LifecycleWatcher":
        return cls(lambda now: queries.sessions_by_status_for_delegate(delegate_id, now=now), closure, **kwargs)

    @property
    def buckets(self) -> SessionBuckets:
        with self._lock:
            return self._buckets

    @property
    def last_update(self) -> Optional[datetime]:
        return self._last_update

    @property
    def closed_seen(self) -> frozenset[int]:
        with self._lock:
            return frozenset(self._closed_seen)

    def refresh(self, now: datetime | None = None) -> list[ClosureResult]:
        """Reload the tracked sessions from the store, then re-evaluate."""
        now = as_utc(now or self._clock())
        buckets = self._loader(now)
        with self._lock:
            return self._apply(buckets, now, loaded=True)

    def tick(self, now: datetime | None = None) -> list[ClosureResult]:
        """Re-derive status for every tracked session without hitting the store."""
        now = as_utc(now or self._clock())
        with self._lock:
            buckets = SessionBuckets.from_views(v.refreshed(now) for v in self._buckets.all())
            return self._apply(buckets, now, loaded=False)

    def _apply(self, buckets: SessionBuckets, now: datetime, *, loaded: bool) -> list[ClosureResult]:
        for view in buckets.all():
            sid = view.session.session_id
            previous = self._known.get(sid)
            if previous is not None and previous != view.status:
                logger.info("Session %s moved %s -> %s", sid, previous.value, view.status.value)

            crossed = previous is not None and previous != SessionStatus.CLOSED
            stale = previous is None and loaded and self._close_stale_on_load
            if view.status == SessionStatus.CLOSED and (crossed or stale) and sid not in self._closed_seen:
                self._pending.add(sid)
            self._known[sid] = view.status

        self._buckets = buckets
        self._last_update = now
        return self._close_pending(now)

    def _close_pending(self, now: datetime) -> list[ClosureResult]:
        results: list[ClosureResult] = []
        views = {v.session.session_id: v for v in self._buckets.closed}

        for sid in sorted(self._pending):
            view = views.get(sid)
            if view is None:
                self._pending.discard(sid)
                continue
            try:
                result = self._closure.process_closure(view.session, now=now)
            except Exception:
                # Stays pending; retried on the next tick.
                logger.exception("Closure failed for session %s", sid)
                continue

            results.append(result)
            if result.processed:
                self._pending.discard(sid)
                self._closed_seen.add(sid)
        return results

    def _run_job(self, job: Callable[[], list[ClosureResult]], name: str) -> None:
        try:
            job()
        except Exception:
            logger.exception("Session watcher %s failed", name)

    def start(self) -> None:
        if self._scheduler is None:
            self._scheduler = BackgroundScheduler(timezone="UTC")

        self._run_job(self.refresh, "refresh")
        self._scheduler.add_job(
            self._run_job,
            "interval",
            args=[self.tick, "tick"],
            seconds=self._status_interval,
            id="session-status",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.add_job(
            self._run_job,
            "interval",
            args=[self.refresh, "refresh"],
            seconds=self._refresh_interval,
            id="session-refresh",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        if not self._scheduler.running:
            self._scheduler.start()
        logger.info(
            "Session watcher started (status every %ss, refresh every %ss)",
            self._status_interval,
            self._refresh_interval,
        )

    def stop(self) -> None:
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Session watcher stopped")

    def __enter__(self) -> "LifecycleWatcher":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()
