from __future__ import annotations

import threading
from typing import Callable, Iterable, Optional, Sequence

import structlog

from ..common.datetime_utils import parse_timestamp
from ..core.exceptions import ValidationError
from .model import AttendanceRecord
from .repository import AttendanceStore, Subscription

logger = structlog.get_logger(__name__)

ActiveListener = Callable[[Optional[AttendanceRecord]], None]


def _recency_key(record: AttendanceRecord):
    try:
        started = parse_timestamp(record.clock_in).isoformat()
    except ValidationError:
        started = ""
    return (started, record.id)


def resolve_active(records: Iterable[AttendanceRecord]) -> Optional[AttendanceRecord]:
    """Pick the current active record out of an unordered record set.

    More than one active record means a duplicate session slipped through the
    clock-in race. The most recent clock-in wins (ties broken by id) so the
    answer does not depend on delivery order, and the anomaly is logged.
    """
    active = [r for r in records if r.is_active()]
    if not active:
        return None
    if len(active) > 1:
        logger.warning(
            "duplicate_active_sessions",
            user_id=active[0].user_id,
            record_ids=sorted(r.id for r in active),
        )
    return max(active, key=_recency_key)


class ActiveSessionResolver:
    """Publish/subscribe channel for one user's current active record.

    Feed it every record batch; listeners hear about the active record only
    when it actually changes, so re-delivery of an identical batch is a no-op.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._listeners: list[ActiveListener] = []
        self._records: tuple[AttendanceRecord, ...] = ()
        self._active: Optional[AttendanceRecord] = None
        self._seen = False

    @property
    def active(self) -> Optional[AttendanceRecord]:
        return self._active

    @property
    def records(self) -> Sequence[AttendanceRecord]:
        return self._records

    def add_listener(self, listener: ActiveListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def remove() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return remove

    def on_records(self, records: Sequence[AttendanceRecord]) -> Optional[AttendanceRecord]:
        active = resolve_active(records)
        with self._lock:
            self._records = tuple(records)
            changed = not self._seen or active != self._active
            self._active = active
            self._seen = True
            listeners = list(self._listeners) if changed else []
        for listener in listeners:
            listener(active)
        return active


class ActiveSessionWatch:
    """Binds a store change feed for one user to a resolver.

    Use as a context manager, or call `start()` / `stop()`; stopping cancels
    the store subscription so no listener outlives its observer.
    """

    def __init__(self, store: AttendanceStore, user_id: str, resolver: Optional[ActiveSessionResolver] = None):
        self._store = store
        self.user_id = user_id
        self.resolver = resolver or ActiveSessionResolver()
        self._subscription: Optional[Subscription] = None

    @property
    def active(self) -> Optional[AttendanceRecord]:
        return self.resolver.active

    def start(self) -> "ActiveSessionWatch":
        if self._subscription is None:
            logger.info("active_session_watch_started", user_id=self.user_id)
            self._subscription = self._store.subscribe_by_user(self.user_id, self.resolver.on_records)
        return self

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
            logger.info("active_session_watch_stopped", user_id=self.user_id)

    def __enter__(self) -> "ActiveSessionWatch":
        return self.start()

    def __exit__(self, *exc) -> None:
        self.stop()
