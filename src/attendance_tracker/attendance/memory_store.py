from __future__ import annotations

import itertools
import threading
import uuid
from typing import Any, Mapping, Optional, Sequence

import structlog

from ..core.enums import AttendanceStatus
from ..core.exceptions import RecordNotFoundError, StaleRecordError
from .model import AttendanceRecord
from .repository import RecordsCallback

logger = structlog.get_logger(__name__)


class _MemorySubscription:
    """Feed registration; `user_id=None` means every user's records."""

    def __init__(self, store: "InMemoryAttendanceStore", user_id: Optional[str], callback: RecordsCallback):
        self._store = store
        self.user_id = user_id
        self.callback = callback
        self.active = True

    def cancel(self) -> None:
        if self.active:
            self.active = False
            self._store._remove_subscription(self)


class InMemoryAttendanceStore:
    """Process-local store with a synchronous change feed.

    Subscribers receive their record set once on subscribe and again after
    every create/update/delete touching it.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._records: dict[str, tuple[int, AttendanceRecord]] = {}
        self._seq = itertools.count(1)
        self._subs: list[_MemorySubscription] = []

    def create(self, record: AttendanceRecord) -> str:
        record_id = uuid.uuid4().hex
        with self._lock:
            self._records[record_id] = (next(self._seq), record.with_id(record_id))
        logger.debug("attendance_record_created", record_id=record_id, user_id=record.user_id)
        self._notify(record.user_id)
        return record_id

    def update(
        self,
        record_id: str,
        changes: Mapping[str, Any],
        *,
        expected_status: Optional[AttendanceStatus] = None,
    ) -> None:
        with self._lock:
            entry = self._records.get(record_id) if record_id else None
            if entry is None:
                raise RecordNotFoundError(f"No attendance record with id {record_id!r}")
            seq, current = entry
            if expected_status is not None and current.status != expected_status:
                raise StaleRecordError(
                    f"Record {record_id!r} is {current.status.value}, expected {expected_status.value}"
                )
            self._records[record_id] = (seq, current.apply(changes))
        logger.debug("attendance_record_updated", record_id=record_id, fields=sorted(changes))
        self._notify(current.user_id)

    def get(self, record_id: str) -> Optional[AttendanceRecord]:
        with self._lock:
            entry = self._records.get(record_id)
            return entry[1] if entry else None

    def query_active_by_user(self, user_id: str) -> Optional[AttendanceRecord]:
        active = [r for r in self.list_for_user(user_id) if r.is_active()]
        return active[0] if active else None

    def list_for_user(self, user_id: str) -> Sequence[AttendanceRecord]:
        return [r for r in self.list_all() if r.user_id == user_id]

    def list_all(self) -> Sequence[AttendanceRecord]:
        """Newest first."""
        with self._lock:
            items = list(self._records.values())
        items.sort(key=lambda item: item[0], reverse=True)
        return [r for _, r in items]

    def subscribe_by_user(self, user_id: str, callback: RecordsCallback) -> _MemorySubscription:
        return self._subscribe(_MemorySubscription(self, user_id, callback))

    def subscribe_all(self, callback: RecordsCallback) -> _MemorySubscription:
        return self._subscribe(_MemorySubscription(self, None, callback))

    def delete_all(self) -> int:
        with self._lock:
            users = {r.user_id for _, r in self._records.values()}
            count = len(self._records)
            self._records.clear()
        logger.info("attendance_records_cleared", count=count)
        self._notify(*users)
        return count

    def _subscribe(self, sub: _MemorySubscription) -> _MemorySubscription:
        with self._lock:
            self._subs.append(sub)
        self._deliver(sub)
        return sub

    def _remove_subscription(self, sub: _MemorySubscription) -> None:
        with self._lock:
            if sub in self._subs:
                self._subs.remove(sub)

    def _notify(self, *user_ids: str) -> None:
        touched = set(user_ids)
        with self._lock:
            subs = [s for s in self._subs if s.user_id is None or s.user_id in touched]
        for sub in subs:
            self._deliver(sub)

    def _deliver(self, sub: _MemorySubscription) -> None:
        if not sub.active:
            return
        with self._lock:
            records = [r for _, r in self._records.values() if sub.user_id is None or r.user_id == sub.user_id]
        try:
            sub.callback(records)
        except Exception:
            # One failing observer must not break the writer or other observers.
            logger.exception("attendance_feed_callback_failed", user_id=sub.user_id)
