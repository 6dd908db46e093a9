from __future__ import annotations

import threading
import uuid
from decimal import Decimal
from typing import Any, Callable, Mapping, Optional, Sequence

import structlog

from ..core.constants import ACTIVE_STATUSES, DEFAULT_FEED_POLL_SECONDS
from ..core.enums import AttendanceStatus
from ..core.exceptions import RecordNotFoundError, StaleRecordError, ValidationError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import conditional_update, db_cursor, fetchall, fetchone, select_for_update
from .model import DOCUMENT_KEYS, IMMUTABLE_FIELDS, AttendanceRecord
from .repository import RecordsCallback

logger = structlog.get_logger(__name__)

TABLE = "attendance_records"

# Python field name -> column
COLUMNS = {name: name for name in DOCUMENT_KEYS}
COLUMNS["id"] = "record_id"
COLUMNS["date"] = "work_date"

_SELECT = f"SELECT {', '.join(COLUMNS.values())} FROM {TABLE}"
_ACTIVE_VALUES = tuple(sorted(s.value for s in ACTIVE_STATUSES))


def _row_to_record(r: dict) -> AttendanceRecord:
    kwargs: dict[str, Any] = {}
    for name, column in COLUMNS.items():
        value = r.get(column)
        if isinstance(value, Decimal):
            value = float(value)
        kwargs[name] = value
    kwargs["id"] = str(kwargs["id"])
    return AttendanceRecord(**kwargs)


def _db_value(value: Any) -> Any:
    return value.value if isinstance(value, AttendanceStatus) else value


class _PollingSubscription:
    """Background poller emulating a change feed over a plain table.

    Delivers the fetched record set on start and whenever it differs from the
    last delivery. `user_id=None` polls every user's records.
    """

    def __init__(
        self,
        store: "MySQLAttendanceStore",
        user_id: Optional[str],
        fetch: Callable[[], Sequence[AttendanceRecord]],
        callback: RecordsCallback,
        interval: float,
    ):
        self._store = store
        self.user_id = user_id
        self._fetch = fetch
        self._callback = callback
        self._interval = interval
        self._stop = threading.Event()
        self._wake = threading.Event()
        self._last: Optional[frozenset] = None
        self._thread = threading.Thread(target=self._run, name=f"attendance-feed-{user_id or 'all'}", daemon=True)

    def start(self) -> "_PollingSubscription":
        self._thread.start()
        return self

    def poke(self) -> None:
        self._wake.set()

    def cancel(self) -> None:
        if not self._stop.is_set():
            self._stop.set()
            self._wake.set()
            self._store._remove_subscription(self)
            if self._thread.is_alive() and threading.current_thread() is not self._thread:
                self._thread.join(timeout=self._interval + 1)

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                records = self._fetch()
            except Exception:
                logger.exception("attendance_feed_poll_failed", user_id=self.user_id)
            else:
                snapshot = frozenset(records)
                if snapshot != self._last and not self._stop.is_set():
                    self._last = snapshot
                    try:
                        self._callback(list(records))
                    except Exception:
                        logger.exception("attendance_feed_callback_failed", user_id=self.user_id)
            self._wake.wait(self._interval)
            self._wake.clear()


class MySQLAttendanceStore:
    def __init__(self, conn_factory: DatabaseConnection, *, poll_interval: float = DEFAULT_FEED_POLL_SECONDS):
        self._conn_factory = conn_factory
        self._poll_interval = float(poll_interval)
        self._subs_lock = threading.Lock()
        self._subs: list[_PollingSubscription] = []

    def create(self, record: AttendanceRecord) -> str:
        record_id = uuid.uuid4().hex
        stored = record.with_id(record_id)
        columns = list(COLUMNS.values())
        values = [_db_value(getattr(stored, name)) for name in COLUMNS]
        with db_cursor(self._conn_factory) as cur:
            cur.execute(
                f"INSERT INTO {TABLE}({', '.join(columns)}) VALUES({', '.join(['%s'] * len(columns))})",
                tuple(values),
            )
        self._poke(record.user_id)
        return record_id

    def update(
        self,
        record_id: str,
        changes: Mapping[str, Any],
        *,
        expected_status: Optional[AttendanceStatus] = None,
    ) -> None:
        if not record_id:
            raise RecordNotFoundError("Empty attendance record id")
        unknown = set(changes) - set(COLUMNS)
        if unknown:
            raise ValidationError(f"Unknown fields: {sorted(unknown)}")
        frozen = IMMUTABLE_FIELDS.intersection(changes)
        if frozen:
            raise ValidationError(f"Fields cannot be changed: {sorted(frozen)}")
        if not changes:
            return

        with db_cursor(self._conn_factory) as cur:
            row = select_for_update(cur, table=TABLE, key_column="record_id", key=record_id, columns=("user_id", "status"))
            if not row:
                raise RecordNotFoundError(f"No attendance record with id {record_id!r}")
            current = AttendanceStatus(row["status"])
            if expected_status is not None and current != expected_status:
                raise StaleRecordError(f"Record {record_id!r} is {current.value}, expected {expected_status.value}")
            if current == AttendanceStatus.CLOCKED_OUT:
                raise ValidationError("Clocked-out records cannot be modified")
            changed = conditional_update(
                cur,
                table=TABLE,
                assignments={COLUMNS[name]: _db_value(v) for name, v in changes.items()},
                key_column="record_id",
                key=record_id,
                guard={"status": current.value},
            )
            if changed == 0:
                raise StaleRecordError(f"Record {record_id!r} changed during update")
        self._poke(str(row["user_id"]))

    def get(self, record_id: str) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as cur:
            cur.execute(f"{_SELECT} WHERE record_id=%s", (record_id,))
            r = fetchone(cur)
            return _row_to_record(r) if r else None

    def query_active_by_user(self, user_id: str) -> Optional[AttendanceRecord]:
        placeholders = ", ".join(["%s"] * len(_ACTIVE_VALUES))
        with db_cursor(self._conn_factory) as cur:
            cur.execute(
                f"{_SELECT} WHERE user_id=%s AND status IN ({placeholders}) ORDER BY seq DESC LIMIT 1",
                (user_id, *_ACTIVE_VALUES),
            )
            r = fetchone(cur)
            return _row_to_record(r) if r else None

    def list_for_user(self, user_id: str) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as cur:
            cur.execute(f"{_SELECT} WHERE user_id=%s ORDER BY seq DESC", (user_id,))
            return [_row_to_record(r) for r in fetchall(cur)]

    def list_all(self) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as cur:
            cur.execute(f"{_SELECT} ORDER BY seq DESC")
            return [_row_to_record(r) for r in fetchall(cur)]

    def subscribe_by_user(self, user_id: str, callback: RecordsCallback) -> _PollingSubscription:
        return self._subscribe(
            _PollingSubscription(self, user_id, lambda: self.list_for_user(user_id), callback, self._poll_interval)
        )

    def subscribe_all(self, callback: RecordsCallback) -> _PollingSubscription:
        return self._subscribe(_PollingSubscription(self, None, self.list_all, callback, self._poll_interval))

    def delete_all(self) -> int:
        with db_cursor(self._conn_factory) as cur:
            cur.execute(f"DELETE FROM {TABLE}")
            count = int(cur.rowcount)
        with self._subs_lock:
            subs = list(self._subs)
        for sub in subs:
            sub.poke()
        return count

    def _subscribe(self, sub: _PollingSubscription) -> _PollingSubscription:
        with self._subs_lock:
            self._subs.append(sub)
        return sub.start()

    def _remove_subscription(self, sub: _PollingSubscription) -> None:
        with self._subs_lock:
            if sub in self._subs:
                self._subs.remove(sub)

    def _poke(self, user_id: str) -> None:
        with self._subs_lock:
            subs = [s for s in self._subs if s.user_id is None or s.user_id == user_id]
        for sub in subs:
            sub.poke()
