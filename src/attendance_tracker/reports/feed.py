from __future__ import annotations

import threading
from typing import Callable, Optional, Sequence

import structlog

from ..attendance.model import AttendanceRecord
from ..attendance.repository import AttendanceStore, Subscription
from .service import AttendanceSummary, AttendanceSummaryService, RecordFilter

logger = structlog.get_logger(__name__)

SummaryListener = Callable[[AttendanceSummary], None]


class AdminDashboardFeed:
    """Live admin summary over the all-users change feed.

    Every delivered batch is re-summarized with the current filter and pushed
    to listeners. Changing the filter re-summarizes the last batch in place.
    """

    def __init__(
        self,
        store: AttendanceStore,
        summary_service: Optional[AttendanceSummaryService] = None,
        flt: Optional[RecordFilter] = None,
    ):
        self._store = store
        self._summary_service = summary_service or AttendanceSummaryService()
        self._filter = flt or RecordFilter()
        self._lock = threading.Lock()
        self._listeners: list[SummaryListener] = []
        self._records: tuple[AttendanceRecord, ...] = ()
        self._summary: Optional[AttendanceSummary] = None
        self._subscription: Optional[Subscription] = None

    @property
    def summary(self) -> Optional[AttendanceSummary]:
        return self._summary

    def add_listener(self, listener: SummaryListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def remove() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return remove

    def set_filter(self, flt: RecordFilter) -> AttendanceSummary:
        with self._lock:
            self._filter = flt
            records = self._records
        return self._publish(records)

    def on_records(self, records: Sequence[AttendanceRecord]) -> AttendanceSummary:
        return self._publish(tuple(records))

    def start(self) -> "AdminDashboardFeed":
        if self._subscription is None:
            logger.info("admin_dashboard_feed_started")
            self._subscription = self._store.subscribe_all(self.on_records)
        return self

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
            logger.info("admin_dashboard_feed_stopped")

    def __enter__(self) -> "AdminDashboardFeed":
        return self.start()

    def __exit__(self, *exc) -> None:
        self.stop()

    def _publish(self, records: tuple[AttendanceRecord, ...]) -> AttendanceSummary:
        with self._lock:
            flt = self._filter
        summary = self._summary_service.summarize(records, flt)
        with self._lock:
            self._records = records
            self._summary = summary
            listeners = list(self._listeners)
        for listener in listeners:
            listener(summary)
        return summary
