from __future__ import annotations

from typing import Any, Callable, Mapping, Optional, Protocol, Sequence

from ..core.enums import AttendanceStatus
from .model import AttendanceRecord

RecordsCallback = Callable[[Sequence[AttendanceRecord]], None]


class Subscription(Protocol):
    def cancel(self) -> None:
        raise NotImplementedError


class AttendanceStore(Protocol):
    """Record store gateway consumed by the attendance service.

    Note (DIP): services depend on this interface, never on a concrete store.
    """

    def create(self, record: AttendanceRecord) -> str:
        """Persist a new record and return its generated identifier."""
        raise NotImplementedError

    def update(
        self,
        record_id: str,
        changes: Mapping[str, Any],
        *,
        expected_status: Optional[AttendanceStatus] = None,
    ) -> None:
        """Apply a partial update.

        Raises RecordNotFoundError for unknown ids and StaleRecordError when
        `expected_status` is given and the stored status differs.
        """
        raise NotImplementedError

    def get(self, record_id: str) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def query_active_by_user(self, user_id: str) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def list_for_user(self, user_id: str) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def list_all(self) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def subscribe_by_user(self, user_id: str, callback: RecordsCallback) -> Subscription:
        """Deliver the user's full record set on every change (at-least-once, unordered)."""
        raise NotImplementedError

    def subscribe_all(self, callback: RecordsCallback) -> Subscription:
        """Deliver every user's records on any change (admin dashboards)."""
        raise NotImplementedError

    def delete_all(self) -> int:
        """Admin bulk clear. Returns the number of deleted records."""
        raise NotImplementedError
