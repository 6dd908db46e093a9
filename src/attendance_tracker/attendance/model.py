from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Optional

from ..common.validators import has_identifier, require_non_empty
from ..core.constants import ACTIVE_STATUSES
from ..core.enums import AttendanceStatus
from ..core.exceptions import ValidationError

# Python field name -> key in the store document.
DOCUMENT_KEYS = {
    "id": "id",
    "user_id": "userId",
    "name": "name",
    "department": "department",
    "date": "date",
    "clock_in": "clockIn",
    "clock_out": "clockOut",
    "break_start": "breakStart",
    "break_end": "breakEnd",
    "lunch_start": "lunchStart",
    "lunch_end": "lunchEnd",
    "total_hours": "totalHours",
    "break_hours": "breakHours",
    "lunch_hours": "lunchHours",
    "status": "status",
}

IMMUTABLE_FIELDS = frozenset({"id", "user_id", "date", "clock_in"})


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: one shift attempt for one user on one logical day.

    `date` is captured at clock-in and never recomputed. Timestamps are
    display strings already in the operating timezone.
    """

    user_id: str
    name: str
    department: str
    date: str
    clock_in: str
    status: AttendanceStatus = AttendanceStatus.CLOCKED_IN
    id: str = ""
    clock_out: Optional[str] = None
    break_start: Optional[str] = None
    break_end: Optional[str] = None
    lunch_start: Optional[str] = None
    lunch_end: Optional[str] = None
    total_hours: Optional[float] = None
    break_hours: Optional[float] = None
    lunch_hours: Optional[float] = None

    def __post_init__(self) -> None:
        for field_name in ("user_id", "name", "department", "clock_in", "date"):
            require_non_empty(getattr(self, field_name), field_name)
        if not isinstance(self.status, AttendanceStatus):
            try:
                object.__setattr__(self, "status", AttendanceStatus(self.status))
            except ValueError:
                raise ValidationError(f"Unknown status: {self.status!r}") from None

    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def is_terminal(self) -> bool:
        return self.status == AttendanceStatus.CLOCKED_OUT

    def has_identifier(self) -> bool:
        return has_identifier(self.id)

    def with_id(self, record_id: str) -> "AttendanceRecord":
        return replace(self, id=record_id)

    def apply(self, changes: Mapping[str, Any]) -> "AttendanceRecord":
        """Return a copy with a partial update applied.

        Clocked-out records and creation-time fields cannot be changed.
        """
        if self.is_terminal():
            raise ValidationError("Clocked-out records cannot be modified")
        unknown = set(changes) - set(DOCUMENT_KEYS)
        if unknown:
            raise ValidationError(f"Unknown fields: {sorted(unknown)}")
        frozen = IMMUTABLE_FIELDS.intersection(changes)
        if frozen:
            raise ValidationError(f"Fields cannot be changed: {sorted(frozen)}")
        return replace(self, **dict(changes))

    def to_document(self) -> dict[str, Any]:
        """Store shape (camelCase keys, status as its string value); `id` excluded."""
        doc: dict[str, Any] = {}
        for f in fields(self):
            if f.name == "id":
                continue
            value = getattr(self, f.name)
            doc[DOCUMENT_KEYS[f.name]] = value.value if isinstance(value, AttendanceStatus) else value
        return doc
