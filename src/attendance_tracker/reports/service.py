from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence

from ..attendance.model import AttendanceRecord
from ..core.constants import DATE_KEY_FORMAT
from ..core.exceptions import ValidationError


@dataclass(frozen=True)
class RecordFilter:
    date: Optional[str] = None
    name: Optional[str] = None
    department: Optional[str] = None


@dataclass(frozen=True)
class AttendanceSummary:
    records: list[AttendanceRecord]
    total_hours: float
    active_employees: int
    unique_employees: int


def to_date_key(value: str) -> str:
    """Accept YYYY-MM-DD (form input) or an existing MM/DD/YYYY key."""
    text = value.strip()
    for fmt in ("%Y-%m-%d", DATE_KEY_FORMAT):
        try:
            return datetime.strptime(text, fmt).strftime(DATE_KEY_FORMAT)
        except ValueError:
            continue
    raise ValidationError(f"Invalid date filter: {value!r}")


class AttendanceSummaryService:
    """Admin dashboard figures over a record list."""

    def apply_filter(self, records: Sequence[AttendanceRecord], flt: RecordFilter) -> list[AttendanceRecord]:
        out = list(records)
        if flt.date:
            key = to_date_key(flt.date)
            out = [r for r in out if r.date == key]
        if flt.name:
            needle = flt.name.lower()
            out = [r for r in out if needle in r.name.lower()]
        if flt.department:
            out = [r for r in out if r.department == flt.department]
        return out

    def summarize(self, records: Sequence[AttendanceRecord], flt: Optional[RecordFilter] = None) -> AttendanceSummary:
        filtered = self.apply_filter(records, flt or RecordFilter())

        total = sum((Decimal(str(r.total_hours)) for r in filtered if r.total_hours is not None), Decimal(0))

        # currently working is counted over everything, not the filtered view
        active_users = {r.user_id for r in records if r.clock_out is None and r.user_id}

        return AttendanceSummary(
            records=filtered,
            total_hours=float(total.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)),
            active_employees=len(active_users),
            unique_employees=len({r.name for r in filtered}),
        )
