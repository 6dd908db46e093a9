from __future__ import annotations

from typing import Any, Optional

from ..common.clock import Clock
from ..core.enums import AttendanceAction, AttendanceStatus
from .hours import compute_shift_hours
from .model import AttendanceRecord

# (current status, action) -> next status. `None` means "no active record".
TRANSITIONS: dict[tuple[Optional[AttendanceStatus], AttendanceAction], AttendanceStatus] = {
    (None, AttendanceAction.CLOCK_IN): AttendanceStatus.CLOCKED_IN,
    (AttendanceStatus.CLOCKED_IN, AttendanceAction.BREAK_START): AttendanceStatus.ON_BREAK,
    (AttendanceStatus.ON_BREAK, AttendanceAction.BREAK_END): AttendanceStatus.CLOCKED_IN,
    (AttendanceStatus.CLOCKED_IN, AttendanceAction.LUNCH_START): AttendanceStatus.ON_LUNCH,
    (AttendanceStatus.ON_LUNCH, AttendanceAction.LUNCH_END): AttendanceStatus.CLOCKED_IN,
    (AttendanceStatus.CLOCKED_IN, AttendanceAction.CLOCK_OUT): AttendanceStatus.CLOCKED_OUT,
    (AttendanceStatus.ON_BREAK, AttendanceAction.CLOCK_OUT): AttendanceStatus.CLOCKED_OUT,
    (AttendanceStatus.ON_LUNCH, AttendanceAction.CLOCK_OUT): AttendanceStatus.CLOCKED_OUT,
}

_STAMPS: dict[AttendanceAction, str] = {
    AttendanceAction.BREAK_START: "break_start",
    AttendanceAction.BREAK_END: "break_end",
    AttendanceAction.LUNCH_START: "lunch_start",
    AttendanceAction.LUNCH_END: "lunch_end",
}

# Starting a sub-state again opens a fresh pair.
_RESETS: dict[AttendanceAction, str] = {
    AttendanceAction.BREAK_START: "break_end",
    AttendanceAction.LUNCH_START: "lunch_end",
}


def next_status(current: Optional[AttendanceStatus], action: AttendanceAction) -> Optional[AttendanceStatus]:
    return TRANSITIONS.get((current, action))


def allowed_actions(current: Optional[AttendanceStatus]) -> list[AttendanceAction]:
    """Actions an interaction layer should offer for the given status."""
    return [action for (status, action) in TRANSITIONS if status == current]


class AttendanceStateMachine:
    """Pure transition rules: computes effects, never touches a store."""

    def __init__(self, clock: Clock):
        self._clock = clock

    def can_apply(self, record: Optional[AttendanceRecord], action: AttendanceAction) -> bool:
        current = record.status if record is not None and record.is_active() else None
        if record is not None and record.is_terminal():
            return False
        return next_status(current, action) is not None

    def open_shift(self, *, user_id: str, name: str, department: str) -> AttendanceRecord:
        """ClockIn effect: a new, not yet persisted record."""
        return AttendanceRecord(
            user_id=user_id,
            name=name,
            department=department,
            date=self._clock.today(),
            clock_in=self._clock.now(),
            status=AttendanceStatus.CLOCKED_IN,
        )

    def changes_for(self, record: AttendanceRecord, action: AttendanceAction) -> Optional[dict[str, Any]]:
        """Partial update for `action` on `record`, or None when the guard fails."""
        if action == AttendanceAction.CLOCK_IN or not self.can_apply(record, action):
            return None
        if action == AttendanceAction.CLOCK_OUT:
            return self.clock_out_changes(record)

        changes: dict[str, Any] = {_STAMPS[action]: self._clock.now()}
        if action in _RESETS:
            changes[_RESETS[action]] = None
        changes["status"] = next_status(record.status, action)
        return changes

    def clock_out_changes(self, record: AttendanceRecord) -> dict[str, Any]:
        clock_out = self._clock.now()
        hours = compute_shift_hours(
            clock_in=record.clock_in,
            clock_out=clock_out,
            break_start=record.break_start,
            break_end=record.break_end,
            lunch_start=record.lunch_start,
            lunch_end=record.lunch_end,
        )
        return {
            "clock_out": clock_out,
            "total_hours": hours.total_hours,
            "break_hours": hours.break_hours,
            "lunch_hours": hours.lunch_hours,
            "status": AttendanceStatus.CLOCKED_OUT,
        }
