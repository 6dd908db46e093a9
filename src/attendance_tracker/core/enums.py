from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """User roles used to gate admin endpoints."""

    ADMIN = "admin"
    EMPLOYEE = "employee"
    IT = "it"


class AttendanceStatus(str, Enum):
    """Status of a shift record, stored as the hyphenated value."""

    CLOCKED_IN = "clocked-in"
    ON_BREAK = "on-break"
    ON_LUNCH = "on-lunch"
    CLOCKED_OUT = "clocked-out"


class AttendanceAction(str, Enum):
    CLOCK_IN = "clock-in"
    BREAK_START = "break-start"
    BREAK_END = "break-end"
    LUNCH_START = "lunch-start"
    LUNCH_END = "lunch-end"
    CLOCK_OUT = "clock-out"


class TransitionOutcome(str, Enum):
    """What happened to a submitted action."""

    APPLIED = "applied"
    UNCHANGED = "unchanged"
    RESUMED = "resumed"
