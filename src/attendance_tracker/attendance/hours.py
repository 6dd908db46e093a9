from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from ..common.datetime_utils import parse_timestamp
from ..core.constants import HOURS_PRECISION

_QUANTUM = Decimal(1).scaleb(-HOURS_PRECISION)
_SECONDS_PER_HOUR = Decimal(3600)


def elapsed_hours(start: str, end: str) -> float:
    """Hours between two stored timestamps, rounded to 2 decimals.

    Rounding is half away from zero. A reversed pair yields a negative value;
    ordering is the caller's responsibility.
    """
    delta = parse_timestamp(end) - parse_timestamp(start)
    seconds = Decimal(delta.days * 86400 + delta.seconds) + Decimal(delta.microseconds) / Decimal(1_000_000)
    hours = (seconds / _SECONDS_PER_HOUR).quantize(_QUANTUM, rounding=ROUND_HALF_UP)
    return float(hours)


def paired_hours(start: Optional[str], end: Optional[str]) -> float:
    """Hours of a break/lunch pair; an unterminated or absent pair counts as 0."""
    if start and end:
        return elapsed_hours(start, end)
    return 0.0


@dataclass(frozen=True)
class ShiftHours:
    total_hours: float
    break_hours: float
    lunch_hours: float


def compute_shift_hours(
    *,
    clock_in: str,
    clock_out: str,
    break_start: Optional[str] = None,
    break_end: Optional[str] = None,
    lunch_start: Optional[str] = None,
    lunch_end: Optional[str] = None,
) -> ShiftHours:
    return ShiftHours(
        total_hours=elapsed_hours(clock_in, clock_out),
        break_hours=paired_hours(break_start, break_end),
        lunch_hours=paired_hours(lunch_start, lunch_end),
    )
