from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from attendance_tracker.attendance.memory_store import InMemoryAttendanceStore
from attendance_tracker.attendance.service import AttendanceService
from attendance_tracker.common.clock import ZonedClock
from attendance_tracker.users.model import EmployeeProfile


class SteppingClock(ZonedClock):
    """Operating-timezone clock whose instant is set by the test."""

    def __init__(self, start: datetime):
        self.instant = start
        super().__init__(now_func=lambda: self.instant)

    def set(self, instant: datetime) -> None:
        self.instant = instant

    def advance(self, **kwargs) -> None:
        self.instant = self.instant + timedelta(**kwargs)


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2024, 1, 1, 9, 0, 0)


@pytest.fixture
def clock(fixed_now) -> SteppingClock:
    return SteppingClock(fixed_now)


@pytest.fixture
def store() -> InMemoryAttendanceStore:
    return InMemoryAttendanceStore()


@pytest.fixture
def service(store, clock) -> AttendanceService:
    return AttendanceService(store, clock)


@pytest.fixture
def profile() -> EmployeeProfile:
    return EmployeeProfile(uid="u-1", email="ana@example.com", full_name="Ana Cruz", department="GIS")
