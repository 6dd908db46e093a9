from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from .attendance.memory_store import InMemoryAttendanceStore
from .attendance.repository import AttendanceStore
from .attendance.service import AttendanceService
from .common.clock import Clock, ZonedClock
from .core.constants import DEFAULT_FEED_POLL_SECONDS
from .core.exceptions import ValidationError
from .database.connection import DatabaseConnection
from .reports.service import AttendanceSummaryService
from .users.repository import InMemoryProfileRepository, ProfileRepository
from .users.service import ProfileService


@dataclass(frozen=True)
class Container:
    clock: Clock
    attendance_store: AttendanceStore
    profiles_repo: ProfileRepository

    attendance_service: AttendanceService
    profile_service: ProfileService
    summary_service: AttendanceSummaryService

    conn: Optional[DatabaseConnection] = None


def build_container(
    *,
    store_backend: str = "memory",
    db_config: Optional[dict[str, Any]] = None,
    poll_interval: float = DEFAULT_FEED_POLL_SECONDS,
    clock: Optional[Clock] = None,
) -> Container:
    clock = clock or ZonedClock()
    conn: Optional[DatabaseConnection] = None

    if store_backend == "memory":
        attendance_store: AttendanceStore = InMemoryAttendanceStore()
        profiles_repo: ProfileRepository = InMemoryProfileRepository()
    elif store_backend == "mysql":
        from .attendance.mysql_attendance_store import MySQLAttendanceStore
        from .users.mysql_profile_repository import MySQLProfileRepository

        conn = DatabaseConnection.from_mapping(db_config or {})
        attendance_store = MySQLAttendanceStore(conn, poll_interval=poll_interval)
        profiles_repo = MySQLProfileRepository(conn)
    else:
        raise ValidationError(f"Unknown store backend: {store_backend!r}")

    return Container(
        clock=clock,
        attendance_store=attendance_store,
        profiles_repo=profiles_repo,
        attendance_service=AttendanceService(attendance_store, clock),
        profile_service=ProfileService(profiles_repo),
        summary_service=AttendanceSummaryService(),
        conn=conn,
    )
