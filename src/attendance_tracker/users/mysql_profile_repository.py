from __future__ import annotations

from typing import Optional

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchone
from .model import EmployeeProfile


class MySQLProfileRepository:
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_uid(self, uid: str) -> Optional[EmployeeProfile]:
        with db_cursor(self._conn_factory) as cur:
            cur.execute(
                "SELECT uid, email, full_name, department, created_at FROM employee_profiles WHERE uid=%s",
                (uid,),
            )
            r = fetchone(cur)
            if not r:
                return None
            return EmployeeProfile(
                uid=str(r["uid"]),
                email=r["email"],
                full_name=r["full_name"],
                department=r["department"],
                created_at=r.get("created_at"),
            )

    def save(self, profile: EmployeeProfile) -> None:
        # keyed by uid so re-saving never duplicates a profile
        with db_cursor(self._conn_factory) as cur:
            cur.execute(
                """
                INSERT INTO employee_profiles(uid, email, full_name, department, created_at)
                VALUES(%s,%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE
                    email=VALUES(email), full_name=VALUES(full_name), department=VALUES(department)
                """,
                (profile.uid, profile.email, profile.full_name, profile.department, profile.created_at),
            )
