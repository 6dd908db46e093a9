from __future__ import annotations

from typing import Optional, Protocol

from .model import EmployeeProfile


class ProfileRepository(Protocol):
    """Profile repository interface; services depend on this, not on a DB."""

    def get_by_uid(self, uid: str) -> Optional[EmployeeProfile]:
        raise NotImplementedError

    def save(self, profile: EmployeeProfile) -> None:
        raise NotImplementedError


class InMemoryProfileRepository:
    def __init__(self, profiles: Optional[dict[str, EmployeeProfile]] = None):
        self._profiles: dict[str, EmployeeProfile] = dict(profiles or {})

    def get_by_uid(self, uid: str) -> Optional[EmployeeProfile]:
        return self._profiles.get(uid)

    def save(self, profile: EmployeeProfile) -> None:
        self._profiles[profile.uid] = profile
