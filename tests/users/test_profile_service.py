from __future__ import annotations

from attendance_tracker.core.constants import DEFAULT_DEPARTMENT
from attendance_tracker.users.model import EmployeeProfile, Identity
from attendance_tracker.users.repository import InMemoryProfileRepository
from attendance_tracker.users.service import ProfileService


class BrokenProfiles:
    def get_by_uid(self, uid):
        raise ConnectionError("down")

    def save(self, profile):
        raise ConnectionError("down")


def test_stored_profile_is_returned():
    stored = EmployeeProfile(uid="u-1", email="ana@example.com", full_name="Ana Cruz", department="GIS")
    svc = ProfileService(InMemoryProfileRepository({"u-1": stored}))
    assert svc.resolve(Identity(uid="u-1", email="ana@example.com")) == stored


def test_missing_profile_falls_back_to_identity():
    repo = InMemoryProfileRepository()
    svc = ProfileService(repo)

    p = svc.resolve(Identity(uid="u-2", email="ben.reyes@example.com"))
    assert p.full_name == "ben.reyes"
    assert p.department == DEFAULT_DEPARTMENT
    assert repo.get_by_uid("u-2") is None

    assert svc.resolve(Identity(uid="u-3", display_name="Cara")).full_name == "Cara"
    assert svc.resolve(Identity(uid="u-4")).full_name == "User"


def test_lookup_failure_falls_back_to_identity():
    svc = ProfileService(BrokenProfiles())
    p = svc.resolve(Identity(uid="u-1", email="ana@example.com", display_name="Ana"))
    assert p.full_name == "Ana"
    assert p.uid == "u-1"


def test_save_keys_by_uid():
    repo = InMemoryProfileRepository()
    svc = ProfileService(repo)
    svc.save(EmployeeProfile(uid="u-1", email="a@x", full_name="A", department="GIS"))
    svc.save(EmployeeProfile(uid="u-1", email="a@x", full_name="A", department="NYC"))
    assert repo.get_by_uid("u-1").department == "NYC"
