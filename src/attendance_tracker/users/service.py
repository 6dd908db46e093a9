from __future__ import annotations

from datetime import datetime, timezone

import structlog

from ..common.validators import require_non_empty
from ..core.constants import DEFAULT_DEPARTMENT
from ..core.exceptions import DomainError
from .model import EmployeeProfile, Identity
from .repository import ProfileRepository

logger = structlog.get_logger(__name__)


class ProfileService:
    """Use case: find the profile behind an authenticated identity."""

    def __init__(self, profiles: ProfileRepository):
        self._profiles = profiles

    def save(self, profile: EmployeeProfile) -> None:
        require_non_empty(profile.uid, "uid")
        require_non_empty(profile.full_name, "full_name")
        self._profiles.save(profile)
        logger.info("profile_saved", uid=profile.uid)

    def resolve(self, identity: Identity) -> EmployeeProfile:
        """Stored profile, or a basic (unsaved) one built from the identity."""
        uid = require_non_empty(identity.uid, "uid")
        try:
            profile = self._profiles.get_by_uid(uid)
        except DomainError:
            raise
        except Exception:
            logger.exception("profile_lookup_failed", uid=uid)
            profile = None

        if profile is not None:
            return profile

        logger.info("profile_missing_using_basic", uid=uid)
        return basic_profile(identity)


def basic_profile(identity: Identity) -> EmployeeProfile:
    email = identity.email or ""
    full_name = identity.display_name or (email.split("@")[0] if email else "") or "User"
    return EmployeeProfile(
        uid=identity.uid,
        email=email,
        full_name=full_name,
        department=DEFAULT_DEPARTMENT,
        created_at=datetime.now(timezone.utc).isoformat(),
    )
