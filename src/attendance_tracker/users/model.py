from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class EmployeeProfile:
    """Domain entity: employee profile keyed by the auth provider's uid.

    Note: plain data holder, no storage code here.
    """

    uid: str
    email: str
    full_name: str
    department: str
    created_at: Optional[str] = None


@dataclass(frozen=True)
class Identity:
    """What the external authentication provider hands us."""

    uid: str
    email: str = ""
    display_name: Optional[str] = None
