"""
Role helpers for UI gating.

These flags decide what the console shows; row-level security in the
database is the authorization boundary.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum


class UserRole(str, Enum):
    """Console user roles."""

    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    FRONT_DESK = "front_desk"
    TECHNICIAN = "technician"
    VIEWER = "viewer"


@dataclass(frozen=True)
class RoleFlags:
    """Derived capability flags for one role (None when the user has no profile)."""

    role: UserRole | None
    is_super_admin: bool
    is_admin: bool
    is_front_desk: bool
    is_technician: bool
    is_viewer: bool

    @classmethod
    def for_role(cls, role: UserRole | str | None) -> "RoleFlags":
        """Build flags mirroring the database role groups."""
        resolved = parse_role(role)
        return cls(
            role=resolved,
            is_super_admin=resolved == UserRole.SUPER_ADMIN,
            is_admin=resolved in (UserRole.SUPER_ADMIN, UserRole.ADMIN),
            is_front_desk=resolved
            in (UserRole.SUPER_ADMIN, UserRole.ADMIN, UserRole.FRONT_DESK),
            is_technician=resolved
            in (UserRole.SUPER_ADMIN, UserRole.ADMIN, UserRole.TECHNICIAN),
            is_viewer=resolved == UserRole.VIEWER,
        )

    @property
    def can_edit(self) -> bool:
        """Any known role other than viewer may create, edit and delete."""
        return self.role is not None and not self.is_viewer


def parse_role(role: UserRole | str | None) -> UserRole | None:
    """Resolve a stored role string; unknown values mean no role."""
    if role is None:
        return None
    try:
        return UserRole(role)
    except ValueError:
        return None


def has_role(role: UserRole | str | None, allowed: Iterable[UserRole]) -> bool:
    """True when role is in allowed, or when nothing is required."""
    allowed_roles = tuple(allowed)
    if not allowed_roles:
        return True
    resolved = parse_role(role)
    return resolved is not None and resolved in allowed_roles
