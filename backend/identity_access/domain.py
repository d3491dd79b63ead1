"""
Identity domain constants and simple helpers.

Why:
- Centralize roles and their landing pages so the gates, the navigation and
  the data API never drift apart.
- Model the role as a closed variant with an explicit `UNKNOWN` tag. A role
  value the portal does not know (e.g. newly introduced in the backend) is
  never silently treated like one of the known roles.
"""

from __future__ import annotations

from enum import Enum
from typing import Union


class Role(str, Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"
    PARENT = "parent"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: object) -> "Role":
        """Map a raw wire value to a Role; anything unrecognized is UNKNOWN.

        Matching is exact: "Admin" or " admin" are not roles.
        """
        if isinstance(value, Role):
            return value
        if isinstance(value, str):
            for role in KNOWN_ROLES:
                if role.value == value:
                    return role
        return cls.UNKNOWN


# Known roles in privilege order. Immutable to prevent accidental mutation.
KNOWN_ROLES = (Role.SUPER_ADMIN, Role.ADMIN, Role.TEACHER, Role.STUDENT, Role.PARENT)
ALLOWED_ROLES = frozenset(r.value for r in KNOWN_ROLES)

LOGIN_PATH = "/auth"
PENDING_APPROVAL_PATH = "/pending-approval"
DEFAULT_DASHBOARD = "/dashboard"

ROLE_DASHBOARDS: dict[Role, str] = {
    Role.SUPER_ADMIN: "/super-admin/dashboard",
    Role.ADMIN: "/admin/dashboard",
    Role.TEACHER: "/teacher/dashboard",
    Role.STUDENT: "/student/dashboard",
    Role.PARENT: "/parent/dashboard",
}


def role_dashboard(role: Union[Role, str, None]) -> str:
    """Return the canonical landing path for a role.

    Total function: every known role maps to exactly one path; everything else
    (UNKNOWN, None, arbitrary strings) lands on the generic dashboard.
    """
    return ROLE_DASHBOARDS.get(Role.parse(role), DEFAULT_DASHBOARD)


__all__ = [
    "Role",
    "KNOWN_ROLES",
    "ALLOWED_ROLES",
    "LOGIN_PATH",
    "PENDING_APPROVAL_PATH",
    "DEFAULT_DASHBOARD",
    "ROLE_DASHBOARDS",
    "role_dashboard",
]
