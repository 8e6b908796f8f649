"""Role-based access control for Lekol Alez.

Hierarchical roles:
- ADMIN (level 3): Full system access, certificate revocation
- INSTRUCTOR (level 2): Authors and edits own courses
- STUDENT (level 1): Enrolls in courses and tracks progress
"""

from enum import Enum


class UserRole(str, Enum):
    """User roles, higher level means more permissions."""

    STUDENT = "student"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"


ROLE_HIERARCHY: dict[UserRole, int] = {
    UserRole.STUDENT: 1,
    UserRole.INSTRUCTOR: 2,
    UserRole.ADMIN: 3,
}


def get_role_level(role: UserRole | str) -> int:
    """Permission level for a role, 0 for unknown roles."""
    if isinstance(role, str):
        try:
            role = UserRole(role)
        except ValueError:
            return 0
    return ROLE_HIERARCHY.get(role, 0)


def has_permission(user_role: UserRole | str, required_role: UserRole | str) -> bool:
    """Check if user has at least the required permission level.

    Examples:
        >>> has_permission(UserRole.ADMIN, UserRole.INSTRUCTOR)
        True
        >>> has_permission("student", "instructor")
        False
    """
    return get_role_level(user_role) >= get_role_level(required_role)


def is_admin(role: UserRole | str) -> bool:
    return get_role_level(role) == ROLE_HIERARCHY[UserRole.ADMIN]
