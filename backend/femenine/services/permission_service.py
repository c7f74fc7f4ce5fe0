# Overview: Role-based permission checks.

"""
Permission checking

Fail closed: a user gets exactly the permissions its role grants in
ROLE_PERMISSIONS and nothing else. This module is the single place where
role -> capability resolution happens; routes go through the decorators in
decorators.py, which call user_has_permission once per request.
"""

from flask import current_app

from ..models import User
from ..permissions import Role, ROLE_PERMISSIONS, get_permission_definition


class PermissionDeniedError(Exception):
    """Raised when user lacks required permission."""

    def __init__(self, permission_code: str, message: str | None = None):
        super().__init__(message or f"Missing permission: {permission_code}")
        self.permission_code = permission_code


def get_role_permissions(role: Role) -> frozenset[str]:
    return ROLE_PERMISSIONS.get(Role.parse(role), frozenset())


def get_user_permissions(user: User | None) -> set[str]:
    """
    Get all permission codes for a user.

    Inactive or missing users have no permissions.
    """
    if user is None or not user.is_active or user.role is None:
        return set()
    return set(get_role_permissions(user.role))


def user_has_permission(user: User | None, permission_code: str) -> bool:
    """Core permission check. Used by decorators and manual checks."""
    return permission_code in get_user_permissions(user)


def require_permission(user: User | None, permission_code: str, resource: str | None = None) -> None:
    """
    Raise PermissionDeniedError unless the user holds permission_code.

    Denials are logged at WARNING; grants are not logged.
    """
    if user_has_permission(user, permission_code):
        return
    current_app.logger.warning(
        "Permission denied: user_id=%s permission=%s resource=%s",
        user.id if user else None,
        permission_code,
        resource,
    )
    raise PermissionDeniedError(permission_code)


def describe_permissions(user: User) -> list[dict]:
    """Full definitions for the user's permissions, sorted by code."""
    return [get_permission_definition(code) for code in sorted(get_user_permissions(user))]
