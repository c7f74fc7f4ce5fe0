# Overview: Permission system package.
# Re-exports all public APIs.

from .categories import PermissionCategory
from .definitions import (
    PERMISSION_DEFINITIONS,
    PRODUCT_PERMISSIONS,
    INVENTORY_PERMISSIONS,
    SALES_PERMISSIONS,
    REPORT_PERMISSIONS,
    USER_PERMISSIONS,
    SYSTEM_PERMISSIONS,
)
from .roles import Role, ROLE_PERMISSIONS
from .helpers import (
    get_all_permission_codes,
    get_permission_definition,
)

__all__ = [
    "PermissionCategory",
    "PERMISSION_DEFINITIONS",
    "PRODUCT_PERMISSIONS",
    "INVENTORY_PERMISSIONS",
    "SALES_PERMISSIONS",
    "REPORT_PERMISSIONS",
    "USER_PERMISSIONS",
    "SYSTEM_PERMISSIONS",
    "Role",
    "ROLE_PERMISSIONS",
    "get_all_permission_codes",
    "get_permission_definition",
]
