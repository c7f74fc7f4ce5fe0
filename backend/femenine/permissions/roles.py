# Overview: Closed role enumeration and the role -> permission capability table.

from enum import Enum

from .definitions import PERMISSION_DEFINITIONS


class Role(str, Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    EMPLOYEE = "EMPLOYEE"

    @classmethod
    def parse(cls, value) -> "Role":
        """Parse a role name case-insensitively. Raises ValueError if unknown."""
        if isinstance(value, Role):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            allowed = ", ".join(r.value for r in cls)
            raise ValueError(f"Unknown role {value!r} (expected one of: {allowed})")


_ALL_CODES = frozenset(perm[0] for perm in PERMISSION_DEFINITIONS)

# Single source of truth for what each role may do.
ROLE_PERMISSIONS: dict[Role, frozenset[str]] = {
    Role.ADMIN: _ALL_CODES,
    Role.MANAGER: _ALL_CODES - {
        "DELETE_PRODUCTS",
        "VIEW_USERS",
        "MANAGE_USERS",
        "VIEW_LOGS",
        "MANAGE_SETTINGS",
    },
    Role.EMPLOYEE: frozenset({
        "VIEW_PRODUCTS",
        "VIEW_INVENTORY",
        "PRINT_LABELS",
        "VIEW_SALES",
        "CREATE_SALES",
    }),
}
