# Overview: Permission category constants for grouping related permissions.


class PermissionCategory:
    """Permission categories for organization and UI display."""
    PRODUCTS = "PRODUCTS"
    INVENTORY = "INVENTORY"
    SALES = "SALES"
    REPORTS = "REPORTS"
    USERS = "USERS"
    SYSTEM = "SYSTEM"
