# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- PRODUCTS --

PRODUCT_PERMISSIONS = [
    (
        "VIEW_PRODUCTS",
        "View Products",
        "View the product list, product details and catalogs",
        PermissionCategory.PRODUCTS,
    ),
    (
        "CREATE_PRODUCTS",
        "Create Products",
        "Create products individually, in batches or by import",
        PermissionCategory.PRODUCTS,
    ),
    (
        "EDIT_PRODUCTS",
        "Edit Products",
        "Edit product data and reactivate deactivated products",
        PermissionCategory.PRODUCTS,
    ),
    (
        "DELETE_PRODUCTS",
        "Delete Products",
        "Delete products, or deactivate them when they have history",
        PermissionCategory.PRODUCTS,
    ),
    (
        "MANAGE_CATALOG",
        "Manage Catalog",
        "Create, edit and delete brands, categories and suppliers",
        PermissionCategory.PRODUCTS,
    ),
]


# -- INVENTORY --

INVENTORY_PERMISSIONS = [
    (
        "VIEW_INVENTORY",
        "View Inventory",
        "View stock levels and low-stock alerts",
        PermissionCategory.INVENTORY,
    ),
    (
        "MANAGE_INVENTORY",
        "Manage Inventory",
        "Restock products (incoming stock)",
        PermissionCategory.INVENTORY,
    ),
    (
        "PRINT_LABELS",
        "Print Labels",
        "Print barcode labels for products",
        PermissionCategory.INVENTORY,
    ),
]


# -- SALES --

SALES_PERMISSIONS = [
    (
        "VIEW_SALES",
        "View Sales",
        "View sales history (own sales only without VIEW_ALL_SALES)",
        PermissionCategory.SALES,
    ),
    (
        "CREATE_SALES",
        "Create Sales",
        "Register sales at the point of sale",
        PermissionCategory.SALES,
    ),
    (
        "VIEW_ALL_SALES",
        "View All Sales",
        "View sales registered by any user",
        PermissionCategory.SALES,
    ),
]


# -- REPORTS --

REPORT_PERMISSIONS = [
    (
        "VIEW_REPORTS",
        "View Reports",
        "Access sales statistics",
        PermissionCategory.REPORTS,
    ),
    (
        "EXPORT_DATA",
        "Export Data",
        "Download CSV/XLSX exports",
        PermissionCategory.REPORTS,
    ),
]


# -- USERS --

USER_PERMISSIONS = [
    (
        "VIEW_USERS",
        "View Users",
        "View user accounts",
        PermissionCategory.USERS,
    ),
    (
        "MANAGE_USERS",
        "Manage Users",
        "Create, edit, deactivate and delete user accounts",
        PermissionCategory.USERS,
    ),
]


# -- SYSTEM --

SYSTEM_PERMISSIONS = [
    (
        "VIEW_LOGS",
        "View Activity Logs",
        "View the activity audit trail",
        PermissionCategory.SYSTEM,
    ),
    (
        "VIEW_SETTINGS",
        "View Settings",
        "Read system configuration",
        PermissionCategory.SYSTEM,
    ),
    (
        "MANAGE_SETTINGS",
        "Manage Settings",
        "Change system configuration",
        PermissionCategory.SYSTEM,
    ),
]


PERMISSION_DEFINITIONS = (
    PRODUCT_PERMISSIONS
    + INVENTORY_PERMISSIONS
    + SALES_PERMISSIONS
    + REPORT_PERMISSIONS
    + USER_PERMISSIONS
    + SYSTEM_PERMISSIONS
)
