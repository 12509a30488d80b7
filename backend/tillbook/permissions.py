"""
Capability definitions for the back office.

WHY: Centralized permission codes keep route guards and service checks
consistent. Roles map to capabilities here; there is no per-user override
table, a user's capabilities are exactly those of their role.

DESIGN PRINCIPLES:
- Permissions are granular (one action per permission)
- Default role mappings follow principle of least privilege
- Reopening a closed day is an admin-only capability
"""


class PermissionCategory:
    """Permission categories for organization."""
    DAY_OPERATIONS = "DAY_OPERATIONS"
    PRICING = "PRICING"
    SYSTEM = "SYSTEM"


# Each permission is defined as: (code, name, description, category)
PERMISSION_DEFINITIONS = [
    (
        "VIEW_DAY",
        "View Day Operations",
        "View day status, history and reconciliation snapshots",
        PermissionCategory.DAY_OPERATIONS,
    ),
    (
        "OPEN_DAY",
        "Open Day",
        "Open a store's trading day with opening balances",
        PermissionCategory.DAY_OPERATIONS,
    ),
    (
        "CLOSE_DAY",
        "Close Day",
        "Count the till and close the trading day",
        PermissionCategory.DAY_OPERATIONS,
    ),
    (
        "RECORD_MOVEMENT",
        "Record Cash Movement",
        "Record owner deposits/withdrawals, expenses and transfers",
        PermissionCategory.DAY_OPERATIONS,
    ),
    (
        "REOPEN_DAY",
        "Reopen Day",
        "Reopen a closed trading day (elevated)",
        PermissionCategory.DAY_OPERATIONS,
    ),
    (
        "CALCULATE_PRICING",
        "Calculate Pricing",
        "Run VAT and discount calculations",
        PermissionCategory.PRICING,
    ),
    (
        "VIEW_PROMOTIONS",
        "View Promotions",
        "List promotions and evaluate carts",
        PermissionCategory.PRICING,
    ),
    (
        "MANAGE_PROMOTIONS",
        "Manage Promotions",
        "Create and edit promotions",
        PermissionCategory.PRICING,
    ),
    (
        "MANAGE_VAT",
        "Manage VAT",
        "Create and edit VAT configurations",
        PermissionCategory.PRICING,
    ),
    (
        "SYSTEM_ADMIN",
        "System Administration",
        "Act on any store",
        PermissionCategory.SYSTEM,
    ),
]

_CASHIER = [
    "VIEW_DAY",
    "OPEN_DAY",
    "CLOSE_DAY",
    "RECORD_MOVEMENT",
    "CALCULATE_PRICING",
    "VIEW_PROMOTIONS",
]

_MANAGER = _CASHIER + [
    "MANAGE_PROMOTIONS",
    "MANAGE_VAT",
]

DEFAULT_ROLE_PERMISSIONS = {
    "cashier": _CASHIER,
    "manager": _MANAGER,
    # Admin gets ALL permissions
    "admin": [code for code, _, _, _ in PERMISSION_DEFINITIONS],
}

ROLES = tuple(DEFAULT_ROLE_PERMISSIONS)


def permissions_for_role(role: str | None) -> set[str]:
    return set(DEFAULT_ROLE_PERMISSIONS.get(role or "", []))
