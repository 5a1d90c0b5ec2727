"""
Role and capability table (``inventory_kernel.domain.roles``).

Responsibility
--------------
Typed enumeration of user roles and of the capability flags each role
holds, with a pure lookup function.  The authentication subsystem decides
*which* role an actor has; this module only answers "may a holder of role R
do C?".

Architecture position
---------------------
**Kernel domain layer** -- pure data.  ZERO I/O.
"""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """User roles known to the inventory system."""

    CEO = "ceo"
    MARKETER = "marketer"
    SALES_MANAGER = "salesManager"
    STOCK_MANAGER = "stockManager"
    ADMIN = "admin"
    MEDICAL_REP = "medicalRep"
    PRODUCT_MANAGER = "productManager"
    STOCK_KEEPER = "stockKeeper"


class Capability(str, Enum):
    """Capability flags a role may hold."""

    VIEW_ALL = "canViewAll"
    ADD_ITEMS = "canAddItems"
    EDIT_ITEMS = "canEditItems"
    REMOVE_ITEMS = "canRemoveItems"
    MOVE_STOCK = "canMoveStock"
    MANAGE_USERS = "canManageUsers"
    VIEW_REPORTS = "canViewReports"
    ACCESS_SETTINGS = "canAccessSettings"
    MANAGE_SPECIALTIES = "canManageSpecialties"
    VIEW_ALLOCATED_INVENTORY = "canViewAllocatedInventory"
    EXPORT_DATA = "canExportData"
    CREATE_REQUESTS = "canCreateRequests"
    UPLOAD_FILES = "canUploadFiles"
    SHARE_INVENTORY = "canShareInventory"
    MANAGE_REQUESTS = "canManageRequests"
    RESTOCK_INVENTORY = "canRestockInventory"
    VALIDATE_INVENTORY = "canValidateInventory"


_C = Capability

ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.CEO: frozenset({
        _C.VIEW_ALL, _C.ADD_ITEMS, _C.EDIT_ITEMS, _C.REMOVE_ITEMS,
        _C.MOVE_STOCK, _C.MANAGE_USERS, _C.VIEW_REPORTS,
        _C.ACCESS_SETTINGS, _C.MANAGE_SPECIALTIES,
    }),
    Role.MARKETER: frozenset({
        _C.VIEW_REPORTS, _C.VIEW_ALLOCATED_INVENTORY, _C.EXPORT_DATA,
    }),
    Role.SALES_MANAGER: frozenset({
        _C.ADD_ITEMS, _C.EDIT_ITEMS, _C.REMOVE_ITEMS, _C.MOVE_STOCK,
    }),
    Role.STOCK_MANAGER: frozenset({
        _C.ADD_ITEMS, _C.EDIT_ITEMS, _C.REMOVE_ITEMS, _C.ACCESS_SETTINGS,
    }),
    Role.ADMIN: frozenset({
        _C.ADD_ITEMS, _C.EDIT_ITEMS, _C.REMOVE_ITEMS, _C.MANAGE_USERS,
        _C.VIEW_REPORTS, _C.ACCESS_SETTINGS, _C.MANAGE_SPECIALTIES,
    }),
    Role.MEDICAL_REP: frozenset(),
    Role.PRODUCT_MANAGER: frozenset({
        _C.ADD_ITEMS, _C.EDIT_ITEMS, _C.MOVE_STOCK, _C.VIEW_REPORTS,
        _C.CREATE_REQUESTS, _C.UPLOAD_FILES, _C.SHARE_INVENTORY,
    }),
    Role.STOCK_KEEPER: frozenset({
        _C.VIEW_ALL, _C.ADD_ITEMS, _C.EDIT_ITEMS, _C.REMOVE_ITEMS,
        _C.MOVE_STOCK, _C.VIEW_REPORTS, _C.MANAGE_REQUESTS,
        _C.RESTOCK_INVENTORY, _C.VALIDATE_INVENTORY,
    }),
}


def has_capability(role: Role | str, capability: Capability | str) -> bool:
    """Return True iff ``role`` holds ``capability``.

    Unknown role or capability names are never granted anything.
    """
    try:
        role = Role(role)
        capability = Capability(capability)
    except ValueError:
        return False
    return capability in ROLE_CAPABILITIES[role]


def display_name(role: Role) -> str:
    """Human-readable role name."""
    return _DISPLAY_NAMES[role]


_DISPLAY_NAMES: dict[Role, str] = {
    Role.CEO: "CEO",
    Role.MARKETER: "Marketer",
    Role.SALES_MANAGER: "Sales Manager",
    Role.STOCK_MANAGER: "Stock Manager",
    Role.ADMIN: "Admin",
    Role.MEDICAL_REP: "Medical Representative",
    Role.PRODUCT_MANAGER: "Product Manager",
    Role.STOCK_KEEPER: "Stock Keeper",
}
