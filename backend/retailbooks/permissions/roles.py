# Overview: Default permission sets per role.

from .definitions import PERMISSION_DEFINITIONS

ALL_PERMISSION_CODES = frozenset(perm[0] for perm in PERMISSION_DEFINITIONS)

# Roles whose permission set is every permission in the system
FULL_ACCESS_ROLES = ("super_admin", "tenant_admin")

_MANAGER_EXCLUDED = {"users.manage", "tenant.manage", "security.view"}

_USER_PERMISSIONS = {
    "products.view",
    "warehouses.view",
    "customers.view",
    "customers.manage",
    "sales.view",
    "sales.create",
    "returns.view",
    "returns.create",
    "quotes.view",
    "quotes.manage",
    "payments.view",
    "payments.create",
    "edocuments.view",
    "tenant.view",
}

DEFAULT_ROLE_PERMISSIONS = {
    "super_admin": ALL_PERMISSION_CODES,
    "tenant_admin": ALL_PERMISSION_CODES,
    "manager": ALL_PERMISSION_CODES - _MANAGER_EXCLUDED,
    "user": frozenset(_USER_PERMISSIONS),
}
