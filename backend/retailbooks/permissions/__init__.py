# Overview: Permission system package.
# Re-exports the lookups used by services and routes.

from .categories import PermissionCategory
from .definitions import PERMISSION_DEFINITIONS, PERMISSION_FEATURES
from .roles import DEFAULT_ROLE_PERMISSIONS, FULL_ACCESS_ROLES, ALL_PERMISSION_CODES
from .helpers import (
    get_permission_catalogue,
    get_permission_categories,
    get_role_permissions,
    validate_permission_code,
)

__all__ = [
    "PermissionCategory",
    "PERMISSION_DEFINITIONS",
    "PERMISSION_FEATURES",
    "DEFAULT_ROLE_PERMISSIONS",
    "FULL_ACCESS_ROLES",
    "ALL_PERMISSION_CODES",
    "get_permission_catalogue",
    "get_permission_categories",
    "get_role_permissions",
    "validate_permission_code",
]
