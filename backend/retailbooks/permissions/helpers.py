# Overview: Permission lookups used by authorization and the role catalogue routes.

from .definitions import PERMISSION_DEFINITIONS, PERMISSION_FEATURES
from .roles import ALL_PERMISSION_CODES, DEFAULT_ROLE_PERMISSIONS


def _as_dict(perm) -> dict:
    code, name, description, category = perm
    return {
        "code": code,
        "name": name,
        "description": description,
        "category": category,
        "feature": PERMISSION_FEATURES.get(code),
    }


def get_permission_catalogue(category: str | None = None) -> list[dict]:
    """Permission definitions, optionally limited to one category, in definition order."""
    return [_as_dict(perm) for perm in PERMISSION_DEFINITIONS if category is None or perm[3] == category]


def get_permission_categories() -> list[str]:
    seen = []
    for perm in PERMISSION_DEFINITIONS:
        if perm[3] not in seen:
            seen.append(perm[3])
    return seen


def validate_permission_code(code) -> bool:
    return code in ALL_PERMISSION_CODES


def get_role_permissions(role) -> set[str]:
    """Permission codes granted to a role (empty for unknown roles)."""
    return set(DEFAULT_ROLE_PERMISSIONS.get(role, ()))
