# Overview: Flask API routes for tenant user management.

from flask import Blueprint, request, g, current_app

from ..services import auth_service
from ..services.tenant_service import get_owned_or_404, scoped_query
from ..models import User
from ..models.auth import ROLES
from ..permissions import FULL_ACCESS_ROLES, get_permission_catalogue, get_permission_categories, get_role_permissions
from ..validation import DomainError
from ..decorators import require_auth, require_permission
from ..responses import ok, fail, error_response
from .common import list_params
from ..services.pagination import paginate

users_bp = Blueprint("users", __name__, url_prefix="/api/users")

USER_SORT_FIELDS = {
    "created_at": User.created_at,
    "email": User.email,
    "full_name": User.full_name,
    "role": User.role,
}


@users_bp.get("")
@require_auth
@require_permission("users.view")
def list_users_route():
    try:
        rows, meta = paginate(scoped_query(User, g.tenant_id), list_params(), USER_SORT_FIELDS, "created_at")
        return ok([u.to_dict() for u in rows], meta=meta)
    except DomainError as e:
        return error_response(e)


@users_bp.post("")
@require_auth
@require_permission("users.manage")
def create_user_route():
    """Body: {"email", "password", "full_name", "role"?}. Counts against maxUsers."""
    payload = request.get_json(silent=True) or {}
    try:
        user = auth_service.create_user(
            email=payload.get("email"),
            password=payload.get("password"),
            full_name=payload.get("full_name"),
            role=payload.get("role") or "user",
            tenant=g.context.tenant,
        )
        current_app.logger.info("User %s created in tenant %s by %s", user.id, g.tenant_id, g.current_user.id)
        return ok(user.to_dict(), 201)
    except DomainError as e:
        return error_response(e)


@users_bp.patch("/<int:user_id>")
@require_auth
@require_permission("users.manage")
def update_user_route(user_id: int):
    """Body: any of role, is_active, full_name, password."""
    payload = request.get_json(silent=True) or {}
    try:
        user = get_owned_or_404(User, user_id, g.tenant_id, label="User")
        user = auth_service.update_user(user, payload)
        return ok(user.to_dict())
    except DomainError as e:
        return error_response(e)


@users_bp.get("/roles")
@require_auth
@require_permission("users.view")
def list_roles_route():
    """Tenant roles with the permission codes each one holds."""
    roles = []
    for role in ROLES:
        if role == "super_admin":
            continue
        codes = sorted(get_role_permissions(role))
        roles.append({
            "role": role,
            "full_access": role in FULL_ACCESS_ROLES,
            "permission_count": len(codes),
            "permissions": codes,
        })
    return ok(roles)


@users_bp.get("/permissions")
@require_auth
@require_permission("users.view")
def list_permissions_route():
    """
    Permission catalogue.

    Query params:
    - category: str - filter by category
    """
    category = request.args.get("category")
    if category and category not in get_permission_categories():
        return fail(f"Unknown category: {category}", 400, "VALIDATION_ERROR")
    return ok(get_permission_catalogue(category), meta={"categories": get_permission_categories()})
