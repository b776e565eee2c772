# Overview: Flask API routes for platform administration (tenants and plans).

"""
Platform administration.

SECURITY: super_admin only. These routes are not tenant-scoped and never
honour the impersonation header's tenant for their own queries.
"""

from flask import Blueprint, request

from ..services import plan_service, tenant_admin_service
from ..validation import DomainError
from ..decorators import require_auth, require_super_admin
from ..responses import ok, error_response
from .common import list_params

admin_bp = Blueprint("admin", __name__, url_prefix="/api")


@admin_bp.get("/plans")
@require_auth
def list_plans_route():
    """Plan catalogue; readable by any authenticated user."""
    return ok([p.to_dict() for p in plan_service.list_plans()])


@admin_bp.get("/admin/tenants")
@require_auth
@require_super_admin
def list_tenants_route():
    try:
        rows, meta = tenant_admin_service.list_tenants(list_params(), {
            "status": request.args.get("status"),
            "search": request.args.get("search"),
        })
        return ok([t.to_dict() for t in rows], meta=meta)
    except DomainError as e:
        return error_response(e)


@admin_bp.post("/admin/tenants")
@require_auth
@require_super_admin
def create_tenant_route():
    """
    Body: {"name", "slug", "plan_code"?, "billing_email"?, "domain"?, "trial"?,
           "admin_email", "admin_password", "admin_full_name"?}
    """
    payload = request.get_json(silent=True) or {}
    try:
        tenant, admin = tenant_admin_service.create_tenant(payload)
        return ok({"tenant": tenant.to_dict(), "admin": admin.to_dict()}, 201)
    except DomainError as e:
        return error_response(e)


@admin_bp.patch("/admin/tenants/<int:tenant_id>")
@require_auth
@require_super_admin
def update_tenant_route(tenant_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        tenant = tenant_admin_service.admin_update_tenant(tenant_id, payload)
        return ok(tenant.to_dict())
    except DomainError as e:
        return error_response(e)
