# Overview: Flask API routes for tenant self-service (profile, plan usage, security events).

from flask import Blueprint, request, g

from ..services import plan_service, tenant_admin_service
from ..services.tenant_service import scoped_query
from ..services.pagination import paginate
from ..models import SecurityEvent
from ..validation import DomainError
from ..decorators import require_auth, require_permission
from ..responses import ok, error_response
from .common import list_params, bool_arg

tenant_bp = Blueprint("tenant", __name__, url_prefix="/api/tenant")


@tenant_bp.get("")
@require_auth
@require_permission("tenant.view")
def get_tenant_route():
    tenant = g.context.tenant
    data = tenant.to_dict()
    data["plan"] = tenant.plan.to_dict() if tenant.plan else None
    return ok(data)


@tenant_bp.patch("")
@require_auth
@require_permission("tenant.manage")
def update_tenant_route():
    """Body: any of name, billing_email, settings (merged)."""
    payload = request.get_json(silent=True) or {}
    try:
        tenant = tenant_admin_service.update_own_tenant(g.context.tenant, payload)
        return ok(tenant.to_dict())
    except DomainError as e:
        return error_response(e)


@tenant_bp.get("/usage")
@require_auth
@require_permission("tenant.view")
def tenant_usage_route():
    return ok(plan_service.get_usage(g.context.tenant))


@tenant_bp.get("/security-events")
@require_auth
@require_permission("security.view")
def security_events_route():
    """Filters: event_type, success."""
    try:
        query = scoped_query(SecurityEvent, g.tenant_id)
        event_type = request.args.get("event_type")
        if event_type:
            query = query.filter(SecurityEvent.event_type == event_type)
        success = bool_arg("success")
        if success is not None:
            query = query.filter(SecurityEvent.success.is_(success))
        rows, meta = paginate(query, list_params(), {"occurred_at": SecurityEvent.occurred_at}, "occurred_at")
        return ok([e.to_dict() for e in rows], meta=meta)
    except DomainError as e:
        return error_response(e)
