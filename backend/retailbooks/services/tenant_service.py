"""
Multi-Tenant Service: Tenant Resolution and Scoping Helpers

WHY: Centralize tenant validation logic for reuse across services and routes.
Every request is scoped to one tenant and cross-tenant access is denied.

SECURITY INVARIANTS:
1. Every authenticated business request has a SessionContext with a tenant
2. Ids from client input are resolved with get_owned_or_404(model, id, tenant_id)
3. A row owned by another tenant is reported exactly like a missing row
4. Cross-tenant lookups are logged as security events

USAGE:
    from retailbooks.services.tenant_service import get_owned_or_404, scoped_query

    product = get_owned_or_404(Product, product_id, tenant_id, label="Product")
    customers = scoped_query(Customer, tenant_id).filter_by(is_active=True).all()
"""

from __future__ import annotations

from flask import g, request, has_request_context

from ..extensions import db
from ..models import Tenant
from ..validation import NotFoundError
from .concurrency import lock_for_update
from .permission_service import log_security_event

IMPERSONATION_HEADER = "X-Impersonate-Tenant"


class TenantAccessError(NotFoundError):
    """Raised when a tenant-owned row is missing or belongs to another tenant."""


def get_current_tenant_id() -> int:
    """
    Get the effective tenant id of the current request.

    SECURITY: Raises TenantAccessError if no tenant context was established.
    """
    context = getattr(g, "context", None)
    if context is None or context.tenant_id is None:
        raise TenantAccessError("Tenant context not established")
    return context.tenant_id


def scoped_query(model, tenant_id: int | None = None):
    """
    Base query for a tenant-owned model, filtered to one tenant.

    Usage:
        products = scoped_query(Product, tenant_id).filter_by(is_active=True).all()
    """
    if tenant_id is None:
        tenant_id = get_current_tenant_id()
    return db.session.query(model).filter(model.tenant_id == tenant_id)


def get_owned_or_404(model, object_id, tenant_id: int, *, label: str | None = None, lock: bool = False):
    """
    Load a row by id only if it belongs to tenant_id.

    Args:
        model: tenant-owned SQLAlchemy model
        object_id: id from client input
        tenant_id: caller's tenant
        label: human name used in the error message
        lock: take a row lock (SELECT ... FOR UPDATE) for counter updates

    Raises:
        TenantAccessError if the row doesn't exist or belongs to another tenant
    """
    label = label or model.__name__
    if object_id is None:
        raise TenantAccessError(f"{label} not found")

    query = db.session.query(model).filter(model.id == object_id, model.tenant_id == tenant_id)
    if lock:
        query = lock_for_update(query)
    obj = query.first()
    if obj is not None:
        return obj

    owner = db.session.query(model.tenant_id).filter(model.id == object_id).scalar()
    if owner is not None:
        _log_cross_tenant_attempt(
            f"{label} {object_id} belongs to tenant {owner}, not {tenant_id}",
            tenant_id=tenant_id,
        )
    raise TenantAccessError(f"{label} not found")  # Don't reveal it exists in another tenant


def get_tenant(tenant_id: int) -> Tenant:
    tenant = db.session.get(Tenant, tenant_id)
    if tenant is None:
        raise TenantAccessError("Tenant not found")
    return tenant


def find_tenant(identifier: str | int | None) -> Tenant | None:
    """Look up a tenant by numeric id or slug."""
    if identifier is None:
        return None
    raw = str(identifier).strip()
    if not raw:
        return None
    if raw.isdigit():
        return db.session.get(Tenant, int(raw))
    return db.session.query(Tenant).filter_by(slug=raw).first()


def resolve_request_tenant(user, impersonate: str | None) -> tuple[Tenant | None, bool]:
    """
    Decide the effective tenant for a request.

    Returns (tenant, impersonating). The impersonation header is honoured only
    for super_admin users; for anyone else it is ignored and logged.
    """
    if impersonate:
        if user.is_super_admin:
            tenant = find_tenant(impersonate)
            if tenant is None:
                raise TenantAccessError("Tenant not found")
            log_security_event(
                user_id=user.id,
                event_type="IMPERSONATION_STARTED",
                success=True,
                resource=request.path if has_request_context() else None,
                action=request.method if has_request_context() else None,
                reason=f"super_admin acting as tenant {tenant.id}",
                tenant_id=tenant.id,
            )
            return tenant, True

        log_security_event(
            user_id=user.id,
            event_type="IMPERSONATION_DENIED",
            success=False,
            resource=request.path if has_request_context() else None,
            action=request.method if has_request_context() else None,
            reason=f"role {user.role} may not impersonate",
            tenant_id=user.tenant_id,
        )

    if user.tenant_id is None:
        return None, False
    return db.session.get(Tenant, user.tenant_id), False


def _log_cross_tenant_attempt(reason: str, tenant_id: int | None = None) -> None:
    """
    Queue a cross-tenant access attempt as a security event.

    Deferred because it is raised from inside units of work that will roll back.
    """
    context = getattr(g, "context", None)
    user_id = context.user.id if context is not None else None

    in_request = has_request_context()
    log_security_event(
        user_id=user_id,
        event_type="CROSS_TENANT_ACCESS_DENIED",
        success=False,
        resource=request.path if in_request else None,
        action=request.method if in_request else None,
        reason=reason,
        ip_address=request.remote_addr if in_request else None,
        user_agent=request.headers.get("User-Agent") if in_request else None,
        tenant_id=tenant_id,
        defer=True,
    )
