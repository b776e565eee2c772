# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import request, g

from .responses import fail
from .services import session_service, permission_service, tenant_service
from .services.session_service import SessionContext, SessionError
from .services.tenant_service import IMPERSONATION_HEADER, TenantAccessError


def _is_authenticated() -> bool:
    return getattr(g, "context", None) is not None


def _request_meta() -> dict:
    return {
        "resource": request.path,
        "action": request.method,
        "ip_address": request.remote_addr,
        "user_agent": request.headers.get("User-Agent"),
    }


def require_auth(f):
    """
    Require a valid access token and establish the request context.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.context: SessionContext(user, session, tenant, impersonating)
    - g.current_user: the authenticated User
    - g.tenant_id: the effective tenant id (None for a super_admin acting
      without an impersonation header)

    SECURITY: Returns
    - 401 for a missing, invalid or revoked token
    - 401 with code TOKEN_EXPIRED for an expired access token
    - 403 when the tenant is suspended, cancelled or past its trial
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return fail("Authentication required", 401, "UNAUTHORIZED")

        token = auth_header.split(" ", 1)[1].strip()
        try:
            user, session = session_service.validate_access_token(token)
        except SessionError as e:
            if e.reason == "expired":
                return fail("Access token expired", 401, "TOKEN_EXPIRED")
            return fail("Invalid or expired token", 401, "UNAUTHORIZED")

        try:
            tenant, impersonating = tenant_service.resolve_request_tenant(
                user, request.headers.get(IMPERSONATION_HEADER)
            )
        except TenantAccessError:
            return fail("Tenant not found", 404, "NOT_FOUND")

        if tenant is not None and not tenant.is_usable:
            permission_service.log_security_event(
                user_id=user.id,
                event_type="TENANT_INACTIVE",
                success=False,
                reason=f"tenant status {tenant.status}",
                tenant_id=tenant.id,
                **_request_meta(),
            )
            return fail("Tenant account is not active", 403, "TENANT_INACTIVE")

        context = SessionContext(user=user, session=session, tenant=tenant, impersonating=impersonating)
        g.context = context
        g.current_user = user
        g.tenant_id = context.tenant_id

        return f(*args, **kwargs)

    return decorated_function


def require_tenant(f):
    """Refuse requests that have no tenant context (a super_admin must impersonate)."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return fail("Authentication required", 401, "UNAUTHORIZED")
        if g.context.tenant is None:
            return fail(
                f"Tenant context required; send the {IMPERSONATION_HEADER} header",
                400,
                "TENANT_REQUIRED",
            )
        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_code: str):
    """
    Require a permission code, evaluated against role and plan.

    Denials are logged as security events and answered with 403
    PERMISSION_DENIED or FEATURE_NOT_AVAILABLE.
    """
    def decorator(f):
        @wraps(f)
        @require_tenant
        def decorated_function(*args, **kwargs):
            context = g.context
            decision = permission_service.evaluate(context, permission_code)
            if decision.allowed:
                return f(*args, **kwargs)

            event_type = "FEATURE_NOT_AVAILABLE" if decision.reason == "feature" else "PERMISSION_DENIED"
            permission_service.log_security_event(
                user_id=context.user.id,
                event_type=event_type,
                success=False,
                reason=f"{permission_code} ({decision.reason})",
                tenant_id=context.tenant_id,
                **_request_meta(),
            )

            if decision.reason == "feature":
                return fail(
                    f"Your plan does not include the '{decision.feature}' feature",
                    403,
                    "FEATURE_NOT_AVAILABLE",
                    {"feature": decision.feature, "required_permission": permission_code},
                )
            return fail(
                "Permission denied",
                403,
                "PERMISSION_DENIED",
                {"required_permission": permission_code},
            )

        return decorated_function
    return decorator


def require_super_admin(f):
    """Platform administration routes."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return fail("Authentication required", 401, "UNAUTHORIZED")
        user = g.current_user
        if not user.is_super_admin:
            permission_service.log_security_event(
                user_id=user.id,
                event_type="PERMISSION_DENIED",
                success=False,
                reason="super_admin required",
                tenant_id=user.tenant_id,
                **_request_meta(),
            )
            return fail("Permission denied", 403, "PERMISSION_DENIED")
        return f(*args, **kwargs)

    return decorated_function
