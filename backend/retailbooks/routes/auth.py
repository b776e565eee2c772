# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

SECURITY FEATURES:
- Login throttling and temporary lockout after repeated failures
- Opaque access/refresh tokens, stored hashed
- Refresh rotates both tokens; logout revokes the session
"""

from flask import Blueprint, request, current_app, g

from ..services import auth_service, session_service, login_throttle_service, permission_service
from ..services.session_service import SessionContext, SessionError
from ..decorators import require_auth
from ..responses import ok, fail, internal_error
from ..extensions import db
from ..models import Tenant


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _session_payload(user, session, tokens) -> dict:
    tenant = db.session.get(Tenant, user.tenant_id) if user.tenant_id else None
    context = SessionContext(user=user, session=session, tenant=tenant)
    data = tokens.to_dict()
    data.update({
        "user": user.to_dict(),
        "tenant": tenant.to_dict() if tenant else None,
        "permissions": permission_service.list_context_permissions(context),
    })
    return data


@auth_bp.post("/login")
def login_route():
    """
    Authenticate and open a session.

    Body: {"email", "password", "tenant_slug"?}
    Returns the token pair, user, tenant and usable permissions.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")
        tenant_slug = (data.get("tenant_slug") or "").strip() or None
        if not email or not password:
            return fail("email and password are required", 400, "VALIDATION_ERROR")

        user_agent = request.headers.get("User-Agent")
        ip_address = request.remote_addr
        identifier = login_throttle_service.login_identifier(email, tenant_slug)

        is_locked, seconds_remaining = login_throttle_service.is_account_locked(identifier)
        if is_locked:
            return fail(
                "Account temporarily locked due to too many failed login attempts",
                429,
                "ACCOUNT_LOCKED",
                {"retry_after_seconds": seconds_remaining},
            )

        user = auth_service.authenticate(email, password, tenant_slug=tenant_slug)
        if not user:
            failed_count = login_throttle_service.record_failed_attempt(
                identifier, ip_address=ip_address, user_agent=user_agent
            )
            remaining = login_throttle_service.MAX_FAILED_ATTEMPTS - failed_count
            if remaining <= 0:
                return fail("Account locked due to too many failed login attempts", 429, "ACCOUNT_LOCKED")
            return fail("Invalid credentials", 401, "INVALID_CREDENTIALS")

        login_throttle_service.record_successful_login(
            user, identifier, ip_address=ip_address, user_agent=user_agent
        )
        session, tokens = session_service.create_session(user, user_agent=user_agent, ip_address=ip_address)
        current_app.logger.info("User %s logged in (tenant=%s)", user.id, user.tenant_id)
        return ok(_session_payload(user, session, tokens))

    except Exception:
        current_app.logger.exception("Failed to login user")
        return internal_error()


@auth_bp.post("/refresh")
def refresh_route():
    """Rotate the token pair. Expired or revoked refresh tokens get 401."""
    try:
        data = request.get_json(silent=True) or {}
        try:
            session, tokens = session_service.refresh_session(data.get("refresh_token"))
        except SessionError as e:
            code = "TOKEN_EXPIRED" if e.reason == "expired" else "UNAUTHORIZED"
            return fail(str(e), 401, code)
        return ok(_session_payload(session.user, session, tokens))

    except Exception:
        current_app.logger.exception("Failed to refresh session")
        return internal_error()


@auth_bp.post("/logout")
@require_auth
def logout_route():
    try:
        session_service.revoke_session(g.context.session, reason="logout")
        permission_service.log_security_event(
            user_id=g.current_user.id,
            event_type="LOGOUT",
            success=True,
            resource=request.path,
            action=request.method,
            tenant_id=g.current_user.tenant_id,
        )
        return ok({"message": "Logout successful"})

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return internal_error()


@auth_bp.get("/me")
@require_auth
def me_route():
    context = g.context
    return ok({
        "user": context.user.to_dict(),
        "tenant": context.tenant.to_dict() if context.tenant else None,
        "impersonating": context.impersonating,
        "permissions": permission_service.list_context_permissions(context),
    })
