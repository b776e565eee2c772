# Overview: Service-layer operations for permission; encapsulates business logic and database work.

"""
Authorization and Security Event Logging

WHY: One place decides whether the caller may perform an action. Routes and
services never compare role strings themselves; they ask can()/evaluate().

A decision combines two checks:
1. Role: the caller's role must hold the permission code
   (DEFAULT_ROLE_PERMISSIONS; super_admin and tenant_admin hold all).
2. Plan: if the permission belongs to a gated module (PERMISSION_FEATURES),
   the tenant's plan must include that feature.

DESIGN PRINCIPLES:
- Fail closed: unknown roles and unknown permission codes are denied
- Log denials only: grants are not logged
- Security events raised inside a unit of work are deferred until the
  request ends so a rollback cannot erase them and they cannot commit
  half-finished domain writes
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import g, has_app_context

from ..extensions import db
from ..models import SecurityEvent
from ..permissions import PERMISSION_FEATURES, get_role_permissions, validate_permission_code
from ..validation import DomainError
from retailbooks.time_utils import utcnow
from . import plan_service


class PermissionDeniedError(DomainError):
    """Raised when the caller's role lacks a required permission."""
    status_code = 403
    code = "PERMISSION_DENIED"


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: str | None = None  # None | "permission" | "feature" | "tenant"
    feature: str | None = None


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    tenant_id: int | None = None,
    defer: bool = False,
) -> SecurityEvent:
    """
    Log security event to audit trail with tenant context.

    defer=True queues the event on the request; flush_deferred_events()
    writes it once the request's own transaction is finished.

    event_type examples:
    - PERMISSION_DENIED
    - FEATURE_NOT_AVAILABLE
    - LOGIN_FAILED / LOGIN_SUCCESS / LOGOUT
    - CROSS_TENANT_ACCESS_DENIED
    - IMPERSONATION_STARTED / IMPERSONATION_DENIED
    - TENANT_INACTIVE
    """
    event = SecurityEvent(
        user_id=user_id,
        tenant_id=tenant_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    )

    if defer and has_app_context():
        pending = g.setdefault("pending_security_events", [])
        pending.append(event)
        return event

    db.session.add(event)
    db.session.commit()
    return event


def flush_deferred_events() -> int:
    """Persist security events queued during the request. Returns the count."""
    if not has_app_context():
        return 0
    pending = g.pop("pending_security_events", None)
    if not pending:
        return 0
    db.session.add_all(pending)
    db.session.commit()
    return len(pending)


def get_permissions_for_role(role: str) -> set[str]:
    return get_role_permissions(role)


def evaluate(context, permission_code: str) -> AccessDecision:
    """
    The single authorization capability check.

    context is a session_service.SessionContext (user, role, tenant).
    """
    if not validate_permission_code(permission_code):
        return AccessDecision(False, "permission")

    if permission_code not in get_permissions_for_role(context.role):
        return AccessDecision(False, "permission")

    feature = PERMISSION_FEATURES.get(permission_code)
    if feature is not None:
        if context.tenant is None:
            return AccessDecision(False, "tenant")
        if not plan_service.has_feature(context.tenant, feature):
            return AccessDecision(False, "feature", feature)

    return AccessDecision(True)


def can(context, permission_code: str) -> bool:
    return evaluate(context, permission_code).allowed


def require_permission(context, permission_code: str) -> None:
    """Raise PermissionDeniedError / FeatureNotAvailableError unless allowed."""
    decision = evaluate(context, permission_code)
    if decision.allowed:
        return
    if decision.reason == "feature":
        raise plan_service.FeatureNotAvailableError(
            f"Your plan does not include the '{decision.feature}' feature",
            details={"feature": decision.feature, "permission": permission_code},
        )
    raise PermissionDeniedError(
        f"Missing permission: {permission_code}",
        details={"required_permission": permission_code},
    )


def list_context_permissions(context) -> list[str]:
    """Permission codes the caller can actually use (role and plan combined)."""
    return sorted(code for code in get_permissions_for_role(context.role) if can(context, code))
