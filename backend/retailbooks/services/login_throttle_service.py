"""
Login Throttling Service

WHY: Limit brute-force password guessing. Failed logins are recorded as
LOGIN_FAILED security events keyed by login identifier; after too many
failures inside the window the identifier is locked for a while.

The identifier is the lowercased email, prefixed by the tenant slug when
the login names one, because emails are only unique within a tenant.
"""

from __future__ import annotations

from datetime import timedelta

from ..extensions import db
from ..models import SecurityEvent
from retailbooks.time_utils import utcnow
from .permission_service import log_security_event

MAX_FAILED_ATTEMPTS = 10
LOCKOUT_WINDOW = timedelta(minutes=15)
LOCKOUT_DURATION = timedelta(minutes=15)

LOGIN_RESOURCE = "/api/auth/login"


def login_identifier(email: str | None, tenant_slug: str | None = None) -> str:
    email = (email or "").strip().lower()
    return f"{tenant_slug}:{email}" if tenant_slug else email


def get_recent_failed_attempts(identifier: str) -> int:
    """LOGIN_FAILED events for identifier since the last success, within LOCKOUT_WINDOW."""
    cutoff = utcnow() - LOCKOUT_WINDOW

    last_success = (
        db.session.query(SecurityEvent.occurred_at)
        .filter(SecurityEvent.event_type == "LOGIN_SUCCESS", SecurityEvent.action == identifier)
        .order_by(SecurityEvent.occurred_at.desc())
        .first()
    )
    if last_success is not None and last_success[0] > cutoff:
        cutoff = last_success[0]

    return db.session.query(SecurityEvent).filter(
        SecurityEvent.event_type == "LOGIN_FAILED",
        SecurityEvent.action == identifier,
        SecurityEvent.occurred_at >= cutoff,
    ).count()


def is_account_locked(identifier: str) -> tuple[bool, int | None]:
    """
    Returns:
    - (True, seconds_remaining) if locked
    - (False, None) if not locked
    """
    if get_recent_failed_attempts(identifier) < MAX_FAILED_ATTEMPTS:
        return False, None

    most_recent = db.session.query(SecurityEvent).filter(
        SecurityEvent.event_type == "LOGIN_FAILED",
        SecurityEvent.action == identifier,
    ).order_by(SecurityEvent.occurred_at.desc()).first()

    if most_recent:
        lockout_end = most_recent.occurred_at + LOCKOUT_DURATION
        now = utcnow()
        if now < lockout_end:
            return True, int((lockout_end - now).total_seconds())

    return False, None


def record_failed_attempt(
    identifier: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
    reason: str = "Invalid credentials",
) -> int:
    """Record a failed login. Returns the number of recent failures."""
    log_security_event(
        user_id=None,
        event_type="LOGIN_FAILED",
        success=False,
        resource=LOGIN_RESOURCE,
        action=identifier,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    return get_recent_failed_attempts(identifier)


def record_successful_login(
    user,
    identifier: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """A success resets the failure count for the identifier."""
    log_security_event(
        user_id=user.id,
        event_type="LOGIN_SUCCESS",
        success=True,
        resource=LOGIN_RESOURCE,
        action=identifier,
        ip_address=ip_address,
        user_agent=user_agent,
        tenant_id=user.tenant_id,
    )
