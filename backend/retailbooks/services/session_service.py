# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Session Token Management Service with Multi-Tenant Support

WHY: Bearer access/refresh token pair with revocation.
Access tokens are short-lived; a refresh token rotates both tokens on the
same session so a stolen refresh token stops working after first use.

MULTI-TENANT: Sessions capture tenant_id at login. The request context
(SessionContext) is built from the session on every request and carries the
effective tenant, which differs from the session's only while a super_admin
impersonates a tenant.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes each)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- Access TTL and refresh TTL from config (15 minutes / 7 days by default)
- Revocable on logout
"""

from __future__ import annotations

import secrets
import hashlib
from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import AuthSession, User, Tenant
from retailbooks.time_utils import utcnow


class SessionError(Exception):
    """Raised when a token cannot be used; reason is 'invalid' or 'expired'."""
    def __init__(self, message: str, reason: str = "invalid"):
        super().__init__(message)
        self.reason = reason


@dataclass
class SessionContext:
    """
    Request-scoped caller context.

    Built once per request by @require_auth, stored on flask.g and passed
    explicitly to authorization checks. Torn down with the app context.
    """
    user: User
    session: AuthSession | None
    tenant: Tenant | None
    impersonating: bool = False

    @property
    def tenant_id(self) -> int | None:
        return self.tenant.id if self.tenant else None

    @property
    def role(self) -> str:
        return self.user.role


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str
    access_expires_in: int
    refresh_expires_in: int

    def to_dict(self) -> dict:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_type": "Bearer",
            "expires_in": self.access_expires_in,
            "refresh_expires_in": self.refresh_expires_in,
        }


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy)."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    Tokens are already high-entropy, so a fast hash is sufficient.
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def _issue_tokens(session: AuthSession) -> TokenPair:
    access_ttl = current_app.config["ACCESS_TOKEN_TTL"]
    refresh_ttl = current_app.config["REFRESH_TOKEN_TTL"]
    now = utcnow()

    access_token = generate_token()
    refresh_token = generate_token()
    session.access_token_hash = hash_token(access_token)
    session.refresh_token_hash = hash_token(refresh_token)
    session.access_expires_at = now + access_ttl
    session.refresh_expires_at = now + refresh_ttl

    return TokenPair(
        access_token=access_token,
        refresh_token=refresh_token,
        access_expires_in=int(access_ttl.total_seconds()),
        refresh_expires_in=int(refresh_ttl.total_seconds()),
    )


def create_session(
    user: User,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[AuthSession, TokenPair]:
    """
    Create a new session for an authenticated user.

    Returns (session_record, token_pair). Only hashes are stored.
    """
    session = AuthSession(
        user_id=user.id,
        tenant_id=user.tenant_id,
        user_agent=user_agent,
        ip_address=ip_address,
        last_used_at=utcnow(),
    )
    tokens = _issue_tokens(session)
    db.session.add(session)
    db.session.commit()
    return session, tokens


def validate_access_token(token: str) -> tuple[User, AuthSession]:
    """
    Resolve an access token to its user and session.

    Raises SessionError('expired') when the access token is past its TTL so
    the client knows to refresh; SessionError('invalid') otherwise.
    """
    if not token:
        raise SessionError("Missing token")

    session = db.session.query(AuthSession).filter_by(access_token_hash=hash_token(token)).first()
    if session is None or session.revoked_at is not None:
        raise SessionError("Invalid or revoked token")

    now = utcnow()
    if session.access_expires_at <= now:
        raise SessionError("Access token expired", reason="expired")

    user = db.session.get(User, session.user_id)
    if user is None or not user.is_active:
        raise SessionError("User is not active")

    session.last_used_at = now
    db.session.commit()
    return user, session


def refresh_session(refresh_token: str) -> tuple[AuthSession, TokenPair]:
    """Rotate both tokens of the session that owns refresh_token."""
    if not refresh_token:
        raise SessionError("Missing refresh token")

    session = db.session.query(AuthSession).filter_by(refresh_token_hash=hash_token(refresh_token)).first()
    if session is None or session.revoked_at is not None:
        raise SessionError("Invalid or revoked refresh token")
    if session.refresh_expires_at <= utcnow():
        raise SessionError("Refresh token expired", reason="expired")

    user = db.session.get(User, session.user_id)
    if user is None or not user.is_active:
        raise SessionError("User is not active")

    tokens = _issue_tokens(session)
    session.refreshed_at = utcnow()
    db.session.commit()
    return session, tokens


def revoke_session(session: AuthSession, reason: str = "logout") -> None:
    if session.revoked_at is None:
        session.revoked_at = utcnow()
        session.revoked_reason = reason
        db.session.commit()


def revoke_user_sessions(user_id: int, reason: str) -> int:
    sessions = db.session.query(AuthSession).filter(
        AuthSession.user_id == user_id,
        AuthSession.revoked_at.is_(None),
    ).all()
    now = utcnow()
    for session in sessions:
        session.revoked_at = now
        session.revoked_reason = reason
    db.session.commit()
    return len(sessions)


def cleanup_expired_sessions() -> int:
    """Delete sessions whose refresh token has expired. Returns the count."""
    deleted = db.session.query(AuthSession).filter(
        AuthSession.refresh_expires_at <= utcnow()
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted
