# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service with Multi-Tenant Support

MULTI-TENANT: Users belong to exactly one tenant (tenant_id), except
platform super_admin users. Email uniqueness is tenant-scoped, so a login
may name the tenant by slug to disambiguate.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, with uppercase, lowercase, digit and special char
- Creating tenant users counts against the plan's maxUsers limit
"""

import bcrypt
import re

from ..extensions import db
from ..models import User, Tenant
from ..models.auth import ROLES
from ..validation import ValidationError, ConflictError
from retailbooks.time_utils import utcnow
from . import plan_service, session_service

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>_\-+=?]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Hash password using bcrypt with cost factor 12 (validated first)."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt verification; malformed hashes never match."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def _normalize_email(email: str | None) -> str:
    email = (email or "").strip().lower()
    if not EMAIL_RE.match(email):
        raise ValidationError("A valid email is required", details={"email": "invalid"})
    return email


def create_user(
    *,
    email: str,
    password: str,
    full_name: str,
    role: str = "user",
    tenant: Tenant | None = None,
    enforce_limit: bool = True,
    commit: bool = True,
) -> User:
    """
    Create a user with a bcrypt password hash.

    Raises:
        ValidationError / PasswordValidationError for bad input
        ConflictError if the email already exists in the tenant
        PlanLimitExceededError if the tenant is at its maxUsers limit
    """
    email = _normalize_email(email)
    if role not in ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ROLES)}", details={"role": "choice"})
    if role == "super_admin" and tenant is not None:
        raise ValidationError("super_admin users cannot belong to a tenant")
    if role != "super_admin" and tenant is None:
        raise ValidationError("Tenant users require a tenant")
    if not (full_name or "").strip():
        raise ValidationError("full_name is required", details={"full_name": "required"})

    tenant_id = tenant.id if tenant else None
    existing = db.session.query(User).filter(User.tenant_id == tenant_id, User.email == email).first()
    if existing:
        raise ConflictError("Email already exists in this tenant", details={"email": "duplicate"})

    if tenant is not None and enforce_limit:
        plan_service.require_within_limit(tenant, "maxUsers")

    user = User(
        tenant_id=tenant_id,
        email=email,
        full_name=full_name.strip(),
        password_hash=hash_password(password),
        role=role,
    )
    db.session.add(user)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return user


def authenticate(email: str, password: str, tenant_slug: str | None = None) -> User | None:
    """
    Authenticate by email and password.

    If tenant_slug is given, only that tenant's users are considered.
    Returns None on bad credentials, inactive users or unusable tenants.
    """
    email = (email or "").strip().lower()
    query = db.session.query(User).filter(User.email == email, User.is_active.is_(True))

    if tenant_slug:
        tenant = db.session.query(Tenant).filter_by(slug=tenant_slug).first()
        if tenant is None:
            return None
        query = query.filter(User.tenant_id == tenant.id)

    for user in query.order_by(User.id).all():
        if not verify_password(password, user.password_hash):
            continue
        if user.tenant_id is not None and not user.tenant.is_usable:
            return None
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def update_user(user: User, patch: dict) -> User:
    """Apply role / active / name / password changes to a tenant user."""
    if "role" in patch:
        if patch["role"] not in ROLES or patch["role"] == "super_admin":
            raise ValidationError("Invalid role", details={"role": "choice"})
        user.role = patch["role"]
    if "full_name" in patch:
        if not (patch["full_name"] or "").strip():
            raise ValidationError("full_name cannot be blank")
        user.full_name = patch["full_name"].strip()
    if "is_active" in patch:
        user.is_active = bool(patch["is_active"])
    if patch.get("password"):
        user.password_hash = hash_password(patch["password"])
    db.session.commit()

    # A deactivated user keeps no live session
    if not user.is_active:
        session_service.revoke_user_sessions(user.id, reason="deactivated")
    return user
