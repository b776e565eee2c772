# Overview: Platform tenant administration and tenant self-service settings.

"""
Tenant Administration

Provisioning a tenant creates, in one transaction:
- the tenant row on its plan (trial when requested)
- its first tenant_admin user
- a default warehouse and a default cash (kasa) account

Plan and status changes are platform operations (super_admin only).
Tenants may edit their own name, billing email and settings.
"""

from __future__ import annotations

import re
from datetime import timedelta

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import Tenant, Warehouse, Account
from ..models.tenancy import TENANT_STATUSES
from ..validation import ValidationError, ConflictError, parse_bool, require_choice
from retailbooks.time_utils import utcnow, parse_iso_datetime
from .concurrency import atomic
from .pagination import paginate
from .tenant_service import get_tenant
from . import auth_service, plan_service

SLUG_RE = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,98}[a-z0-9])?$")

DEFAULT_WAREHOUSE = {"name": "Ana Depo", "code": "MAIN"}
DEFAULT_CASH_ACCOUNT = "Ana Kasa"

TENANT_SORT_FIELDS = {
    "created_at": Tenant.created_at,
    "name": Tenant.name,
    "slug": Tenant.slug,
}


def _require_text(payload: dict, key: str) -> str:
    value = (payload.get(key) or "").strip() if isinstance(payload.get(key), str) else ""
    if not value:
        raise ValidationError(f"{key} is required", details={key: "required"})
    return value


def _resolve_plan(code: str | None):
    code = code or current_app.config.get("DEFAULT_PLAN_CODE", "basic")
    plan = plan_service.get_plan_by_code(code)
    if plan is None:
        raise ValidationError(f"Unknown plan: {code}", details={"plan_code": "choice"})
    return plan


def _parse_datetime(payload: dict, key: str):
    raw = payload.get(key)
    if raw in (None, ""):
        return None
    try:
        return parse_iso_datetime(str(raw))
    except ValueError:
        raise ValidationError(f"{key} must be an ISO-8601 datetime", details={key: "format"})


def create_tenant(payload: dict) -> tuple[Tenant, object]:
    """
    Provision a tenant with its admin user, default warehouse and cash account.

    payload: name, slug, plan_code?, trial?, billing_email?, domain?,
             admin_email, admin_password, admin_full_name
    Returns (tenant, admin_user).
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    name = _require_text(payload, "name")
    slug = _require_text(payload, "slug").lower()
    if not SLUG_RE.match(slug):
        raise ValidationError("slug may contain lowercase letters, digits and dashes", details={"slug": "format"})
    admin_email = _require_text(payload, "admin_email")
    admin_password = _require_text(payload, "admin_password")
    admin_full_name = (payload.get("admin_full_name") or name).strip()
    trial = parse_bool(payload.get("trial"), default=False)
    plan = _resolve_plan(payload.get("plan_code"))

    if db.session.query(Tenant).filter_by(slug=slug).first():
        raise ConflictError("Tenant slug already exists", details={"slug": "duplicate"})
    domain = (payload.get("domain") or "").strip() or None
    if domain and db.session.query(Tenant).filter_by(domain=domain).first():
        raise ConflictError("Tenant domain already exists", details={"domain": "duplicate"})

    def _op():
        tenant = Tenant(
            name=name,
            slug=slug,
            domain=domain,
            plan_id=plan.id,
            status="trial" if trial else "active",
            trial_ends_at=utcnow() + timedelta(days=current_app.config.get("TRIAL_DAYS", 14)) if trial else None,
            billing_email=(payload.get("billing_email") or "").strip() or None,
            settings={},
        )
        db.session.add(tenant)
        db.session.flush()

        admin = auth_service.create_user(
            email=admin_email,
            password=admin_password,
            full_name=admin_full_name,
            role="tenant_admin",
            tenant=tenant,
            enforce_limit=False,
            commit=False,
        )
        db.session.add(Warehouse(tenant_id=tenant.id, is_default=True, **DEFAULT_WAREHOUSE))
        db.session.add(Account(
            tenant_id=tenant.id,
            name=DEFAULT_CASH_ACCOUNT,
            account_type="kasa",
            opening_balance_cents=0,
            current_balance_cents=0,
        ))
        return tenant, admin

    tenant, admin = atomic(_op)
    current_app.logger.info("Tenant created id=%s slug=%s plan=%s trial=%s", tenant.id, slug, plan.code, trial)
    return tenant, admin


def list_tenants(params, filters: dict) -> tuple[list, dict]:
    query = db.session.query(Tenant)
    if filters.get("status"):
        query = query.filter(Tenant.status == filters["status"])
    search = (filters.get("search") or "").strip()
    if search:
        like = f"%{search}%"
        query = query.filter(or_(Tenant.name.ilike(like), Tenant.slug.ilike(like)))
    return paginate(query, params, TENANT_SORT_FIELDS, "created_at")


def admin_update_tenant(tenant_id: int, payload: dict) -> Tenant:
    """Change a tenant's plan, status, dates, name or billing email."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    tenant = get_tenant(tenant_id)

    old_plan = tenant.plan.code if tenant.plan else None
    old_status = tenant.status

    if "plan_code" in payload:
        tenant.plan_id = _resolve_plan(payload["plan_code"]).id
    if "status" in payload:
        tenant.status = require_choice("status", payload["status"], TENANT_STATUSES)
    if "trial_ends_at" in payload:
        tenant.trial_ends_at = _parse_datetime(payload, "trial_ends_at")
    if "subscription_ends_at" in payload:
        tenant.subscription_ends_at = _parse_datetime(payload, "subscription_ends_at")
    if "name" in payload:
        tenant.name = _require_text(payload, "name")
    if "billing_email" in payload:
        tenant.billing_email = (payload.get("billing_email") or "").strip() or None

    db.session.commit()
    db.session.refresh(tenant)
    new_plan = tenant.plan.code if tenant.plan else None
    if new_plan != old_plan or tenant.status != old_status:
        current_app.logger.info(
            "Tenant %s changed plan=%s->%s status=%s->%s",
            tenant.id, old_plan, new_plan, old_status, tenant.status,
        )
    return tenant


def update_own_tenant(tenant: Tenant, payload: dict) -> Tenant:
    """Self-service edit; settings are merged key by key."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    if "name" in payload:
        tenant.name = _require_text(payload, "name")
    if "billing_email" in payload:
        tenant.billing_email = (payload.get("billing_email") or "").strip() or None
    if "settings" in payload:
        settings = payload["settings"]
        if not isinstance(settings, dict):
            raise ValidationError("settings must be an object", details={"settings": "type"})
        merged = dict(tenant.settings or {})
        merged.update(settings)
        tenant.settings = merged
    db.session.commit()
    return tenant
