# Overview: Service-layer operations for plans; feature gating and numeric limits.

"""
Plan Gating Service

WHY: What a tenant may do depends on its subscription plan. Features gate
whole modules (quotes, e-documents, warehouses...) and numeric limits cap
how many users, products, customers and warehouses a tenant may create.

RULES:
- A limit of -1 means unlimited.
- check_limit allows creation while current < limit.
- Exceeding a limit raises PlanLimitExceededError (a ConflictError with its
  own code) so callers can tell it apart from a generic validation failure.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Plan, Tenant, User, Product, Customer, Warehouse
from ..validation import ConflictError, DomainError

UNLIMITED = -1

ALL_FEATURES = (
    "sales",
    "returns",
    "quotes",
    "eDocuments",
    "warehouses",
    "integrations",
    "crm",
    "fieldTeam",
    "invoiceImport",
    "advancedReports",
    "multiWarehouse",
    "apiAccess",
)

PLAN_CATALOGUE = {
    "basic": {
        "name": "Basic",
        "description": "Single user point of sale with returns",
        "price_cents": 7900,
        "sort_order": 1,
        "features": ["sales", "returns"],
        "limits": {
            "maxUsers": 1,
            "maxProducts": 200,
            "maxCustomers": 100,
            "maxWarehouses": 1,
            "maxIntegrations": 0,
            "storageGb": 1,
        },
    },
    "pro": {
        "name": "Pro",
        "description": "Quotes, e-documents and multiple warehouses",
        "price_cents": 17900,
        "sort_order": 2,
        "features": [
            "sales",
            "returns",
            "quotes",
            "eDocuments",
            "warehouses",
            "integrations",
            "invoiceImport",
            "advancedReports",
            "multiWarehouse",
        ],
        "limits": {
            "maxUsers": 5,
            "maxProducts": 5000,
            "maxCustomers": 2000,
            "maxWarehouses": 3,
            "maxIntegrations": 3,
            "storageGb": 10,
        },
    },
    "plus": {
        "name": "Plus",
        "description": "Every feature without limits",
        "price_cents": 34900,
        "sort_order": 3,
        "features": list(ALL_FEATURES),
        "limits": {
            "maxUsers": UNLIMITED,
            "maxProducts": UNLIMITED,
            "maxCustomers": UNLIMITED,
            "maxWarehouses": UNLIMITED,
            "maxIntegrations": UNLIMITED,
            "storageGb": UNLIMITED,
        },
    },
}

# Limit key -> model counted for the tenant's current usage
LIMITED_RESOURCES = {
    "maxUsers": User,
    "maxProducts": Product,
    "maxCustomers": Customer,
    "maxWarehouses": Warehouse,
}


class FeatureNotAvailableError(DomainError):
    """The tenant's plan does not include the requested feature."""
    status_code = 403
    code = "FEATURE_NOT_AVAILABLE"


class PlanLimitExceededError(ConflictError):
    """A numeric plan limit would be exceeded by creating another resource."""
    code = "PLAN_LIMIT_EXCEEDED"


def seed_plans() -> int:
    """
    Create or refresh the plan rows from PLAN_CATALOGUE.

    Idempotent. Returns the number of plans created.
    """
    created = 0
    for code, spec in PLAN_CATALOGUE.items():
        plan = db.session.query(Plan).filter_by(code=code).first()
        if plan is None:
            plan = Plan(code=code)
            db.session.add(plan)
            created += 1
        plan.name = spec["name"]
        plan.description = spec["description"]
        plan.price_cents = spec["price_cents"]
        plan.sort_order = spec["sort_order"]
        plan.features = list(spec["features"])
        plan.limits = dict(spec["limits"])
        plan.is_active = True
    db.session.commit()
    return created


def get_plan_by_code(code: str) -> Plan | None:
    return db.session.query(Plan).filter_by(code=code).first()


def list_plans() -> list[Plan]:
    return db.session.query(Plan).filter_by(is_active=True).order_by(Plan.sort_order, Plan.id).all()


def _default_plan_spec() -> dict:
    code = current_app.config.get("DEFAULT_PLAN_CODE", "basic")
    return PLAN_CATALOGUE.get(code, PLAN_CATALOGUE["basic"])


def tenant_features(tenant: Tenant) -> set[str]:
    if tenant.plan is not None:
        return set(tenant.plan.features or [])
    return set(_default_plan_spec()["features"])


def tenant_limits(tenant: Tenant) -> dict:
    if tenant.plan is not None:
        return dict(tenant.plan.limits or {})
    return dict(_default_plan_spec()["limits"])


def has_feature(tenant: Tenant, feature: str) -> bool:
    return feature in tenant_features(tenant)


def require_feature(tenant: Tenant, feature: str) -> None:
    if not has_feature(tenant, feature):
        raise FeatureNotAvailableError(
            f"Your plan does not include the '{feature}' feature",
            details={"feature": feature},
        )


def check_limit(tenant: Tenant, limit_key: str, current: int) -> dict:
    """Evaluate a numeric limit against a current count."""
    limit = tenant_limits(tenant).get(limit_key, UNLIMITED)
    allowed = limit == UNLIMITED or current < limit
    return {"allowed": allowed, "limit": limit, "current": current}


def count_usage(tenant_id: int, limit_key: str) -> int:
    model = LIMITED_RESOURCES[limit_key]
    query = db.session.query(model).filter(model.tenant_id == tenant_id)
    if hasattr(model, "is_active"):
        query = query.filter(model.is_active.is_(True))
    return query.count()


def require_within_limit(tenant: Tenant, limit_key: str) -> None:
    """Raise PlanLimitExceededError if the tenant cannot create one more resource."""
    result = check_limit(tenant, limit_key, count_usage(tenant.id, limit_key))
    if not result["allowed"]:
        raise PlanLimitExceededError(
            f"Plan limit reached for {limit_key} ({result['current']}/{result['limit']})",
            details={"limit_key": limit_key, "limit": result["limit"], "current": result["current"]},
        )


def get_usage(tenant: Tenant) -> dict:
    """Current usage against every counted limit of the tenant's plan."""
    usage = {}
    for key in LIMITED_RESOURCES:
        usage[key] = check_limit(tenant, key, count_usage(tenant.id, key))
    return {
        "plan_code": tenant.plan.code if tenant.plan else None,
        "features": sorted(tenant_features(tenant)),
        "limits": tenant_limits(tenant),
        "usage": usage,
    }
