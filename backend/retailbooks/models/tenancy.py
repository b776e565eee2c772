from __future__ import annotations

from ..extensions import db
from retailbooks.time_utils import to_utc_z, utcnow

TENANT_STATUSES = ("active", "trial", "suspended", "cancelled")
USABLE_TENANT_STATUSES = ("active", "trial")


class Plan(db.Model):
    """
    Subscription plan: the feature set and numeric limits a tenant runs under.

    DESIGN:
    - features is a JSON list of feature keys (e.g. "quotes", "eDocuments")
    - limits is a JSON dict (e.g. {"maxProducts": 200}); -1 means unlimited
    - Plans are global rows, seeded by `flask plans seed`
    """
    __tablename__ = "plans"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False, unique=True, index=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    currency = db.Column(db.String(3), nullable=False, default="TRY")
    features = db.Column(db.JSON, nullable=False, default=list)
    limits = db.Column(db.JSON, nullable=False, default=dict)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Plan code={self.code!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "price_cents": self.price_cents,
            "currency": self.currency,
            "features": list(self.features or []),
            "limits": dict(self.limits or {}),
            "is_active": self.is_active,
        }


class Tenant(db.Model):
    """
    Multi-tenant root: every business row belongs to exactly one Tenant.

    WHY: Shared-database multi-tenancy with strict row-level isolation.
    Every business table carries tenant_id and every query filters on it.

    STATUS:
    - active / trial: may authenticate requests (trial only until trial_ends_at)
    - suspended / cancelled: all tenant requests are refused
    """
    __tablename__ = "tenants"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(100), nullable=False, unique=True, index=True)
    domain = db.Column(db.String(255), nullable=True, unique=True)

    plan_id = db.Column(db.Integer, db.ForeignKey("plans.id", ondelete="SET NULL"), nullable=True, index=True)
    status = db.Column(db.String(20), nullable=False, default="active", index=True)
    trial_ends_at = db.Column(db.DateTime(timezone=True), nullable=True)
    subscription_ends_at = db.Column(db.DateTime(timezone=True), nullable=True)
    billing_email = db.Column(db.String(255), nullable=True)
    settings = db.Column(db.JSON, nullable=False, default=dict)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    plan = db.relationship("Plan", backref=db.backref("tenants", lazy=True))

    def __repr__(self) -> str:
        return f"<Tenant id={self.id} slug={self.slug!r}>"

    @property
    def is_usable(self) -> bool:
        if self.status not in USABLE_TENANT_STATUSES:
            return False
        if self.status == "trial" and self.trial_ends_at is not None:
            return self.trial_ends_at > utcnow()
        return True

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "domain": self.domain,
            "plan_id": self.plan_id,
            "plan_code": self.plan.code if self.plan else None,
            "status": self.status,
            "trial_ends_at": to_utc_z(self.trial_ends_at),
            "subscription_ends_at": to_utc_z(self.subscription_ends_at),
            "billing_email": self.billing_email,
            "settings": dict(self.settings or {}),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
