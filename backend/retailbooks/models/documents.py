from __future__ import annotations

from ..extensions import db
from retailbooks.time_utils import to_utc_z, to_iso_date

QUOTE_STATUSES = ("draft", "sent", "accepted", "rejected", "expired", "converted")
QUOTE_EDITABLE_STATUSES = ("draft", "sent")
QUOTE_CONVERTIBLE_STATUSES = ("sent", "accepted")


class Return(db.Model):
    """
    Customer return, optionally linked to the original sale.

    When linked, each ReturnItem names the sale item it returns and the sum of
    returned quantities per sale item is capped at the sold quantity.
    Creating a return puts the quantity back into stock.
    """
    __tablename__ = "returns"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "return_number", name="uq_returns_tenant_return_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)

    return_number = db.Column(db.String(32), nullable=False)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="SET NULL"), nullable=True, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id", ondelete="SET NULL"), nullable=True)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    vat_total_cents = db.Column(db.Integer, nullable=False, default=0)
    grand_total_cents = db.Column(db.Integer, nullable=False, default=0)

    reason = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), nullable=False, default="completed")

    return_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    sale = db.relationship("Sale", backref=db.backref("returns", lazy=True))
    customer = db.relationship("Customer")
    items = db.relationship(
        "ReturnItem",
        backref="return_doc",
        lazy=True,
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ReturnItem.id",
    )

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "return_number": self.return_number,
            "sale_id": self.sale_id,
            "invoice_number": self.sale.invoice_number if self.sale else None,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "warehouse_id": self.warehouse_id,
            "subtotal_cents": self.subtotal_cents,
            "vat_total_cents": self.vat_total_cents,
            "grand_total_cents": self.grand_total_cents,
            "reason": self.reason,
            "status": self.status,
            "return_date": to_utc_z(self.return_date),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class ReturnItem(db.Model):
    __tablename__ = "return_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    return_id = db.Column(db.Integer, db.ForeignKey("returns.id", ondelete="CASCADE"), nullable=False, index=True)
    sale_item_id = db.Column(db.Integer, db.ForeignKey("sale_items.id", ondelete="SET NULL"), nullable=True, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    product_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    vat_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    vat_cents = db.Column(db.Integer, nullable=False, default=0)
    line_total_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_id": self.return_id,
            "sale_item_id": self.sale_item_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "vat_rate_bps": self.vat_rate_bps,
            "vat_cents": self.vat_cents,
            "line_total_cents": self.line_total_cents,
        }


class Quote(db.Model):
    """
    Pre-sale offer (teklif).

    LIFECYCLE: draft -> sent -> accepted|rejected, draft|sent -> expired,
    sent|accepted -> converted (exactly once, creates a Sale).
    """
    __tablename__ = "quotes"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "quote_number", name="uq_quotes_tenant_quote_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)

    quote_number = db.Column(db.String(32), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True)
    valid_until = db.Column(db.Date, nullable=True)
    include_vat = db.Column(db.Boolean, nullable=False, default=True)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    vat_total_cents = db.Column(db.Integer, nullable=False, default=0)
    grand_total_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(20), nullable=False, default="draft", index=True)
    notes = db.Column(db.Text, nullable=True)

    converted_sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="SET NULL"), nullable=True)
    converted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer")
    items = db.relationship(
        "QuoteItem",
        backref="quote",
        lazy=True,
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="QuoteItem.id",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "quote_number": self.quote_number,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "valid_until": to_iso_date(self.valid_until),
            "include_vat": self.include_vat,
            "subtotal_cents": self.subtotal_cents,
            "discount_rate_bps": self.discount_rate_bps,
            "discount_cents": self.discount_cents,
            "vat_total_cents": self.vat_total_cents,
            "grand_total_cents": self.grand_total_cents,
            "status": self.status,
            "notes": self.notes,
            "converted_sale_id": self.converted_sale_id,
            "converted_at": to_utc_z(self.converted_at),
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class QuoteItem(db.Model):
    __tablename__ = "quote_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    quote_id = db.Column(db.Integer, db.ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    product_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    discount_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    net_cents = db.Column(db.Integer, nullable=False)
    vat_rate_bps = db.Column(db.Integer, nullable=False, default=2000)
    vat_cents = db.Column(db.Integer, nullable=False, default=0)
    line_total_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "quote_id": self.quote_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "discount_rate_bps": self.discount_rate_bps,
            "discount_cents": self.discount_cents,
            "net_cents": self.net_cents,
            "vat_rate_bps": self.vat_rate_bps,
            "vat_cents": self.vat_cents,
            "line_total_cents": self.line_total_cents,
        }


class DocumentSequence(db.Model):
    """
    Atomic per-tenant document counters, one row per (type, period).

    WHY: Prevent race conditions when numbering invoices, returns, quotes
    and e-documents; numbering restarts each period (YYYYMM).
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "document_type", "period", name="uq_doc_sequences_tenant_type_period"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    document_type = db.Column(db.String(32), nullable=False)
    period = db.Column(db.String(6), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
