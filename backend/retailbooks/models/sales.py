from __future__ import annotations

from ..extensions import db
from retailbooks.time_utils import to_utc_z

SALE_STATUSES = ("completed", "cancelled")
SALE_TYPES = ("retail", "wholesale")
PAYMENT_METHODS = ("nakit", "kredi_karti", "havale", "veresiye")
# veresiye is credit on the customer account; the rest settle immediately
IMMEDIATE_PAYMENT_METHODS = ("nakit", "kredi_karti", "havale")


class Sale(db.Model):
    """
    Completed sale document.

    A sale is written atomically with its items, one stock movement per item
    and its settlement (payment + account movement, or customer debit).
    Cancellation flips status to cancelled and reverses all of those; the
    status check happens under a row lock so reversals are applied once.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "invoice_number", name="uq_sales_tenant_invoice_number"),
        db.Index("ix_sales_tenant_date", "tenant_id", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)

    invoice_number = db.Column(db.String(32), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id", ondelete="SET NULL"), nullable=True)
    # Source quote, when converted; plain column to avoid a sales<->quotes FK cycle
    quote_id = db.Column(db.Integer, nullable=True, index=True)

    sale_type = db.Column(db.String(20), nullable=False, default="retail")
    payment_method = db.Column(db.String(20), nullable=False)
    include_vat = db.Column(db.Boolean, nullable=False, default=True)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    vat_total_cents = db.Column(db.Integer, nullable=False, default=0)
    grand_total_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(20), nullable=False, default="completed", index=True)
    notes = db.Column(db.Text, nullable=True)
    due_date = db.Column(db.Date, nullable=True)

    sale_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    cancel_reason = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("sales", lazy="dynamic"))
    items = db.relationship(
        "SaleItem",
        backref="sale",
        lazy=True,
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SaleItem.id",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "invoice_number": self.invoice_number,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "warehouse_id": self.warehouse_id,
            "quote_id": self.quote_id,
            "sale_type": self.sale_type,
            "payment_method": self.payment_method,
            "include_vat": self.include_vat,
            "subtotal_cents": self.subtotal_cents,
            "discount_rate_bps": self.discount_rate_bps,
            "discount_cents": self.discount_cents,
            "vat_total_cents": self.vat_total_cents,
            "grand_total_cents": self.grand_total_cents,
            "status": self.status,
            "notes": self.notes,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "sale_date": to_utc_z(self.sale_date),
            "created_by_user_id": self.created_by_user_id,
            "cancelled_at": to_utc_z(self.cancelled_at),
            "cancel_reason": self.cancel_reason,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """
    Sale line. Monetary fields are computed once at creation and frozen;
    later product price or VAT changes never rewrite them.
    """
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    discount_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    net_cents = db.Column(db.Integer, nullable=False)
    vat_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    vat_cents = db.Column(db.Integer, nullable=False, default=0)
    line_total_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
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


class Payment(db.Model):
    """
    Money received: either the settlement of an immediate-payment sale
    (sale_id set) or a freestanding customer collection (customer_id set).
    Cancelled payments stay in place with status cancelled.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_tenant_date", "tenant_id", "payment_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="SET NULL"), nullable=True, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(20), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="completed")
    notes = db.Column(db.Text, nullable=True)

    payment_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    customer = db.relationship("Customer")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "account_id": self.account_id,
            "amount_cents": self.amount_cents,
            "payment_method": self.payment_method,
            "status": self.status,
            "notes": self.notes,
            "payment_date": to_utc_z(self.payment_date),
            "cancelled_at": to_utc_z(self.cancelled_at),
        }
