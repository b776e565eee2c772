from __future__ import annotations

from ..extensions import db
from retailbooks.time_utils import to_utc_z, to_iso_date

ACCOUNT_TYPES = ("kasa", "banka")
ACCOUNT_MOVEMENT_TYPES = ("gelir", "gider", "transfer_in", "transfer_out")
# Movement types that add to the balance; the others subtract
INFLOW_MOVEMENT_TYPES = ("gelir", "transfer_in")

EXPENSE_CATEGORIES = ("kira", "vergi", "maas", "fatura", "diger")
RECURRENCE_PERIODS = ("aylik", "yillik")


class Account(db.Model):
    """
    Cash register (kasa) or bank account (banka) with a running balance.

    INVARIANT: current_balance_cents equals opening_balance_cents plus the
    signed sum of its movements, and each movement's balance_after_cents
    is the previous movement's balance_after ± amount.
    """
    __tablename__ = "accounts"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "name", name="uq_accounts_tenant_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    account_type = db.Column(db.String(10), nullable=False)
    bank_name = db.Column(db.String(100), nullable=True)
    iban = db.Column(db.String(34), nullable=True)
    currency = db.Column(db.String(3), nullable=False, default="TRY")

    opening_balance_cents = db.Column(db.Integer, nullable=False, default=0)
    current_balance_cents = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "account_type": self.account_type,
            "bank_name": self.bank_name,
            "iban": self.iban,
            "currency": self.currency,
            "opening_balance_cents": self.opening_balance_cents,
            "current_balance_cents": self.current_balance_cents,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class AccountMovement(db.Model):
    """Append-only account ledger row; amount_cents is always positive."""
    __tablename__ = "account_movements"
    __table_args__ = (
        db.Index("ix_account_movements_account", "account_id", "id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)

    movement_type = db.Column(db.String(20), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    balance_after_cents = db.Column(db.Integer, nullable=False)

    reference_type = db.Column(db.String(32), nullable=True)
    reference_id = db.Column(db.Integer, nullable=True)
    description = db.Column(db.Text, nullable=True)

    movement_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    account = db.relationship("Account", backref=db.backref("movements", lazy="dynamic", passive_deletes=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "movement_type": self.movement_type,
            "amount_cents": self.amount_cents,
            "balance_after_cents": self.balance_after_cents,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "description": self.description,
            "movement_date": to_utc_z(self.movement_date),
        }


class AccountTransfer(db.Model):
    """Transfer between two accounts of the same tenant (two movements)."""
    __tablename__ = "account_transfers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    from_account_id = db.Column(db.Integer, db.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    to_account_id = db.Column(db.Integer, db.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    description = db.Column(db.Text, nullable=True)

    transfer_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    from_account = db.relationship("Account", foreign_keys=[from_account_id])
    to_account = db.relationship("Account", foreign_keys=[to_account_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "from_account_id": self.from_account_id,
            "from_account_name": self.from_account.name if self.from_account else None,
            "to_account_id": self.to_account_id,
            "to_account_name": self.to_account.name if self.to_account else None,
            "amount_cents": self.amount_cents,
            "description": self.description,
            "transfer_date": to_utc_z(self.transfer_date),
        }


class Expense(db.Model):
    """
    Categorised business expense (rent, tax, salary, bills).

    When account_id is set the amount was paid out of that account with a
    gider movement referencing the expense; edits and deletes post the
    difference back so the account ledger keeps matching.
    """
    __tablename__ = "expenses"
    __table_args__ = (
        db.Index("ix_expenses_tenant_date", "tenant_id", "expense_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)

    category = db.Column(db.String(20), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    expense_date = db.Column(db.Date, nullable=False)
    is_recurring = db.Column(db.Boolean, nullable=False, default=False)
    recurrence_period = db.Column(db.String(10), nullable=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True, index=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    account = db.relationship("Account")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category": self.category,
            "description": self.description,
            "amount_cents": self.amount_cents,
            "expense_date": to_iso_date(self.expense_date),
            "is_recurring": self.is_recurring,
            "recurrence_period": self.recurrence_period,
            "account_id": self.account_id,
            "account_name": self.account.name if self.account else None,
            "created_at": to_utc_z(self.created_at),
        }
