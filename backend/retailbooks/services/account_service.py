# Overview: Service-layer operations for cash and bank accounts.

"""
Cash (kasa) and bank (banka) accounts with an append-only movement ledger.

INVARIANTS:
- current_balance_cents = opening_balance_cents + signed sum of movements
- balance_after_cents of each movement follows creation order, because
  every movement is written while the account row is locked
- gider / transfer_out never overdraw an account, except reversals that
  take back money an earlier document put in
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Account, AccountMovement, AccountTransfer
from ..models.finance import ACCOUNT_TYPES, ACCOUNT_MOVEMENT_TYPES, INFLOW_MOVEMENT_TYPES
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    ConflictError,
    check_amount,
    require_choice,
    require_int,
)
from .concurrency import atomic
from .tenant_service import get_owned_or_404, scoped_query
from .pagination import paginate

ACCOUNT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "account_type", "bank_name", "iban", "currency", "is_active"},
    required_on_create={"name", "account_type"},
)

MANUAL_MOVEMENT_TYPES = ("gelir", "gider")

MOVEMENT_SORT_FIELDS = {
    "movement_date": AccountMovement.movement_date,
    "amount_cents": AccountMovement.amount_cents,
}


def lock_account(tenant_id: int, account_id) -> Account:
    return get_owned_or_404(Account, account_id, tenant_id, label="Account", lock=True)


def add_account_movement(
    *,
    tenant_id: int,
    account: Account,
    movement_type: str,
    amount_cents: int,
    reference_type: str | None = None,
    reference_id: int | None = None,
    description: str | None = None,
    user_id: int | None = None,
    reversal: bool = False,
) -> AccountMovement:
    """
    Apply one movement to a locked account. Does not commit.

    Raises ConflictError for inactive accounts and overdrafts. A reversal
    (e.g. the gider of a cancelled sale) skips both checks: the balance may
    go negative and the account may since have been deactivated.
    """
    if movement_type not in ACCOUNT_MOVEMENT_TYPES:
        raise ValidationError(f"Unknown movement type: {movement_type}")
    if amount_cents <= 0:
        raise ValidationError("amount_cents must be positive")
    if not account.is_active and not reversal:
        raise ConflictError(f"Account {account.name} is not active")

    if movement_type in INFLOW_MOVEMENT_TYPES:
        new_balance = account.current_balance_cents + amount_cents
    else:
        new_balance = account.current_balance_cents - amount_cents
        if new_balance < 0 and not reversal:
            raise ConflictError(
                "Insufficient balance",
                details={"account_id": account.id, "balance_cents": account.current_balance_cents},
            )

    account.current_balance_cents = new_balance
    movement = AccountMovement(
        tenant_id=tenant_id,
        account_id=account.id,
        movement_type=movement_type,
        amount_cents=amount_cents,
        balance_after_cents=new_balance,
        reference_type=reference_type,
        reference_id=reference_id,
        description=description,
        created_by_user_id=user_id,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def list_accounts(tenant_id: int, filters: dict) -> list[Account]:
    query = scoped_query(Account, tenant_id)
    if filters.get("account_type"):
        query = query.filter(Account.account_type == filters["account_type"])
    if filters.get("is_active") is not None:
        query = query.filter(Account.is_active.is_(filters["is_active"]))
    return query.order_by(Account.account_type, Account.name).all()


def create_account(tenant_id: int, payload: dict) -> Account:
    patch = validate_payload(model=Account, payload=payload, policy=ACCOUNT_POLICY, partial=False)
    require_choice("account_type", patch["account_type"], ACCOUNT_TYPES)
    opening = payload.get("opening_balance_cents") or 0
    if not isinstance(opening, int) or isinstance(opening, bool):
        raise ValidationError("opening_balance_cents must be an integer")
    check_amount("opening_balance_cents", opening)

    if scoped_query(Account, tenant_id).filter(Account.name == patch["name"]).first():
        raise ConflictError("Account name already exists", details={"name": "duplicate"})

    def _op():
        account = Account(
            tenant_id=tenant_id,
            opening_balance_cents=opening,
            current_balance_cents=opening,
            **patch,
        )
        db.session.add(account)
        return account

    return atomic(_op)


def update_account(tenant_id: int, account_id: int, payload: dict) -> Account:
    """Balances are never patched; they only move through movements."""
    account = get_owned_or_404(Account, account_id, tenant_id, label="Account")
    patch = validate_payload(model=Account, payload=payload, policy=ACCOUNT_POLICY, partial=True)
    if "account_type" in patch:
        require_choice("account_type", patch["account_type"], ACCOUNT_TYPES)
    if "name" in patch:
        clash = scoped_query(Account, tenant_id).filter(Account.name == patch["name"], Account.id != account.id).first()
        if clash:
            raise ConflictError("Account name already exists", details={"name": "duplicate"})

    def _op():
        for key, value in patch.items():
            setattr(account, key, value)
        return account

    return atomic(_op)


def _require_amount(payload: dict) -> int:
    amount = require_int(payload, "amount_cents", minimum=1)
    return check_amount("amount_cents", amount, minimum=1)


def post_manual_movement(tenant_id: int, account_id: int, payload: dict, user_id: int | None = None) -> AccountMovement:
    movement_type = require_choice("movement_type", payload.get("movement_type"), MANUAL_MOVEMENT_TYPES)
    amount = _require_amount(payload)

    def _op():
        account = lock_account(tenant_id, account_id)
        return add_account_movement(
            tenant_id=tenant_id,
            account=account,
            movement_type=movement_type,
            amount_cents=amount,
            reference_type="manual",
            description=payload.get("description"),
            user_id=user_id,
        )

    return atomic(_op)


def list_account_movements(tenant_id: int, account_id: int, params) -> tuple[list, dict]:
    account = get_owned_or_404(Account, account_id, tenant_id, label="Account")
    query = scoped_query(AccountMovement, tenant_id).filter(AccountMovement.account_id == account.id)
    return paginate(query, params, MOVEMENT_SORT_FIELDS, "movement_date")


def transfer(tenant_id: int, payload: dict, user_id: int | None = None) -> AccountTransfer:
    """
    Move money between two accounts of the tenant.

    Writes the transfer record and both movements in one transaction.
    Accounts are locked in id order so two opposite transfers can't deadlock.
    """
    from_id = require_int(payload, "from_account_id")
    to_id = require_int(payload, "to_account_id")
    if from_id == to_id:
        raise ValidationError("Cannot transfer to the same account")
    amount = _require_amount(payload)
    description = payload.get("description")

    def _op():
        locked = {acc_id: lock_account(tenant_id, acc_id) for acc_id in sorted((from_id, to_id))}
        source, target = locked[from_id], locked[to_id]

        record = AccountTransfer(
            tenant_id=tenant_id,
            from_account_id=source.id,
            to_account_id=target.id,
            amount_cents=amount,
            description=description,
            created_by_user_id=user_id,
        )
        db.session.add(record)
        db.session.flush()

        add_account_movement(
            tenant_id=tenant_id, account=source, movement_type="transfer_out", amount_cents=amount,
            reference_type="transfer", reference_id=record.id, description=description, user_id=user_id,
        )
        add_account_movement(
            tenant_id=tenant_id, account=target, movement_type="transfer_in", amount_cents=amount,
            reference_type="transfer", reference_id=record.id, description=description, user_id=user_id,
        )
        return record

    record = atomic(_op)
    current_app.logger.info(
        "Account transfer tenant=%s from=%s to=%s amount=%s", tenant_id, from_id, to_id, amount
    )
    return record


def list_transfers(tenant_id: int, params) -> tuple[list, dict]:
    query = scoped_query(AccountTransfer, tenant_id)
    return paginate(query, params, {"transfer_date": AccountTransfer.transfer_date}, "transfer_date")


def get_summary(tenant_id: int) -> dict:
    """Totals of active accounts by type."""
    rows = (
        db.session.query(Account.account_type, func.coalesce(func.sum(Account.current_balance_cents), 0))
        .filter(Account.tenant_id == tenant_id, Account.is_active.is_(True))
        .group_by(Account.account_type)
        .all()
    )
    totals = {account_type: int(total) for account_type, total in rows}
    total_kasa = totals.get("kasa", 0)
    total_banka = totals.get("banka", 0)
    return {
        "total_kasa": total_kasa,
        "total_banka": total_banka,
        "total_balance": total_kasa + total_banka,
        "account_count": scoped_query(Account, tenant_id).filter(Account.is_active.is_(True)).count(),
    }


def default_account_for_method(tenant_id: int, payment_method: str) -> Account | None:
    """First active kasa account for cash, first active banka account otherwise."""
    account_type = "kasa" if payment_method == "nakit" else "banka"
    return (
        scoped_query(Account, tenant_id)
        .filter(Account.account_type == account_type, Account.is_active.is_(True))
        .order_by(Account.id)
        .first()
    )
