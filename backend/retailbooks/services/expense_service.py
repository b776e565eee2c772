# Overview: Service-layer operations for expenses; encapsulates business logic and database work.

"""
Expenses: categorised outgoings (kira, vergi, maas, fatura, diger).

ACCOUNT POSTING: an expense entered with an account_id is paid out of that
account with a gider movement (reference_type 'expense'). The account is
fixed once the expense exists. Raising the amount posts another gider for
the difference, lowering it posts a gelir, and deleting the expense posts a
gelir for the full amount, so the account ledger always matches the
expenses it paid.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Expense
from ..models.finance import EXPENSE_CATEGORIES, RECURRENCE_PERIODS
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    check_amount,
    optional_int,
    require_choice,
)
from .concurrency import atomic
from .tenant_service import get_owned_or_404, scoped_query
from .pagination import paginate
from . import account_service

EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={"category", "description", "amount_cents", "expense_date", "is_recurring", "recurrence_period"},
    required_on_create={"category", "amount_cents", "expense_date"},
    money_fields={"amount_cents"},
)

EXPENSE_SORT_FIELDS = {
    "expense_date": Expense.expense_date,
    "amount_cents": Expense.amount_cents,
    "category": Expense.category,
}


def _check_patch(patch: dict, *, is_recurring: bool, recurrence_period: str | None) -> None:
    """Category/amount rules plus the recurrence pair, given the values after the patch."""
    if "category" in patch:
        require_choice("category", patch["category"], EXPENSE_CATEGORIES)
    if "amount_cents" in patch:
        check_amount("amount_cents", patch["amount_cents"], minimum=1)
    if is_recurring:
        if recurrence_period not in RECURRENCE_PERIODS:
            raise ValidationError(
                f"recurrence_period must be one of: {', '.join(RECURRENCE_PERIODS)}",
                details={"recurrence_period": "choice"},
            )
    else:
        patch["recurrence_period"] = None


def _post(expense: Expense, movement_type: str, amount_cents: int, user_id: int | None, *, reference_type="expense"):
    account = account_service.lock_account(expense.tenant_id, expense.account_id)
    account_service.add_account_movement(
        tenant_id=expense.tenant_id,
        account=account,
        movement_type=movement_type,
        amount_cents=amount_cents,
        reference_type=reference_type,
        reference_id=expense.id,
        description=f"Expense ({expense.category}) {expense.description or ''}".strip(),
        user_id=user_id,
        reversal=movement_type == "gelir",
    )


def create_expense(tenant_id: int, payload: dict, user_id: int | None = None) -> Expense:
    """
    Record an expense, paying it out of account_id when given.

    Raises:
        ValidationError: bad category, amount, date or recurrence
        NotFoundError: unknown account
        ConflictError: inactive account or not enough balance
    """
    patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=False)
    _check_patch(
        patch,
        is_recurring=bool(patch.get("is_recurring")),
        recurrence_period=patch.get("recurrence_period"),
    )
    account_id = optional_int(payload, "account_id")

    def _op():
        if account_id is not None:
            # 404 before any row is written
            account_service.lock_account(tenant_id, account_id)
        expense = Expense(tenant_id=tenant_id, account_id=account_id, created_by_user_id=user_id, **patch)
        db.session.add(expense)
        db.session.flush()
        if expense.account_id is not None:
            _post(expense, "gider", expense.amount_cents, user_id)
        return expense

    expense = atomic(_op)
    current_app.logger.info(
        "Expense recorded tenant=%s category=%s amount=%s account=%s",
        tenant_id, expense.category, expense.amount_cents, expense.account_id,
    )
    return expense


def get_expense(tenant_id: int, expense_id: int) -> Expense:
    return get_owned_or_404(Expense, expense_id, tenant_id, label="Expense")


def update_expense(tenant_id: int, expense_id: int, payload: dict, user_id: int | None = None) -> Expense:
    expense = get_expense(tenant_id, expense_id)
    if isinstance(payload, dict) and "account_id" in payload:
        if optional_int(payload, "account_id") != expense.account_id:
            raise ValidationError(
                "The account of an expense cannot be changed; delete it and record it again",
                details={"account_id": "immutable"},
            )
    patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=True)
    _check_patch(
        patch,
        is_recurring=patch.get("is_recurring", expense.is_recurring),
        recurrence_period=patch.get("recurrence_period", expense.recurrence_period),
    )

    def _op():
        locked = get_owned_or_404(Expense, expense_id, tenant_id, label="Expense", lock=True)
        delta = patch.get("amount_cents", locked.amount_cents) - locked.amount_cents
        for key, value in patch.items():
            setattr(locked, key, value)
        if delta and locked.account_id is not None:
            if delta > 0:
                _post(locked, "gider", delta, user_id)
            else:
                _post(locked, "gelir", -delta, user_id)
        return locked

    return atomic(_op)


def delete_expense(tenant_id: int, expense_id: int, user_id: int | None = None) -> None:
    def _op():
        expense = get_owned_or_404(Expense, expense_id, tenant_id, label="Expense", lock=True)
        if expense.account_id is not None:
            _post(expense, "gelir", expense.amount_cents, user_id, reference_type="expense_delete")
        db.session.delete(expense)

    atomic(_op)
    current_app.logger.info("Expense deleted tenant=%s id=%s", tenant_id, expense_id)


def list_expenses(tenant_id: int, params, filters: dict) -> tuple[list, dict]:
    """Filters: category, account_id, is_recurring, start/end (expense_date, inclusive)."""
    query = scoped_query(Expense, tenant_id)
    if filters.get("category"):
        query = query.filter(Expense.category == filters["category"])
    if filters.get("account_id"):
        query = query.filter(Expense.account_id == filters["account_id"])
    if filters.get("is_recurring") is not None:
        query = query.filter(Expense.is_recurring.is_(filters["is_recurring"]))
    if filters.get("start"):
        query = query.filter(Expense.expense_date >= filters["start"])
    if filters.get("end"):
        query = query.filter(Expense.expense_date <= filters["end"])
    return paginate(query, params, EXPENSE_SORT_FIELDS, "expense_date")


def totals_by_category(tenant_id: int, start=None, end=None) -> list[dict]:
    """[{category, total_cents, count}] for the date range, largest total first."""
    query = db.session.query(
        Expense.category,
        func.coalesce(func.sum(Expense.amount_cents), 0),
        func.count(Expense.id),
    ).filter(Expense.tenant_id == tenant_id)
    if start:
        query = query.filter(Expense.expense_date >= start)
    if end:
        query = query.filter(Expense.expense_date <= end)
    rows = query.group_by(Expense.category).all()
    totals = [
        {"category": category, "total_cents": int(total), "count": int(count)}
        for category, total, count in rows
    ]
    return sorted(totals, key=lambda row: (-row["total_cents"], row["category"]))
