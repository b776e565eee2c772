# Overview: Service-layer operations for payments; encapsulates business logic and database work.

"""
Payments: settlement of immediate-payment sales and customer collections.

ACCOUNT RESOLUTION: an explicit account_id is used as given (it must be the
tenant's and active). Otherwise the first active account of the matching
type is used (kasa for nakit, banka for card and transfer). If the tenant
has no such account, only the payment row is written.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Payment, Account
from ..models.sales import IMMEDIATE_PAYMENT_METHODS
from ..validation import check_amount, require_choice, require_int, optional_int
from retailbooks.time_utils import utcnow
from .concurrency import atomic
from .tenant_service import scoped_query
from .pagination import paginate
from . import account_service, customer_service

PAYMENT_SORT_FIELDS = {
    "payment_date": Payment.payment_date,
    "amount_cents": Payment.amount_cents,
}


def resolve_account(tenant_id: int, payment_method: str, account_id: int | None) -> Account | None:
    """Locked account for a payment, or None when no account applies."""
    if account_id is not None:
        return account_service.lock_account(tenant_id, account_id)
    default = account_service.default_account_for_method(tenant_id, payment_method)
    if default is None:
        return None
    return account_service.lock_account(tenant_id, default.id)


def settle_sale(sale, *, account_id: int | None, user_id: int | None) -> Payment:
    """
    Write the payment of an immediate-payment sale plus the gelir movement.

    Runs inside the sale's unit of work; does not commit.
    """
    account = resolve_account(sale.tenant_id, sale.payment_method, account_id)
    payment = Payment(
        tenant_id=sale.tenant_id,
        sale_id=sale.id,
        customer_id=sale.customer_id,
        account_id=account.id if account else None,
        amount_cents=sale.grand_total_cents,
        payment_method=sale.payment_method,
        status="completed",
        created_by_user_id=user_id,
    )
    db.session.add(payment)
    db.session.flush()

    if account is not None and sale.grand_total_cents > 0:
        account_service.add_account_movement(
            tenant_id=sale.tenant_id,
            account=account,
            movement_type="gelir",
            amount_cents=sale.grand_total_cents,
            reference_type="sale",
            reference_id=sale.id,
            description=f"Sale {sale.invoice_number}",
            user_id=user_id,
        )
    return payment


def reverse_sale_payments(sale, *, user_id: int | None, credited_cents: int = 0) -> list[Payment]:
    """
    Cancel a sale's completed payments and take the money back out of the
    accounts they went into. Does not commit.

    credited_cents is what returns of the sale already credited to its
    customer; that share stays in the accounts. The gider is a reversal, so
    it may overdraw the account or hit one deactivated since the sale.
    """
    payments = (
        scoped_query(Payment, sale.tenant_id)
        .filter(Payment.sale_id == sale.id, Payment.status == "completed")
        .order_by(Payment.id)
        .all()
    )
    now = utcnow()
    remaining_credit = credited_cents
    for payment in payments:
        payment.status = "cancelled"
        payment.cancelled_at = now
        kept = min(remaining_credit, payment.amount_cents)
        remaining_credit -= kept
        refund = payment.amount_cents - kept
        if payment.account_id is not None and refund > 0:
            account = account_service.lock_account(sale.tenant_id, payment.account_id)
            account_service.add_account_movement(
                tenant_id=sale.tenant_id,
                account=account,
                movement_type="gider",
                amount_cents=refund,
                reference_type="sale_cancel",
                reference_id=sale.id,
                description=f"Cancelled sale {sale.invoice_number}",
                user_id=user_id,
                reversal=True,
            )
    return payments


def record_payment(tenant_id: int, payload: dict, user_id: int | None = None) -> Payment:
    """
    Customer collection: credits the customer (alacak) and, when an account
    applies, books a gelir movement on it.
    """
    customer_id = require_int(payload, "customer_id")
    amount = check_amount("amount_cents", require_int(payload, "amount_cents", minimum=1), minimum=1)
    method = require_choice("payment_method", payload.get("payment_method"), IMMEDIATE_PAYMENT_METHODS)
    account_id = optional_int(payload, "account_id")
    notes = payload.get("notes")

    def _op():
        customer = customer_service.lock_customer(tenant_id, customer_id)
        account = resolve_account(tenant_id, method, account_id)

        payment = Payment(
            tenant_id=tenant_id,
            customer_id=customer.id,
            account_id=account.id if account else None,
            amount_cents=amount,
            payment_method=method,
            status="completed",
            notes=notes,
            created_by_user_id=user_id,
        )
        db.session.add(payment)
        db.session.flush()

        customer_service.post_customer_transaction(
            tenant_id=tenant_id,
            customer=customer,
            transaction_type="alacak",
            amount_cents=amount,
            reference_type="payment",
            reference_id=payment.id,
            description=notes or "Payment received",
            user_id=user_id,
        )
        if account is not None:
            account_service.add_account_movement(
                tenant_id=tenant_id,
                account=account,
                movement_type="gelir",
                amount_cents=amount,
                reference_type="payment",
                reference_id=payment.id,
                description=f"Collection from {customer.name}",
                user_id=user_id,
            )
        return payment

    payment = atomic(_op)
    current_app.logger.info(
        "Payment recorded tenant=%s customer=%s amount=%s method=%s", tenant_id, customer_id, amount, method
    )
    return payment


def list_payments(tenant_id: int, params, filters: dict) -> tuple[list, dict]:
    query = scoped_query(Payment, tenant_id)
    if filters.get("customer_id"):
        query = query.filter(Payment.customer_id == filters["customer_id"])
    if filters.get("sale_id"):
        query = query.filter(Payment.sale_id == filters["sale_id"])
    if filters.get("payment_method"):
        query = query.filter(Payment.payment_method == filters["payment_method"])
    if filters.get("status"):
        query = query.filter(Payment.status == filters["status"])
    if filters.get("start"):
        query = query.filter(Payment.payment_date >= filters["start"])
    if filters.get("end"):
        query = query.filter(Payment.payment_date <= filters["end"])
    return paginate(query, params, PAYMENT_SORT_FIELDS, "payment_date")
