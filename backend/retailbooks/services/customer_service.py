# Overview: Service-layer operations for customers; encapsulates business logic and database work.

"""
Customer accounts and their append-only ledger.

SIGN CONVENTION: balance_cents < 0 means the customer owes the tenant.
borc lowers the balance, alacak raises it.
"""

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Customer, CustomerTransaction, Tenant
from ..models.customers import CUSTOMER_TRANSACTION_TYPES
from ..validation import ModelValidationPolicy, validate_payload, ValidationError, check_amount, require_int
from .concurrency import atomic
from .tenant_service import get_owned_or_404, scoped_query
from .pagination import paginate
from . import plan_service

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "email", "address", "tax_number", "tax_office", "notes", "is_active"},
    required_on_create={"name"},
)

CUSTOMER_SORT_FIELDS = {
    "name": Customer.name,
    "balance_cents": Customer.balance_cents,
    "created_at": Customer.created_at,
}


def lock_customer(tenant_id: int, customer_id) -> Customer:
    return get_owned_or_404(Customer, customer_id, tenant_id, label="Customer", lock=True)


def post_customer_transaction(
    *,
    tenant_id: int,
    customer: Customer,
    transaction_type: str,
    amount_cents: int,
    reference_type: str | None = None,
    reference_id: int | None = None,
    description: str | None = None,
    user_id: int | None = None,
) -> CustomerTransaction:
    """
    Move a customer's balance and append the ledger row.

    The customer must already be row-locked by the caller. Does not commit.
    """
    if transaction_type not in CUSTOMER_TRANSACTION_TYPES:
        raise ValidationError(f"Unknown transaction type: {transaction_type}")
    if amount_cents <= 0:
        raise ValidationError("amount_cents must be positive")

    if transaction_type == "borc":
        customer.balance_cents -= amount_cents
    else:
        customer.balance_cents += amount_cents

    txn = CustomerTransaction(
        tenant_id=tenant_id,
        customer_id=customer.id,
        transaction_type=transaction_type,
        amount_cents=amount_cents,
        balance_after_cents=customer.balance_cents,
        reference_type=reference_type,
        reference_id=reference_id,
        description=description,
        created_by_user_id=user_id,
    )
    db.session.add(txn)
    return txn


def list_customers(tenant_id: int, params, filters: dict) -> tuple[list, dict]:
    query = scoped_query(Customer, tenant_id)
    search = (filters.get("search") or "").strip()
    if search:
        like = f"%{search}%"
        query = query.filter(or_(
            Customer.name.ilike(like),
            Customer.phone.ilike(like),
            Customer.email.ilike(like),
            Customer.tax_number.ilike(like),
        ))
    if filters.get("is_active") is not None:
        query = query.filter(Customer.is_active.is_(filters["is_active"]))
    if filters.get("has_debt"):
        query = query.filter(Customer.balance_cents < 0)
    return paginate(query, params, CUSTOMER_SORT_FIELDS, "name")


def create_customer(tenant: Tenant, payload: dict) -> Customer:
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
    plan_service.require_within_limit(tenant, "maxCustomers")

    def _op():
        customer = Customer(tenant_id=tenant.id, balance_cents=0, **patch)
        db.session.add(customer)
        return customer

    return atomic(_op)


def update_customer(tenant_id: int, customer_id: int, payload: dict) -> Customer:
    customer = get_owned_or_404(Customer, customer_id, tenant_id, label="Customer")
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)

    def _op():
        for key, value in patch.items():
            setattr(customer, key, value)
        return customer

    return atomic(_op)


def add_manual_transaction(tenant_id: int, customer_id: int, payload: dict, user_id: int | None = None) -> CustomerTransaction:
    """Opening balances and corrections entered by hand."""
    transaction_type = payload.get("transaction_type")
    if transaction_type not in CUSTOMER_TRANSACTION_TYPES:
        raise ValidationError("transaction_type must be borc or alacak", details={"transaction_type": "choice"})
    amount = check_amount("amount_cents", require_int(payload, "amount_cents", minimum=1), minimum=1)

    def _op():
        customer = lock_customer(tenant_id, customer_id)
        return post_customer_transaction(
            tenant_id=tenant_id,
            customer=customer,
            transaction_type=transaction_type,
            amount_cents=amount,
            reference_type="manual",
            description=payload.get("description"),
            user_id=user_id,
        )

    return atomic(_op)


def list_customer_transactions(tenant_id: int, customer_id: int, params) -> tuple[list, dict]:
    customer = get_owned_or_404(Customer, customer_id, tenant_id, label="Customer")
    query = scoped_query(CustomerTransaction, tenant_id).filter(CustomerTransaction.customer_id == customer.id)
    return paginate(query, params, {"transaction_date": CustomerTransaction.transaction_date}, "transaction_date")
