# Overview: Service-layer operations for sales; encapsulates business logic and database work.

"""
Sales Service: creation and cancellation of sales.

WHY: A sale touches many tables at once (sale, items, stock, payments,
accounts, customer ledger). Everything happens in one unit of work so a
failure anywhere leaves no partial sale behind.

LINE MATH (integer cents, rates in basis points, half-up rounding):
    line_subtotal = quantity * unit_price
    discount      = line_subtotal * discount_rate
    net           = line_subtotal - discount
    vat           = net * vat_rate        (0 when include_vat is false)
    line_total    = net + vat

SALE TOTALS:
    subtotal    = sum(net)
    vat_total   = sum(vat)
    discount    = explicit amount, or discount_rate of subtotal
    grand_total = subtotal - discount + vat_total

INVARIANTS:
- An N-item sale writes exactly N sale items and N 'sale' stock movements
- Cancellation happens once; the status check runs on a locked row and the
  version counter rejects a concurrent second cancel
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Sale, SaleItem, Product, Customer, Warehouse, Return, ReturnItem, CustomerTransaction
from ..models.sales import PAYMENT_METHODS, SALE_TYPES, SALE_STATUSES, IMMEDIATE_PAYMENT_METHODS
from ..money import percent_of
from ..validation import (
    ValidationError,
    ConflictError,
    check_amount,
    check_rate,
    coerce_int,
    optional_int,
    parse_bool,
    require_choice,
    require_items,
    require_int,
)
from retailbooks.time_utils import utcnow, parse_iso_date
from .concurrency import atomic
from .tenant_service import get_owned_or_404, scoped_query
from .pagination import paginate
from .document_service import next_free_document_number
from . import inventory_service, customer_service, payment_service

SALE_SORT_FIELDS = {
    "sale_date": Sale.sale_date,
    "grand_total_cents": Sale.grand_total_cents,
    "invoice_number": Sale.invoice_number,
}


# =============================================================================
# Line math
# =============================================================================

@dataclass
class LineAmounts:
    quantity: int
    unit_price_cents: int
    discount_rate_bps: int
    discount_cents: int
    net_cents: int
    vat_rate_bps: int
    vat_cents: int
    line_total_cents: int


def compute_line(
    quantity: int,
    unit_price_cents: int,
    *,
    discount_rate_bps: int = 0,
    vat_rate_bps: int = 0,
    include_vat: bool = True,
) -> LineAmounts:
    line_subtotal = quantity * unit_price_cents
    discount = percent_of(line_subtotal, discount_rate_bps)
    net = line_subtotal - discount
    vat = percent_of(net, vat_rate_bps) if include_vat else 0
    return LineAmounts(
        quantity=quantity,
        unit_price_cents=unit_price_cents,
        discount_rate_bps=discount_rate_bps,
        discount_cents=discount,
        net_cents=net,
        vat_rate_bps=vat_rate_bps,
        vat_cents=vat,
        line_total_cents=net + vat,
    )


def compute_totals(
    lines: list[LineAmounts],
    *,
    discount_cents: int | None = None,
    discount_rate_bps: int = 0,
) -> dict:
    """Document totals from computed lines; the global discount never exceeds the subtotal."""
    subtotal = sum(line.net_cents for line in lines)
    vat_total = sum(line.vat_cents for line in lines)
    if discount_cents is None:
        discount_cents = percent_of(subtotal, discount_rate_bps)
    if discount_cents > subtotal:
        raise ValidationError("Discount cannot exceed the subtotal", details={"discount_cents": "range"})
    return {
        "subtotal_cents": subtotal,
        "discount_rate_bps": discount_rate_bps,
        "discount_cents": discount_cents,
        "vat_total_cents": vat_total,
        "grand_total_cents": subtotal - discount_cents + vat_total,
    }


def parse_discount(payload: dict) -> tuple[int | None, int]:
    """(explicit discount_cents or None, discount_rate_bps) from a request body."""
    discount_cents = optional_int(payload, "discount_cents")
    if discount_cents is not None:
        check_amount("discount_cents", discount_cents)
    discount_rate = optional_int(payload, "discount_rate_bps") or 0
    check_rate("discount_rate_bps", discount_rate)
    return discount_cents, discount_rate


@dataclass
class ItemRequest:
    product_id: int
    quantity: int
    unit_price_cents: int | None
    discount_rate_bps: int


def parse_item_requests(payload: dict) -> list[ItemRequest]:
    """Validate the shape of a product-line items list before any lookup."""
    requests = []
    for index, item in enumerate(require_items(payload)):
        if item.get("product_id") in (None, ""):
            raise ValidationError(f"items[{index}].product_id is required", details={"items": index})
        product_id = coerce_int("product_id", item["product_id"])
        quantity = require_int(item, "quantity", minimum=1)
        unit_price = optional_int(item, "unit_price_cents")
        if unit_price is not None:
            check_amount("unit_price_cents", unit_price)
        discount_rate = optional_int(item, "discount_rate_bps") or 0
        check_rate("discount_rate_bps", discount_rate)
        requests.append(ItemRequest(product_id, quantity, unit_price, discount_rate))
    return requests


def default_unit_price(product: Product, sale_type: str) -> int:
    if sale_type == "wholesale" and product.wholesale_price_cents is not None:
        return product.wholesale_price_cents
    return product.sale_price_cents


# =============================================================================
# Stock helpers
# =============================================================================

def lock_products(tenant_id: int, product_ids) -> dict[int, Product]:
    """Lock products in id order; unknown or foreign ids raise NotFoundError."""
    return {
        product_id: inventory_service.lock_product(tenant_id, product_id)
        for product_id in sorted(set(product_ids))
    }


def check_stock(products: dict[int, Product], requested: dict[int, int]) -> None:
    """
    Refuse the whole document if any product lacks stock.

    requested maps product_id -> total quantity across all lines.
    """
    shortages = []
    for product_id, quantity in requested.items():
        product = products[product_id]
        if product.stock_quantity < quantity:
            shortages.append({
                "product_id": product.id,
                "product_name": product.name,
                "requested_quantity": quantity,
                "stock_quantity": product.stock_quantity,
            })
    if shortages:
        names = ", ".join(s["product_name"] for s in shortages)
        raise ConflictError(f"Insufficient stock: {names}", details={"items": shortages})


# =============================================================================
# Sale writing (shared with quote conversion)
# =============================================================================

@dataclass
class SaleLine:
    product: Product
    product_name: str
    amounts: LineAmounts


def write_sale(
    *,
    tenant_id: int,
    user_id: int | None,
    customer: Customer | None,
    warehouse_id: int | None,
    payment_method: str,
    sale_type: str,
    include_vat: bool,
    lines: list[SaleLine],
    totals: dict,
    account_id: int | None = None,
    notes: str | None = None,
    due_date=None,
    quote_id: int | None = None,
    invoice_number: str | None = None,
) -> Sale:
    """
    Write a sale with its items, stock movements and settlement.

    Products must already be locked and stock-checked. Does not commit.
    """
    sale = Sale(
        tenant_id=tenant_id,
        invoice_number=invoice_number or next_free_document_number(
            tenant_id=tenant_id, document_type="sale", column=Sale.invoice_number,
        ),
        customer_id=customer.id if customer else None,
        warehouse_id=warehouse_id,
        quote_id=quote_id,
        sale_type=sale_type,
        payment_method=payment_method,
        include_vat=include_vat,
        status="completed",
        notes=notes,
        due_date=due_date,
        created_by_user_id=user_id,
        **totals,
    )
    db.session.add(sale)
    db.session.flush()

    for line in lines:
        amounts = line.amounts
        item = SaleItem(
            sale_id=sale.id,
            product_id=line.product.id,
            product_name=line.product_name,
            quantity=amounts.quantity,
            unit_price_cents=amounts.unit_price_cents,
            discount_rate_bps=amounts.discount_rate_bps,
            discount_cents=amounts.discount_cents,
            net_cents=amounts.net_cents,
            vat_rate_bps=amounts.vat_rate_bps,
            vat_cents=amounts.vat_cents,
            line_total_cents=amounts.line_total_cents,
        )
        sale.items.append(item)
        inventory_service.apply_stock_movement(
            tenant_id=tenant_id,
            product=line.product,
            quantity=-amounts.quantity,
            movement_type="sale",
            warehouse_id=warehouse_id,
            reference_type="sale",
            reference_id=sale.id,
            notes=f"Sale {sale.invoice_number}",
            user_id=user_id,
        )

    if payment_method in IMMEDIATE_PAYMENT_METHODS:
        payment_service.settle_sale(sale, account_id=account_id, user_id=user_id)
    elif sale.grand_total_cents > 0:
        customer_service.post_customer_transaction(
            tenant_id=tenant_id,
            customer=customer,
            transaction_type="borc",
            amount_cents=sale.grand_total_cents,
            reference_type="sale",
            reference_id=sale.id,
            description=f"Sale {sale.invoice_number}",
            user_id=user_id,
        )

    db.session.flush()
    return sale


def resolve_warehouse_id(tenant_id: int, warehouse_id: int | None) -> int | None:
    if warehouse_id is None:
        return None
    return get_owned_or_404(Warehouse, warehouse_id, tenant_id, label="Warehouse").id


def create_sale(tenant_id: int, user_id: int | None, payload: dict) -> Sale:
    """
    Create a completed sale.

    Raises:
        ValidationError: malformed input, empty items, veresiye without customer
        NotFoundError: unknown product, customer, warehouse or account
        ConflictError: insufficient stock, duplicate invoice number, inactive account
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    payment_method = require_choice("payment_method", payload.get("payment_method"), PAYMENT_METHODS)
    sale_type = require_choice("sale_type", payload.get("sale_type"), SALE_TYPES, default="retail")
    include_vat = parse_bool(payload.get("include_vat"), default=True)
    customer_id = optional_int(payload, "customer_id")
    warehouse_id = optional_int(payload, "warehouse_id")
    account_id = optional_int(payload, "account_id")
    discount_cents, discount_rate = parse_discount(payload)
    item_requests = parse_item_requests(payload)
    invoice_number = (payload.get("invoice_number") or "").strip() or None
    try:
        due_date = parse_iso_date(payload.get("due_date"))
    except ValueError:
        raise ValidationError("due_date must be an ISO-8601 date", details={"due_date": "format"})

    if payment_method == "veresiye" and customer_id is None:
        raise ValidationError("Credit (veresiye) sales require a customer", details={"customer_id": "required"})

    if invoice_number and scoped_query(Sale, tenant_id).filter(Sale.invoice_number == invoice_number).first():
        raise ConflictError("Invoice number already exists", details={"invoice_number": "duplicate"})

    def _op():
        customer = customer_service.lock_customer(tenant_id, customer_id) if customer_id is not None else None
        wh_id = resolve_warehouse_id(tenant_id, warehouse_id)

        products = lock_products(tenant_id, [r.product_id for r in item_requests])
        for product in products.values():
            if not product.is_active:
                raise ConflictError(f"Product {product.name} is not active", details={"product_id": product.id})

        requested: dict[int, int] = {}
        for r in item_requests:
            requested[r.product_id] = requested.get(r.product_id, 0) + r.quantity
        check_stock(products, requested)

        lines = []
        for r in item_requests:
            product = products[r.product_id]
            unit_price = r.unit_price_cents if r.unit_price_cents is not None else default_unit_price(product, sale_type)
            amounts = compute_line(
                r.quantity,
                unit_price,
                discount_rate_bps=r.discount_rate_bps,
                vat_rate_bps=product.vat_rate_bps,
                include_vat=include_vat,
            )
            lines.append(SaleLine(product=product, product_name=product.name, amounts=amounts))

        totals = compute_totals(
            [line.amounts for line in lines],
            discount_cents=discount_cents,
            discount_rate_bps=discount_rate,
        )

        return write_sale(
            tenant_id=tenant_id,
            user_id=user_id,
            customer=customer,
            warehouse_id=wh_id,
            payment_method=payment_method,
            sale_type=sale_type,
            include_vat=include_vat,
            lines=lines,
            totals=totals,
            account_id=account_id,
            notes=payload.get("notes"),
            due_date=due_date,
            invoice_number=invoice_number,
        )

    try:
        sale = atomic(_op)
    except IntegrityError:
        raise ConflictError("Invoice number already exists", details={"invoice_number": "duplicate"})

    current_app.logger.info(
        "Sale created tenant=%s invoice=%s items=%s total=%s method=%s",
        tenant_id, sale.invoice_number, len(sale.items), sale.grand_total_cents, sale.payment_method,
    )
    return sale


# =============================================================================
# Cancellation
# =============================================================================

def returned_quantities(sale_id: int) -> dict[int, int]:
    """sale_item_id -> quantity already returned through completed returns."""
    rows = (
        db.session.query(ReturnItem.sale_item_id, func.coalesce(func.sum(ReturnItem.quantity), 0))
        .join(Return, Return.id == ReturnItem.return_id)
        .filter(Return.sale_id == sale_id, Return.status == "completed", ReturnItem.sale_item_id.isnot(None))
        .group_by(ReturnItem.sale_item_id)
        .all()
    )
    return {sale_item_id: int(qty) for sale_item_id, qty in rows}


def credited_by_returns(sale: Sale) -> int:
    """Total of completed returns of the sale that credited the sale's customer."""
    if sale.customer_id is None:
        return 0
    total = (
        db.session.query(func.coalesce(func.sum(Return.grand_total_cents), 0))
        .filter(
            Return.sale_id == sale.id,
            Return.status == "completed",
            Return.customer_id == sale.customer_id,
        )
        .scalar()
    )
    return int(total)


def cancel_sale(tenant_id: int, sale_id: int, user_id: int | None, reason: str | None = None) -> Sale:
    """
    Cancel a completed sale and reverse its effects exactly once.

    - stock: a 'sale_cancel' movement per item for the quantity still out
      (sold minus already returned)
    - immediate payments: marked cancelled, gider movement on the account
      for the amount not already credited to the customer by returns
    - veresiye: alacak customer transaction for the debit not yet credited
      back by returns
    """
    def _op():
        sale = get_owned_or_404(Sale, sale_id, tenant_id, label="Sale", lock=True)
        if sale.status != "completed":
            raise ConflictError(f"Sale {sale.invoice_number} is not cancellable (status: {sale.status})")

        already_returned = returned_quantities(sale.id)
        product_ids = [item.product_id for item in sale.items if item.product_id is not None]
        products = lock_products(tenant_id, product_ids) if product_ids else {}

        for item in sale.items:
            if item.product_id is None:
                continue
            quantity = item.quantity - already_returned.get(item.id, 0)
            if quantity <= 0:
                continue
            inventory_service.apply_stock_movement(
                tenant_id=tenant_id,
                product=products[item.product_id],
                quantity=quantity,
                movement_type="sale_cancel",
                warehouse_id=sale.warehouse_id,
                reference_type="sale",
                reference_id=sale.id,
                notes=f"Cancelled sale {sale.invoice_number}",
                user_id=user_id,
            )

        # Returns of this sale have already credited their share to the customer
        credited = credited_by_returns(sale)

        if sale.payment_method in IMMEDIATE_PAYMENT_METHODS:
            payment_service.reverse_sale_payments(sale, user_id=user_id, credited_cents=credited)
        elif sale.customer_id is not None:
            debit = (
                scoped_query(CustomerTransaction, tenant_id)
                .filter(
                    CustomerTransaction.customer_id == sale.customer_id,
                    CustomerTransaction.reference_type == "sale",
                    CustomerTransaction.reference_id == sale.id,
                    CustomerTransaction.transaction_type == "borc",
                )
                .first()
            )
            outstanding = debit.amount_cents - credited if debit is not None else 0
            if outstanding > 0:
                customer = customer_service.lock_customer(tenant_id, sale.customer_id)
                customer_service.post_customer_transaction(
                    tenant_id=tenant_id,
                    customer=customer,
                    transaction_type="alacak",
                    amount_cents=outstanding,
                    reference_type="sale_cancel",
                    reference_id=sale.id,
                    description=f"Cancelled sale {sale.invoice_number}",
                    user_id=user_id,
                )

        sale.status = "cancelled"
        sale.cancelled_at = utcnow()
        sale.cancelled_by_user_id = user_id
        sale.cancel_reason = reason
        return sale

    sale = atomic(_op)
    current_app.logger.info("Sale cancelled tenant=%s invoice=%s", tenant_id, sale.invoice_number)
    return sale


# =============================================================================
# Queries
# =============================================================================

def get_sale(tenant_id: int, sale_id: int) -> Sale:
    return get_owned_or_404(Sale, sale_id, tenant_id, label="Sale")


def list_sales(tenant_id: int, params, filters: dict) -> tuple[list, dict]:
    """
    Filters: status, customer_id, payment_method, sale_type, search
    (invoice number or customer name), start/end datetimes.
    """
    query = scoped_query(Sale, tenant_id)
    if filters.get("status"):
        require_choice("status", filters["status"], SALE_STATUSES)
        query = query.filter(Sale.status == filters["status"])
    if filters.get("customer_id"):
        query = query.filter(Sale.customer_id == filters["customer_id"])
    if filters.get("payment_method"):
        query = query.filter(Sale.payment_method == filters["payment_method"])
    if filters.get("sale_type"):
        query = query.filter(Sale.sale_type == filters["sale_type"])
    if filters.get("start"):
        query = query.filter(Sale.sale_date >= filters["start"])
    if filters.get("end"):
        query = query.filter(Sale.sale_date <= filters["end"])
    search = (filters.get("search") or "").strip()
    if search:
        like = f"%{search}%"
        query = query.outerjoin(Customer, Customer.id == Sale.customer_id).filter(
            or_(Sale.invoice_number.ilike(like), Customer.name.ilike(like))
        )
    return paginate(query, params, SALE_SORT_FIELDS, "sale_date")


def returnable_items(tenant_id: int, sale_id: int) -> list[dict]:
    """Per sale item: sold, already returned and still returnable quantities."""
    sale = get_sale(tenant_id, sale_id)
    returned = returned_quantities(sale.id)
    result = []
    for item in sale.items:
        already = returned.get(item.id, 0)
        result.append({
            "sale_item_id": item.id,
            "product_id": item.product_id,
            "product_name": item.product_name,
            "sold_quantity": item.quantity,
            "returned_quantity": already,
            "returnable_quantity": max(item.quantity - already, 0),
            "unit_price_cents": item.unit_price_cents,
            "vat_rate_bps": item.vat_rate_bps,
        })
    return result
