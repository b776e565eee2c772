# Overview: Service-layer operations for quotes; encapsulates business logic and database work.

"""
Quotes (teklif): priced offers that can later become a sale.

STATUS TRANSITIONS:
    draft  -> sent
    draft|sent -> accepted | rejected
    draft|sent -> expired          (valid_until passed, see expire_overdue_quotes)
    sent|accepted -> converted     (exactly once; creates the sale)

Quote lines use the sales line math. Conversion copies the frozen quote
amounts into the sale so the sale's grand total equals the quote's.
"""

from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import Quote, QuoteItem, Product, Customer
from ..models.documents import QUOTE_STATUSES, QUOTE_EDITABLE_STATUSES, QUOTE_CONVERTIBLE_STATUSES
from ..models.sales import PAYMENT_METHODS
from ..validation import (
    ValidationError,
    ConflictError,
    optional_int,
    parse_bool,
    require_choice,
)
from retailbooks.time_utils import utcnow, parse_iso_date
from .concurrency import atomic
from .tenant_service import get_owned_or_404, scoped_query
from .pagination import paginate
from .document_service import next_document_number
from . import customer_service
from .sales_service import (
    LineAmounts,
    SaleLine,
    check_stock,
    compute_line,
    compute_totals,
    lock_products,
    parse_discount,
    parse_item_requests,
    resolve_warehouse_id,
    write_sale,
)

QUOTE_SORT_FIELDS = {
    "created_at": Quote.created_at,
    "valid_until": Quote.valid_until,
    "grand_total_cents": Quote.grand_total_cents,
    "quote_number": Quote.quote_number,
    "status": Quote.status,
}

# action -> (allowed source statuses, target status)
QUOTE_ACTIONS = {
    "send": (("draft",), "sent"),
    "accept": (("draft", "sent"), "accepted"),
    "reject": (("draft", "sent"), "rejected"),
}


def _parse_valid_until(payload: dict, *, required: bool) -> date | None:
    raw = payload.get("valid_until")
    if raw in (None, ""):
        if required:
            raise ValidationError("valid_until is required", details={"valid_until": "required"})
        return None
    try:
        return parse_iso_date(str(raw))
    except ValueError:
        raise ValidationError("valid_until must be an ISO-8601 date", details={"valid_until": "format"})


def _build_items(tenant_id: int, payload: dict, include_vat: bool) -> list[tuple[Product, LineAmounts]]:
    requests = parse_item_requests(payload)
    products = {
        product_id: get_owned_or_404(Product, product_id, tenant_id, label="Product")
        for product_id in sorted({r.product_id for r in requests})
    }
    lines = []
    for r in requests:
        product = products[r.product_id]
        unit_price = r.unit_price_cents if r.unit_price_cents is not None else product.sale_price_cents
        lines.append((product, compute_line(
            r.quantity,
            unit_price,
            discount_rate_bps=r.discount_rate_bps,
            vat_rate_bps=product.vat_rate_bps,
            include_vat=include_vat,
        )))
    return lines


def _replace_items(quote: Quote, lines: list[tuple[Product, LineAmounts]], discount_cents, discount_rate) -> None:
    quote.items.clear()
    for product, amounts in lines:
        quote.items.append(QuoteItem(
            product_id=product.id,
            product_name=product.name,
            quantity=amounts.quantity,
            unit_price_cents=amounts.unit_price_cents,
            discount_rate_bps=amounts.discount_rate_bps,
            discount_cents=amounts.discount_cents,
            net_cents=amounts.net_cents,
            vat_rate_bps=amounts.vat_rate_bps,
            vat_cents=amounts.vat_cents,
            line_total_cents=amounts.line_total_cents,
        ))
    totals = compute_totals(
        [amounts for _, amounts in lines],
        discount_cents=discount_cents,
        discount_rate_bps=discount_rate,
    )
    for key, value in totals.items():
        setattr(quote, key, value)


def create_quote(tenant_id: int, user_id: int | None, payload: dict) -> Quote:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    valid_until = _parse_valid_until(payload, required=True)
    include_vat = parse_bool(payload.get("include_vat"), default=True)
    customer_id = optional_int(payload, "customer_id")
    discount_cents, discount_rate = parse_discount(payload)

    def _op():
        customer = None
        if customer_id is not None:
            customer = get_owned_or_404(Customer, customer_id, tenant_id, label="Customer")
        lines = _build_items(tenant_id, payload, include_vat)

        quote = Quote(
            tenant_id=tenant_id,
            quote_number=next_document_number(tenant_id=tenant_id, document_type="quote"),
            customer_id=customer.id if customer else None,
            valid_until=valid_until,
            include_vat=include_vat,
            status="draft",
            notes=payload.get("notes"),
            created_by_user_id=user_id,
        )
        db.session.add(quote)
        _replace_items(quote, lines, discount_cents, discount_rate)
        db.session.flush()
        return quote

    quote = atomic(_op)
    current_app.logger.info("Quote created tenant=%s number=%s", tenant_id, quote.quote_number)
    return quote


def update_quote(tenant_id: int, quote_id: int, payload: dict) -> Quote:
    """Only draft and sent quotes are editable; items, when given, replace the old ones."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    def _op():
        quote = get_owned_or_404(Quote, quote_id, tenant_id, label="Quote", lock=True)
        if quote.status not in QUOTE_EDITABLE_STATUSES:
            raise ConflictError(f"Quote {quote.quote_number} cannot be edited (status: {quote.status})")

        if "customer_id" in payload:
            customer_id = optional_int(payload, "customer_id")
            quote.customer_id = (
                get_owned_or_404(Customer, customer_id, tenant_id, label="Customer").id
                if customer_id is not None else None
            )
        if "valid_until" in payload:
            quote.valid_until = _parse_valid_until(payload, required=True)
        if "notes" in payload:
            quote.notes = payload.get("notes")
        if "include_vat" in payload:
            quote.include_vat = parse_bool(payload.get("include_vat"), default=quote.include_vat)

        pricing_changed = any(k in payload for k in ("items", "include_vat", "discount_cents", "discount_rate_bps"))
        if pricing_changed:
            if "discount_cents" in payload or "discount_rate_bps" in payload:
                discount_cents, discount_rate = parse_discount(payload)
            else:
                discount_cents, discount_rate = None, quote.discount_rate_bps
                if not quote.discount_rate_bps:
                    discount_cents = quote.discount_cents
            if "items" in payload:
                lines = _build_items(tenant_id, payload, quote.include_vat)
            else:
                lines = _lines_from_quote(tenant_id, quote)
            _replace_items(quote, lines, discount_cents, discount_rate)

        db.session.flush()
        return quote

    return atomic(_op)


def _lines_from_quote(tenant_id: int, quote: Quote) -> list[tuple[Product, LineAmounts]]:
    """Recompute existing lines, e.g. after include_vat changes."""
    lines = []
    for item in quote.items:
        product = get_owned_or_404(Product, item.product_id, tenant_id, label="Product")
        lines.append((product, compute_line(
            item.quantity,
            item.unit_price_cents,
            discount_rate_bps=item.discount_rate_bps,
            vat_rate_bps=item.vat_rate_bps,
            include_vat=quote.include_vat,
        )))
    return lines


def change_status(tenant_id: int, quote_id: int, action: str) -> Quote:
    """send / accept / reject."""
    allowed, target = QUOTE_ACTIONS[action]

    def _op():
        quote = get_owned_or_404(Quote, quote_id, tenant_id, label="Quote", lock=True)
        if quote.status not in allowed:
            raise ConflictError(f"Quote {quote.quote_number} cannot be {target} (status: {quote.status})")
        quote.status = target
        return quote

    quote = atomic(_op)
    current_app.logger.info("Quote %s tenant=%s number=%s", target, tenant_id, quote.quote_number)
    return quote


def send_quote(tenant_id: int, quote_id: int) -> Quote:
    return change_status(tenant_id, quote_id, "send")


def accept_quote(tenant_id: int, quote_id: int) -> Quote:
    return change_status(tenant_id, quote_id, "accept")


def reject_quote(tenant_id: int, quote_id: int) -> Quote:
    return change_status(tenant_id, quote_id, "reject")


def delete_quote(tenant_id: int, quote_id: int) -> None:
    def _op():
        quote = get_owned_or_404(Quote, quote_id, tenant_id, label="Quote", lock=True)
        if quote.status == "converted":
            raise ConflictError("A converted quote cannot be deleted")
        db.session.delete(quote)

    atomic(_op)


def expire_overdue_quotes(tenant_id: int | None = None, today: date | None = None) -> int:
    """Mark draft/sent quotes whose valid_until has passed as expired. Returns the count."""
    today = today or utcnow().date()
    query = db.session.query(Quote).filter(
        Quote.status.in_(QUOTE_EDITABLE_STATUSES),
        Quote.valid_until.isnot(None),
        Quote.valid_until < today,
    )
    if tenant_id is not None:
        query = query.filter(Quote.tenant_id == tenant_id)

    def _op():
        quotes = query.all()
        for quote in quotes:
            quote.status = "expired"
        return len(quotes)

    count = atomic(_op)
    if count:
        current_app.logger.info("Expired %s overdue quotes (tenant=%s)", count, tenant_id or "all")
    return count


def convert_quote(tenant_id: int, quote_id: int, user_id: int | None, payload: dict | None = None):
    """
    Turn a sent or accepted quote into a completed sale.

    Stock is re-checked under row locks at conversion time. The sale, its
    stock movements and settlement, and the quote's converted status are
    written in one transaction.

    Raises:
        ConflictError: quote converted/expired/past valid_until, wrong status,
            insufficient stock, product no longer available
        ValidationError: veresiye conversion without a customer
    """
    payload = payload or {}
    payment_method = require_choice("payment_method", payload.get("payment_method"), PAYMENT_METHODS)
    account_id = optional_int(payload, "account_id")
    warehouse_id = optional_int(payload, "warehouse_id")

    def _op():
        quote = get_owned_or_404(Quote, quote_id, tenant_id, label="Quote", lock=True)
        if quote.status == "converted":
            raise ConflictError(f"Quote {quote.quote_number} is already converted")
        if quote.status == "expired":
            raise ConflictError(f"Quote {quote.quote_number} has expired")
        if quote.valid_until is not None and quote.valid_until < utcnow().date():
            raise ConflictError(f"Quote {quote.quote_number} is past its validity date")
        if quote.status not in QUOTE_CONVERTIBLE_STATUSES:
            raise ConflictError(f"Quote {quote.quote_number} cannot be converted (status: {quote.status})")
        if not quote.items:
            raise ConflictError(f"Quote {quote.quote_number} has no items")
        if payment_method == "veresiye" and quote.customer_id is None:
            raise ValidationError("Credit (veresiye) sales require a customer", details={"customer_id": "required"})

        if any(item.product_id is None for item in quote.items):
            raise ConflictError("A quoted product no longer exists")

        customer = customer_service.lock_customer(tenant_id, quote.customer_id) if quote.customer_id else None
        wh_id = resolve_warehouse_id(tenant_id, warehouse_id)
        products = lock_products(tenant_id, [item.product_id for item in quote.items])

        requested: dict[int, int] = {}
        for item in quote.items:
            requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity
        check_stock(products, requested)

        lines = [
            SaleLine(
                product=products[item.product_id],
                product_name=item.product_name,
                amounts=LineAmounts(
                    quantity=item.quantity,
                    unit_price_cents=item.unit_price_cents,
                    discount_rate_bps=item.discount_rate_bps,
                    discount_cents=item.discount_cents,
                    net_cents=item.net_cents,
                    vat_rate_bps=item.vat_rate_bps,
                    vat_cents=item.vat_cents,
                    line_total_cents=item.line_total_cents,
                ),
            )
            for item in quote.items
        ]
        totals = {
            "subtotal_cents": quote.subtotal_cents,
            "discount_rate_bps": quote.discount_rate_bps,
            "discount_cents": quote.discount_cents,
            "vat_total_cents": quote.vat_total_cents,
            "grand_total_cents": quote.grand_total_cents,
        }

        sale = write_sale(
            tenant_id=tenant_id,
            user_id=user_id,
            customer=customer,
            warehouse_id=wh_id,
            payment_method=payment_method,
            sale_type="retail",
            include_vat=quote.include_vat,
            lines=lines,
            totals=totals,
            account_id=account_id,
            notes=payload.get("notes") or quote.notes,
            quote_id=quote.id,
        )

        quote.status = "converted"
        quote.converted_sale_id = sale.id
        quote.converted_at = utcnow()
        return sale

    sale = atomic(_op)
    current_app.logger.info(
        "Quote converted tenant=%s quote=%s sale=%s total=%s",
        tenant_id, quote_id, sale.invoice_number, sale.grand_total_cents,
    )
    return sale


def get_quote(tenant_id: int, quote_id: int) -> Quote:
    return get_owned_or_404(Quote, quote_id, tenant_id, label="Quote")


def list_quotes(tenant_id: int, params, filters: dict) -> tuple[list, dict]:
    query = scoped_query(Quote, tenant_id)
    if filters.get("status"):
        require_choice("status", filters["status"], QUOTE_STATUSES)
        query = query.filter(Quote.status == filters["status"])
    if filters.get("customer_id"):
        query = query.filter(Quote.customer_id == filters["customer_id"])
    search = (filters.get("search") or "").strip()
    if search:
        like = f"%{search}%"
        query = query.outerjoin(Customer, Customer.id == Quote.customer_id).filter(
            or_(Quote.quote_number.ilike(like), Customer.name.ilike(like))
        )
    return paginate(query, params, QUOTE_SORT_FIELDS, "created_at")
