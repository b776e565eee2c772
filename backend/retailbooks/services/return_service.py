# Overview: Service-layer operations for returns; encapsulates business logic and database work.

"""
Returns Service

A return may be linked to a sale or stand alone.

LINKED: every item names a sale_item_id of that sale and
    quantity <= sold - sum(previously returned for that sale item)
UNLINKED: items name a product; quantities are not capped.

Unit price and VAT rate default from the sale item, then the product.
line_total = quantity * unit_price + vat

Returned quantities go back into stock ('return' movements). When a
customer is known (explicitly or through the sale) the return total is
credited to them with an alacak transaction.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Return, ReturnItem, Sale, SaleItem
from ..money import percent_of
from ..validation import (
    ValidationError,
    ConflictError,
    check_amount,
    coerce_int,
    optional_int,
    parse_bool,
    require_items,
    require_int,
)
from .concurrency import atomic
from .tenant_service import get_owned_or_404, scoped_query
from .pagination import paginate
from .document_service import next_document_number
from . import inventory_service, customer_service
from .sales_service import lock_products, returned_quantities, resolve_warehouse_id

RETURN_SORT_FIELDS = {
    "return_date": Return.return_date,
    "grand_total_cents": Return.grand_total_cents,
    "return_number": Return.return_number,
}


def _parse_items(payload: dict, linked: bool) -> list[dict]:
    parsed = []
    for index, item in enumerate(require_items(payload)):
        key = "sale_item_id" if linked else "product_id"
        if item.get(key) in (None, ""):
            raise ValidationError(f"items[{index}].{key} is required", details={"items": index})
        unit_price = optional_int(item, "unit_price_cents")
        if unit_price is not None:
            check_amount("unit_price_cents", unit_price)
        parsed.append({
            key: coerce_int(key, item[key]),
            "quantity": require_int(item, "quantity", minimum=1),
            "unit_price_cents": unit_price,
        })
    return parsed


def _line(quantity: int, unit_price: int, vat_rate: int, include_vat: bool) -> dict:
    base = quantity * unit_price
    vat = percent_of(base, vat_rate) if include_vat else 0
    return {
        "quantity": quantity,
        "unit_price_cents": unit_price,
        "vat_rate_bps": vat_rate,
        "vat_cents": vat,
        "net_cents": base,
        "line_total_cents": base + vat,
    }


def create_return(tenant_id: int, user_id: int | None, payload: dict) -> Return:
    """
    Raises:
        ValidationError: malformed items
        NotFoundError: unknown sale, sale item, product or customer
        ConflictError: cancelled sale, quantity above what is still returnable
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    sale_id = optional_int(payload, "sale_id")
    customer_id = optional_int(payload, "customer_id")
    warehouse_id = optional_int(payload, "warehouse_id")
    linked = sale_id is not None
    items = _parse_items(payload, linked)
    reason = payload.get("reason")

    def _op():
        sale = None
        if linked:
            sale = get_owned_or_404(Sale, sale_id, tenant_id, label="Sale", lock=True)
            if sale.status == "cancelled":
                raise ConflictError(f"Sale {sale.invoice_number} is cancelled")

        customer = None
        effective_customer_id = customer_id if customer_id is not None else (sale.customer_id if sale else None)
        if effective_customer_id is not None:
            customer = customer_service.lock_customer(tenant_id, effective_customer_id)

        wh_id = resolve_warehouse_id(tenant_id, warehouse_id)
        if wh_id is None and sale is not None:
            wh_id = sale.warehouse_id

        lines = []
        if linked:
            sale_items = {item.id: item for item in sale.items}
            already = returned_quantities(sale.id)
            requested: dict[int, int] = {}
            for entry in items:
                sale_item = sale_items.get(entry["sale_item_id"])
                if sale_item is None:
                    raise ValidationError(
                        f"Sale item {entry['sale_item_id']} does not belong to sale {sale.invoice_number}",
                        details={"sale_item_id": entry["sale_item_id"]},
                    )
                requested[sale_item.id] = requested.get(sale_item.id, 0) + entry["quantity"]

            over = []
            for sale_item_id, quantity in requested.items():
                sale_item = sale_items[sale_item_id]
                remaining = sale_item.quantity - already.get(sale_item_id, 0)
                if quantity > remaining:
                    over.append({
                        "sale_item_id": sale_item_id,
                        "product_name": sale_item.product_name,
                        "requested_quantity": quantity,
                        "returnable_quantity": max(remaining, 0),
                    })
            if over:
                raise ConflictError("Return quantity exceeds the returnable quantity", details={"items": over})

            product_ids = [sale_items[e["sale_item_id"]].product_id for e in items]
            products = lock_products(tenant_id, [pid for pid in product_ids if pid is not None])

            for entry in items:
                sale_item: SaleItem = sale_items[entry["sale_item_id"]]
                unit_price = entry["unit_price_cents"]
                if unit_price is None:
                    unit_price = sale_item.unit_price_cents
                amounts = _line(entry["quantity"], unit_price, sale_item.vat_rate_bps, sale.include_vat)
                lines.append((sale_item.id, products.get(sale_item.product_id), sale_item.product_name, amounts))
        else:
            include_vat = parse_bool(payload.get("include_vat"), default=True)
            products = lock_products(tenant_id, [e["product_id"] for e in items])
            for entry in items:
                product = products[entry["product_id"]]
                unit_price = entry["unit_price_cents"]
                if unit_price is None:
                    unit_price = product.sale_price_cents
                amounts = _line(entry["quantity"], unit_price, product.vat_rate_bps, include_vat)
                lines.append((None, product, product.name, amounts))

        subtotal = sum(a["net_cents"] for _, _, _, a in lines)
        vat_total = sum(a["vat_cents"] for _, _, _, a in lines)

        ret = Return(
            tenant_id=tenant_id,
            return_number=next_document_number(tenant_id=tenant_id, document_type="return"),
            sale_id=sale.id if sale else None,
            customer_id=customer.id if customer else None,
            warehouse_id=wh_id,
            subtotal_cents=subtotal,
            vat_total_cents=vat_total,
            grand_total_cents=subtotal + vat_total,
            reason=reason,
            status="completed",
            created_by_user_id=user_id,
        )
        db.session.add(ret)
        db.session.flush()

        for sale_item_id, product, product_name, amounts in lines:
            ret.items.append(ReturnItem(
                sale_item_id=sale_item_id,
                product_id=product.id if product else None,
                product_name=product_name,
                quantity=amounts["quantity"],
                unit_price_cents=amounts["unit_price_cents"],
                vat_rate_bps=amounts["vat_rate_bps"],
                vat_cents=amounts["vat_cents"],
                line_total_cents=amounts["line_total_cents"],
            ))
            if product is not None:
                inventory_service.apply_stock_movement(
                    tenant_id=tenant_id,
                    product=product,
                    quantity=amounts["quantity"],
                    movement_type="return",
                    warehouse_id=wh_id,
                    reference_type="return",
                    reference_id=ret.id,
                    notes=f"Return {ret.return_number}",
                    user_id=user_id,
                )

        if customer is not None and ret.grand_total_cents > 0:
            customer_service.post_customer_transaction(
                tenant_id=tenant_id,
                customer=customer,
                transaction_type="alacak",
                amount_cents=ret.grand_total_cents,
                reference_type="return",
                reference_id=ret.id,
                description=f"Return {ret.return_number}",
                user_id=user_id,
            )

        db.session.flush()
        return ret

    ret = atomic(_op)
    current_app.logger.info(
        "Return created tenant=%s number=%s sale=%s total=%s",
        tenant_id, ret.return_number, ret.sale_id, ret.grand_total_cents,
    )
    return ret


def get_return(tenant_id: int, return_id: int) -> Return:
    return get_owned_or_404(Return, return_id, tenant_id, label="Return")


def list_returns(tenant_id: int, params, filters: dict) -> tuple[list, dict]:
    query = scoped_query(Return, tenant_id)
    if filters.get("sale_id"):
        query = query.filter(Return.sale_id == filters["sale_id"])
    if filters.get("customer_id"):
        query = query.filter(Return.customer_id == filters["customer_id"])
    if filters.get("start"):
        query = query.filter(Return.return_date >= filters["start"])
    if filters.get("end"):
        query = query.filter(Return.return_date <= filters["end"])
    return paginate(query, params, RETURN_SORT_FIELDS, "return_date")
