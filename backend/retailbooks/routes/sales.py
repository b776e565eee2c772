# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

"""
Sales routes.

A sale is written in one unit of work: items, stock movements, payment and
customer ledger entries. Cancellation reverses all of them.
"""

from flask import Blueprint, request, g

from ..services import sales_service
from ..validation import DomainError
from ..decorators import require_auth, require_permission
from ..responses import ok, error_response
from .common import list_params, datetime_range_filters

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
@require_auth
@require_permission("sales.view")
def list_sales_route():
    """Filters: status, customer_id, payment_method, sale_type, search, start, end."""
    try:
        filters = {
            "status": request.args.get("status"),
            "customer_id": request.args.get("customer_id", type=int),
            "payment_method": request.args.get("payment_method"),
            "sale_type": request.args.get("sale_type"),
            "search": request.args.get("search"),
        }
        filters.update(datetime_range_filters())
        rows, meta = sales_service.list_sales(g.tenant_id, list_params(), filters)
        return ok([s.to_dict() for s in rows], meta=meta)
    except DomainError as e:
        return error_response(e)


@sales_bp.post("")
@require_auth
@require_permission("sales.create")
def create_sale_route():
    """
    Body: {"items": [{"product_id", "quantity", "unit_price_cents"?, "discount_rate_bps"?}],
           "payment_method", "customer_id"?, "sale_type"?, "include_vat"?,
           "discount_cents"?|"discount_rate_bps"?, "warehouse_id"?, "account_id"?,
           "due_date"?, "notes"?, "invoice_number"?}
    """
    payload = request.get_json(silent=True) or {}
    try:
        sale = sales_service.create_sale(g.tenant_id, g.current_user.id, payload)
        return ok(sale.to_dict(include_items=True), 201)
    except DomainError as e:
        return error_response(e)


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_permission("sales.view")
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(g.tenant_id, sale_id)
        return ok(sale.to_dict(include_items=True))
    except DomainError as e:
        return error_response(e)


@sales_bp.post("/<int:sale_id>/cancel")
@require_auth
@require_permission("sales.cancel")
def cancel_sale_route(sale_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        sale = sales_service.cancel_sale(g.tenant_id, sale_id, g.current_user.id, reason=payload.get("reason"))
        return ok(sale.to_dict(include_items=True))
    except DomainError as e:
        return error_response(e)


@sales_bp.get("/<int:sale_id>/returnable")
@require_auth
@require_permission("returns.view")
def returnable_items_route(sale_id: int):
    try:
        return ok(sales_service.returnable_items(g.tenant_id, sale_id))
    except DomainError as e:
        return error_response(e)
