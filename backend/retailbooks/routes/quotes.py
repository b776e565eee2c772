# Overview: Flask API routes for quotes; status actions and conversion into sales.

"""
Quote routes.

Lifecycle: draft -> sent -> accepted|rejected|expired, and sent|accepted ->
converted. Conversion writes a sale from the quote's frozen amounts and
needs quotes.convert plus sales.create.
"""

from flask import Blueprint, request, g

from ..services import quote_service, permission_service
from ..validation import DomainError
from ..decorators import require_auth, require_permission
from ..responses import ok, error_response
from .common import list_params

quotes_bp = Blueprint("quotes", __name__, url_prefix="/api/quotes")


@quotes_bp.get("")
@require_auth
@require_permission("quotes.view")
def list_quotes_route():
    try:
        rows, meta = quote_service.list_quotes(g.tenant_id, list_params(), {
            "status": request.args.get("status"),
            "customer_id": request.args.get("customer_id", type=int),
            "search": request.args.get("search"),
        })
        return ok([q.to_dict() for q in rows], meta=meta)
    except DomainError as e:
        return error_response(e)


@quotes_bp.post("")
@require_auth
@require_permission("quotes.manage")
def create_quote_route():
    payload = request.get_json(silent=True) or {}
    try:
        quote = quote_service.create_quote(g.tenant_id, g.current_user.id, payload)
        return ok(quote.to_dict(include_items=True), 201)
    except DomainError as e:
        return error_response(e)


@quotes_bp.get("/<int:quote_id>")
@require_auth
@require_permission("quotes.view")
def get_quote_route(quote_id: int):
    try:
        return ok(quote_service.get_quote(g.tenant_id, quote_id).to_dict(include_items=True))
    except DomainError as e:
        return error_response(e)


@quotes_bp.patch("/<int:quote_id>")
@require_auth
@require_permission("quotes.manage")
def update_quote_route(quote_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        quote = quote_service.update_quote(g.tenant_id, quote_id, payload)
        return ok(quote.to_dict(include_items=True))
    except DomainError as e:
        return error_response(e)


@quotes_bp.delete("/<int:quote_id>")
@require_auth
@require_permission("quotes.manage")
def delete_quote_route(quote_id: int):
    try:
        quote_service.delete_quote(g.tenant_id, quote_id)
        return ok({"deleted": True, "id": quote_id})
    except DomainError as e:
        return error_response(e)


@quotes_bp.post("/<int:quote_id>/<any(send, accept, reject):action>")
@require_auth
@require_permission("quotes.manage")
def quote_action_route(quote_id: int, action: str):
    try:
        quote = quote_service.change_status(g.tenant_id, quote_id, action)
        return ok(quote.to_dict(include_items=True))
    except DomainError as e:
        return error_response(e)


@quotes_bp.post("/<int:quote_id>/convert")
@require_auth
@require_permission("quotes.convert")
def convert_quote_route(quote_id: int):
    """Body: {"payment_method", "account_id"?, "warehouse_id"?, "due_date"?, "notes"?}"""
    payload = request.get_json(silent=True) or {}
    try:
        permission_service.require_permission(g.context, "sales.create")
        sale = quote_service.convert_quote(g.tenant_id, quote_id, g.current_user.id, payload)
        return ok(sale.to_dict(include_items=True), 201)
    except DomainError as e:
        return error_response(e)
