# Overview: Flask API routes for returns; parses input and returns JSON responses.

from flask import Blueprint, request, g

from ..services import return_service
from ..validation import DomainError
from ..decorators import require_auth, require_permission
from ..responses import ok, error_response
from .common import list_params, datetime_range_filters

returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.get("")
@require_auth
@require_permission("returns.view")
def list_returns_route():
    try:
        filters = {
            "sale_id": request.args.get("sale_id", type=int),
            "customer_id": request.args.get("customer_id", type=int),
        }
        filters.update(datetime_range_filters())
        rows, meta = return_service.list_returns(g.tenant_id, list_params(), filters)
        return ok([r.to_dict() for r in rows], meta=meta)
    except DomainError as e:
        return error_response(e)


@returns_bp.post("")
@require_auth
@require_permission("returns.create")
def create_return_route():
    """
    Linked: {"sale_id", "items": [{"sale_item_id", "quantity"}], "reason"?}
    Unlinked: {"items": [{"product_id", "quantity", "unit_price_cents"}], "customer_id"?, "include_vat"?}
    """
    payload = request.get_json(silent=True) or {}
    try:
        ret = return_service.create_return(g.tenant_id, g.current_user.id, payload)
        return ok(ret.to_dict(include_items=True), 201)
    except DomainError as e:
        return error_response(e)


@returns_bp.get("/<int:return_id>")
@require_auth
@require_permission("returns.view")
def get_return_route(return_id: int):
    try:
        ret = return_service.get_return(g.tenant_id, return_id)
        return ok(ret.to_dict(include_items=True))
    except DomainError as e:
        return error_response(e)
