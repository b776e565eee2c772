# Overview: Flask API routes for customers and their account ledger.

from flask import Blueprint, request, g

from ..services import customer_service
from ..services.tenant_service import get_owned_or_404
from ..models import Customer
from ..validation import DomainError
from ..decorators import require_auth, require_permission
from ..responses import ok, error_response
from .common import list_params, bool_arg

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
@require_permission("customers.view")
def list_customers_route():
    try:
        rows, meta = customer_service.list_customers(g.tenant_id, list_params(), {
            "search": request.args.get("search"),
            "is_active": bool_arg("is_active"),
            "has_debt": bool_arg("has_debt"),
        })
        return ok([c.to_dict() for c in rows], meta=meta)
    except DomainError as e:
        return error_response(e)


@customers_bp.post("")
@require_auth
@require_permission("customers.manage")
def create_customer_route():
    payload = request.get_json(silent=True) or {}
    try:
        customer = customer_service.create_customer(g.context.tenant, payload)
        return ok(customer.to_dict(), 201)
    except DomainError as e:
        return error_response(e)


@customers_bp.get("/<int:customer_id>")
@require_auth
@require_permission("customers.view")
def get_customer_route(customer_id: int):
    try:
        customer = get_owned_or_404(Customer, customer_id, g.tenant_id, label="Customer")
        return ok(customer.to_dict())
    except DomainError as e:
        return error_response(e)


@customers_bp.patch("/<int:customer_id>")
@require_auth
@require_permission("customers.manage")
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        customer = customer_service.update_customer(g.tenant_id, customer_id, payload)
        return ok(customer.to_dict())
    except DomainError as e:
        return error_response(e)


@customers_bp.get("/<int:customer_id>/transactions")
@require_auth
@require_permission("customers.view")
def list_transactions_route(customer_id: int):
    """Customer ledger, newest first by default."""
    try:
        rows, meta = customer_service.list_customer_transactions(g.tenant_id, customer_id, list_params())
        return ok([t.to_dict() for t in rows], meta=meta)
    except DomainError as e:
        return error_response(e)


@customers_bp.post("/<int:customer_id>/transactions")
@require_auth
@require_permission("customers.manage")
def add_transaction_route(customer_id: int):
    """Body: {"transaction_type": "borc"|"alacak", "amount_cents", "description"?}"""
    payload = request.get_json(silent=True) or {}
    try:
        txn = customer_service.add_manual_transaction(g.tenant_id, customer_id, payload, user_id=g.current_user.id)
        return ok(txn.to_dict(), 201)
    except DomainError as e:
        return error_response(e)
