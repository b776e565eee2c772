# Overview: Flask API routes for customer payments (collections against open balances).

from flask import Blueprint, request, g

from ..services import payment_service
from ..validation import DomainError
from ..decorators import require_auth, require_permission
from ..responses import ok, error_response
from .common import list_params, datetime_range_filters

payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.get("")
@require_auth
@require_permission("payments.view")
def list_payments_route():
    try:
        filters = {
            "customer_id": request.args.get("customer_id", type=int),
            "sale_id": request.args.get("sale_id", type=int),
            "payment_method": request.args.get("payment_method"),
            "status": request.args.get("status"),
        }
        filters.update(datetime_range_filters())
        rows, meta = payment_service.list_payments(g.tenant_id, list_params(), filters)
        return ok([p.to_dict() for p in rows], meta=meta)
    except DomainError as e:
        return error_response(e)


@payments_bp.post("")
@require_auth
@require_permission("payments.create")
def create_payment_route():
    """
    Collect money from a customer.

    Body: {"customer_id", "amount_cents", "payment_method", "account_id"?,
           "sale_id"?, "notes"?}
    """
    payload = request.get_json(silent=True) or {}
    try:
        payment = payment_service.record_payment(g.tenant_id, payload, user_id=g.current_user.id)
        return ok(payment.to_dict(), 201)
    except DomainError as e:
        return error_response(e)
