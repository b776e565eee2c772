# Overview: Flask API routes for cash/bank accounts, their movements and transfers.

from flask import Blueprint, request, g

from ..services import account_service
from ..services.tenant_service import get_owned_or_404
from ..models import Account
from ..validation import DomainError
from ..decorators import require_auth, require_permission
from ..responses import ok, error_response
from .common import list_params, bool_arg

accounts_bp = Blueprint("accounts", __name__, url_prefix="/api/accounts")


@accounts_bp.get("")
@require_auth
@require_permission("accounts.view")
def list_accounts_route():
    try:
        accounts = account_service.list_accounts(g.tenant_id, {
            "account_type": request.args.get("account_type"),
            "is_active": bool_arg("is_active"),
        })
        return ok([a.to_dict() for a in accounts])
    except DomainError as e:
        return error_response(e)


@accounts_bp.post("")
@require_auth
@require_permission("accounts.manage")
def create_account_route():
    """Body: {"name", "account_type": "kasa"|"banka", "opening_balance_cents"?, "bank_name"?, "iban"?}"""
    payload = request.get_json(silent=True) or {}
    try:
        account = account_service.create_account(g.tenant_id, payload)
        return ok(account.to_dict(), 201)
    except DomainError as e:
        return error_response(e)


@accounts_bp.get("/summary")
@require_auth
@require_permission("accounts.view")
def accounts_summary_route():
    return ok(account_service.get_summary(g.tenant_id))


@accounts_bp.get("/transfers")
@require_auth
@require_permission("accounts.view")
def list_transfers_route():
    try:
        rows, meta = account_service.list_transfers(g.tenant_id, list_params())
        return ok([t.to_dict() for t in rows], meta=meta)
    except DomainError as e:
        return error_response(e)


@accounts_bp.post("/transfers")
@require_auth
@require_permission("accounts.manage")
def create_transfer_route():
    """Body: {"from_account_id", "to_account_id", "amount_cents", "description"?}"""
    payload = request.get_json(silent=True) or {}
    try:
        record = account_service.transfer(g.tenant_id, payload, user_id=g.current_user.id)
        return ok(record.to_dict(), 201)
    except DomainError as e:
        return error_response(e)


@accounts_bp.get("/<int:account_id>")
@require_auth
@require_permission("accounts.view")
def get_account_route(account_id: int):
    try:
        return ok(get_owned_or_404(Account, account_id, g.tenant_id, label="Account").to_dict())
    except DomainError as e:
        return error_response(e)


@accounts_bp.patch("/<int:account_id>")
@require_auth
@require_permission("accounts.manage")
def update_account_route(account_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        return ok(account_service.update_account(g.tenant_id, account_id, payload).to_dict())
    except DomainError as e:
        return error_response(e)


@accounts_bp.get("/<int:account_id>/movements")
@require_auth
@require_permission("accounts.view")
def list_movements_route(account_id: int):
    try:
        rows, meta = account_service.list_account_movements(g.tenant_id, account_id, list_params())
        return ok([m.to_dict() for m in rows], meta=meta)
    except DomainError as e:
        return error_response(e)


@accounts_bp.post("/<int:account_id>/movements")
@require_auth
@require_permission("accounts.manage")
def create_movement_route(account_id: int):
    """Body: {"movement_type": "gelir"|"gider", "amount_cents", "description"?}"""
    payload = request.get_json(silent=True) or {}
    try:
        movement = account_service.post_manual_movement(g.tenant_id, account_id, payload, user_id=g.current_user.id)
        return ok(movement.to_dict(), 201)
    except DomainError as e:
        return error_response(e)
