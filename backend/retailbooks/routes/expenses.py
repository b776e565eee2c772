# Overview: Flask API routes for expenses and their totals by category.

from flask import Blueprint, request, g

from ..services import expense_service
from ..validation import DomainError
from ..decorators import require_auth, require_permission
from ..responses import ok, error_response
from .common import list_params, bool_arg, date_range_args

expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


@expenses_bp.get("")
@require_auth
@require_permission("expenses.view")
def list_expenses_route():
    """Filters: category, account_id, is_recurring, start, end."""
    try:
        start, end = date_range_args()
        rows, meta = expense_service.list_expenses(g.tenant_id, list_params(), {
            "category": request.args.get("category"),
            "account_id": request.args.get("account_id", type=int),
            "is_recurring": bool_arg("is_recurring"),
            "start": start,
            "end": end,
        })
        return ok([e.to_dict() for e in rows], meta=meta)
    except DomainError as e:
        return error_response(e)


@expenses_bp.post("")
@require_auth
@require_permission("expenses.manage")
def create_expense_route():
    """
    Body: {"category", "amount_cents", "expense_date", "description"?,
           "account_id"?, "is_recurring"?, "recurrence_period"?}
    """
    payload = request.get_json(silent=True) or {}
    try:
        expense = expense_service.create_expense(g.tenant_id, payload, user_id=g.current_user.id)
        return ok(expense.to_dict(), 201)
    except DomainError as e:
        return error_response(e)


@expenses_bp.get("/summary")
@require_auth
@require_permission("expenses.view")
def expense_summary_route():
    try:
        start, end = date_range_args()
        rows = expense_service.totals_by_category(g.tenant_id, start, end)
        return ok(rows, meta={"total_cents": sum(r["total_cents"] for r in rows)})
    except DomainError as e:
        return error_response(e)


@expenses_bp.get("/<int:expense_id>")
@require_auth
@require_permission("expenses.view")
def get_expense_route(expense_id: int):
    try:
        return ok(expense_service.get_expense(g.tenant_id, expense_id).to_dict())
    except DomainError as e:
        return error_response(e)


@expenses_bp.patch("/<int:expense_id>")
@require_auth
@require_permission("expenses.manage")
def update_expense_route(expense_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        expense = expense_service.update_expense(g.tenant_id, expense_id, payload, user_id=g.current_user.id)
        return ok(expense.to_dict())
    except DomainError as e:
        return error_response(e)


@expenses_bp.delete("/<int:expense_id>")
@require_auth
@require_permission("expenses.manage")
def delete_expense_route(expense_id: int):
    try:
        expense_service.delete_expense(g.tenant_id, expense_id, user_id=g.current_user.id)
        return ok({"deleted": True, "id": expense_id})
    except DomainError as e:
        return error_response(e)
