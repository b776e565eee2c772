# Overview: Flask API routes for read-only reports.

from flask import Blueprint, g

from ..services import reporting_service
from ..validation import DomainError
from ..decorators import require_auth, require_permission
from ..responses import ok, error_response
from .common import date_range_args

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/sales-summary")
@require_auth
@require_permission("reports.view")
def sales_summary_route():
    """Query: start, end (YYYY-MM-DD, inclusive)."""
    try:
        start, end = date_range_args()
        return ok(reporting_service.sales_summary(g.tenant_id, start, end))
    except DomainError as e:
        return error_response(e)


@reports_bp.get("/vat")
@require_auth
@require_permission("reports.advanced")
def vat_report_route():
    try:
        start, end = date_range_args()
        return ok(reporting_service.vat_report(g.tenant_id, start, end))
    except DomainError as e:
        return error_response(e)


@reports_bp.get("/debts")
@require_auth
@require_permission("reports.advanced")
def debts_route():
    return ok(reporting_service.debt_overview(g.tenant_id))


@reports_bp.get("/stock-alerts")
@require_auth
@require_permission("reports.view")
def stock_alerts_route():
    return ok(reporting_service.stock_alerts(g.tenant_id))
