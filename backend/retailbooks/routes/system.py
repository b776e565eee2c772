# backend/retailbooks/routes/system.py
"""
System health and version endpoints.

Unauthenticated. Reports database reachability and the state of the plan
catalogue and sessions, nothing tenant-specific.
"""

import sys
import time

from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Plan, Tenant, AuthSession
from ..responses import ok
from retailbooks.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)

API_VERSION = "1.0.0"


def _timed(check) -> dict:
    start_time = time.time()
    result = check()
    result["latency_ms"] = round((time.time() - start_time) * 1000, 2)
    return result


def check_database_health() -> dict:
    try:
        return {
            "status": "healthy",
            "details": {
                "tenants": db.session.query(Tenant).count(),
                "plans": db.session.query(Plan).count(),
            },
        }
    except SQLAlchemyError:
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {"status": "unhealthy", "error": "Database error"}


def check_plan_catalogue() -> dict:
    """Degraded when no plan is seeded: tenants cannot be created."""
    try:
        active = db.session.query(Plan).filter(Plan.is_active.is_(True)).count()
    except SQLAlchemyError:
        current_app.logger.exception("Plan catalogue check failed")
        db.session.rollback()
        return {"status": "unhealthy", "error": "Plan catalogue error"}
    if not active:
        return {"status": "degraded", "warning": "No active plans; run `flask plans seed`"}
    return {"status": "healthy", "details": {"active_plans": active}}


def check_session_health() -> dict:
    try:
        now = utcnow()
        active = db.session.query(AuthSession).filter(
            AuthSession.revoked_at.is_(None),
            AuthSession.refresh_expires_at > now,
        ).count()
        expired = db.session.query(AuthSession).filter(AuthSession.refresh_expires_at <= now).count()
    except SQLAlchemyError:
        current_app.logger.exception("Session health check failed")
        db.session.rollback()
        return {"status": "unhealthy", "error": "Session store error"}
    return {
        "status": "healthy",
        "details": {"active_sessions": active, "expired_pending_cleanup": expired},
    }


@system_bp.get("/health")
def health():
    """
    200 when healthy or degraded, 503 when any check is unhealthy.
    """
    checks = {
        "database": _timed(check_database_health),
        "plans": _timed(check_plan_catalogue),
        "sessions": _timed(check_session_health),
    }
    statuses = {c["status"] for c in checks.values()}
    if "unhealthy" in statuses:
        overall, http_status = "unhealthy", 503
    elif "degraded" in statuses:
        overall, http_status = "degraded", 200
    else:
        overall, http_status = "healthy", 200

    return ok({"status": overall, "timestamp": to_utc_z(utcnow()), "checks": checks}, http_status)


@system_bp.get("/version")
def version():
    """Non-sensitive deployment information."""
    return ok({
        "api_version": API_VERSION,
        "environment": "development" if current_app.debug else "production",
        "python_version": sys.version.split()[0],
        "server_time": to_utc_z(utcnow()),
    })
