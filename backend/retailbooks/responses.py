# Overview: JSON envelope helpers shared by every route.

"""
Response envelope

Success: {"success": true, "data": ..., "meta"?: {...}}
Failure: {"success": false, "message": str, "code"?: str, "errors"?: {...}}
"""

from __future__ import annotations

from flask import jsonify, current_app

from .extensions import db
from .validation import DomainError


def ok(data=None, status: int = 200, meta: dict | None = None):
    body = {"success": True, "data": data}
    if meta is not None:
        body["meta"] = meta
    return jsonify(body), status


def fail(message: str, status: int, code: str | None = None, errors: dict | None = None):
    body = {"success": False, "message": message}
    if code:
        body["code"] = code
    if errors:
        body["errors"] = errors
    return jsonify(body), status


def error_response(exc: DomainError):
    """
    Map a domain error to its envelope.

    The session is rolled back first so nothing half-written by the failed
    request can be committed by a later flush.
    """
    db.session.rollback()
    status = getattr(exc, "status_code", 400)
    if status >= 500:
        current_app.logger.error("Domain error with status %s: %s", status, exc)
    return fail(str(exc), status, getattr(exc, "code", None), getattr(exc, "details", None))


def internal_error():
    db.session.rollback()
    return fail("Internal server error", 500, "INTERNAL_ERROR")
