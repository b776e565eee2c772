# Overview: Flask API routes for e-documents; state machine actions and audit logs.

"""
E-document routes.

draft -> pending -> sent -> approved|rejected, cancellation from draft or
pending. Every transition is written to the document log.
"""

from flask import Blueprint, request, g

from ..services import edocument_service
from ..validation import DomainError
from ..decorators import require_auth, require_permission
from ..responses import ok, error_response
from .common import list_params, bool_arg

edocuments_bp = Blueprint("edocuments", __name__, url_prefix="/api/e-documents")


@edocuments_bp.get("")
@require_auth
@require_permission("edocuments.view")
def list_edocuments_route():
    try:
        rows, meta = edocument_service.list_edocuments(g.tenant_id, list_params(), {
            "document_type": request.args.get("document_type"),
            "status": request.args.get("status"),
            "reference_type": request.args.get("reference_type"),
            "reference_id": request.args.get("reference_id", type=int),
        })
        return ok([d.to_dict() for d in rows], meta=meta)
    except DomainError as e:
        return error_response(e)


@edocuments_bp.post("")
@require_auth
@require_permission("edocuments.manage")
def create_edocument_route():
    """Body: {"document_type", "reference_type": "sale"|"return", "reference_id", "receiver_*"?}"""
    payload = request.get_json(silent=True) or {}
    try:
        document = edocument_service.create_edocument(g.tenant_id, g.current_user.id, payload)
        return ok(document.to_dict(), 201)
    except DomainError as e:
        return error_response(e)


@edocuments_bp.get("/summary")
@require_auth
@require_permission("edocuments.view")
def edocuments_summary_route():
    return ok(edocument_service.get_summary(g.tenant_id))


@edocuments_bp.get("/<int:document_id>")
@require_auth
@require_permission("edocuments.view")
def get_edocument_route(document_id: int):
    try:
        document = edocument_service.get_edocument(g.tenant_id, document_id)
        return ok(document.to_dict(include_xml=bool(bool_arg("include_xml"))))
    except DomainError as e:
        return error_response(e)


@edocuments_bp.get("/<int:document_id>/logs")
@require_auth
@require_permission("edocuments.view")
def edocument_logs_route(document_id: int):
    try:
        logs = edocument_service.list_edocument_logs(g.tenant_id, document_id)
        return ok([entry.to_dict() for entry in logs])
    except DomainError as e:
        return error_response(e)


@edocuments_bp.post("/<int:document_id>/submit")
@require_auth
@require_permission("edocuments.manage")
def submit_edocument_route(document_id: int):
    try:
        document = edocument_service.submit_edocument(g.tenant_id, document_id, user_id=g.current_user.id)
        return ok(document.to_dict())
    except DomainError as e:
        return error_response(e)


@edocuments_bp.post("/<int:document_id>/send")
@require_auth
@require_permission("edocuments.manage")
def send_edocument_route(document_id: int):
    try:
        document = edocument_service.send_edocument(g.tenant_id, document_id, user_id=g.current_user.id)
        return ok(document.to_dict())
    except DomainError as e:
        return error_response(e)


@edocuments_bp.post("/<int:document_id>/check-status")
@require_auth
@require_permission("edocuments.manage")
def check_status_route(document_id: int):
    try:
        document = edocument_service.check_edocument_status(g.tenant_id, document_id, user_id=g.current_user.id)
        return ok(document.to_dict())
    except DomainError as e:
        return error_response(e)


@edocuments_bp.post("/<int:document_id>/cancel")
@require_auth
@require_permission("edocuments.manage")
def cancel_edocument_route(document_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        document = edocument_service.cancel_edocument(
            g.tenant_id, document_id, user_id=g.current_user.id, reason=payload.get("reason")
        )
        return ok(document.to_dict())
    except DomainError as e:
        return error_response(e)
