# Overview: Service-layer operations for e-documents; encapsulates business logic and database work.

"""
E-Document Service (e-fatura, e-arsiv, e-ihracat, e-irsaliye, e-smm)

STATE MACHINE:
    draft   -> pending | cancelled
    pending -> sent | cancelled
    sent    -> approved | rejected

Every accepted transition appends exactly one EDocumentLog row. A refused
transition raises ConflictError and writes nothing.

Only one non-cancelled document of a given type may exist per referenced
sale or return.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from collections import Counter

from flask import current_app

from ..extensions import db
from ..models import EDocument, EDocumentLog, Sale, Return
from ..models.edocuments import EDOCUMENT_TYPES, EDOCUMENT_PREFIXES, EDOCUMENT_REFERENCE_TYPES, EDOCUMENT_STATUSES
from ..validation import ValidationError, ConflictError, require_choice, require_int
from retailbooks.time_utils import utcnow
from .concurrency import atomic
from .tenant_service import get_owned_or_404, scoped_query
from .pagination import paginate
from .document_service import next_document_number
from .gib_gateway import GibGateway, get_gateway

ALLOWED_TRANSITIONS = {
    "draft": ("pending", "cancelled"),
    "pending": ("sent", "cancelled"),
    "sent": ("approved", "rejected"),
    "approved": (),
    "rejected": (),
    "cancelled": (),
}

EDOCUMENT_NUMBER_PAD = 6
END_CONSUMER_NAME = "Nihai Tuketici"

EDOCUMENT_SORT_FIELDS = {
    "issue_date": EDocument.issue_date,
    "document_number": EDocument.document_number,
    "grand_total_cents": EDocument.grand_total_cents,
    "status": EDocument.status,
}

UBL_NS = {
    "cac": "urn:oasis:names:specification:ubl:schema:xsd:CommonAggregateComponents-2",
    "cbc": "urn:oasis:names:specification:ubl:schema:xsd:CommonBasicComponents-2",
}


def _amount(cents: int) -> str:
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(cents), 100)
    return f"{sign}{whole}.{frac:02d}"


def _cbc(parent, tag: str, text) -> ET.Element:
    el = ET.SubElement(parent, f"{{{UBL_NS['cbc']}}}{tag}")
    el.text = str(text)
    return el


def _cac(parent, tag: str) -> ET.Element:
    return ET.SubElement(parent, f"{{{UBL_NS['cac']}}}{tag}")


def render_ubl_xml(document: EDocument, lines: list[dict]) -> str:
    """
    Minimal UBL-TR body: an Invoice, or a DespatchAdvice for e-irsaliye.

    lines: dicts with name, quantity, unit_price_cents, net_cents.
    """
    for prefix, uri in UBL_NS.items():
        ET.register_namespace(prefix, uri)

    waybill = document.document_type == "e_irsaliye"
    root_name = "DespatchAdvice-2" if waybill else "Invoice-2"
    root_tag = "DespatchAdvice" if waybill else "Invoice"
    root = ET.Element(f"{{urn:oasis:names:specification:ubl:schema:xsd:{root_name}}}{root_tag}")

    issued = document.issue_date or utcnow()
    _cbc(root, "UBLVersionID", "2.1")
    _cbc(root, "CustomizationID", "TR1.2")
    _cbc(root, "ID", document.document_number)
    _cbc(root, "IssueDate", issued.date().isoformat())
    _cbc(root, "IssueTime", issued.strftime("%H:%M:%S"))

    party_tag = "DeliveryCustomerParty" if waybill else "AccountingCustomerParty"
    party = _cac(_cac(root, party_tag), "Party")
    _cbc(_cac(party, "PartyName"), "Name", document.receiver_name or END_CONSUMER_NAME)
    if document.receiver_tax_number:
        _cbc(_cac(party, "PartyTaxScheme"), "CompanyID", document.receiver_tax_number)

    if waybill:
        for index, line in enumerate(lines, start=1):
            row = _cac(root, "DespatchLine")
            _cbc(row, "ID", index)
            _cbc(row, "DeliveredQuantity", line["quantity"])
            _cbc(_cac(row, "Item"), "Name", line["name"])
    else:
        _cbc(root, "InvoiceTypeCode", "SATIS")
        _cbc(root, "DocumentCurrencyCode", document.currency or "TRY")
        _cbc(_cac(root, "TaxTotal"), "TaxAmount", _amount(document.vat_total_cents))
        totals = _cac(root, "LegalMonetaryTotal")
        _cbc(totals, "TaxExclusiveAmount", _amount(document.grand_total_cents - document.vat_total_cents))
        _cbc(totals, "TaxInclusiveAmount", _amount(document.grand_total_cents))
        _cbc(totals, "PayableAmount", _amount(document.grand_total_cents))
        for index, line in enumerate(lines, start=1):
            row = _cac(root, "InvoiceLine")
            _cbc(row, "ID", index)
            _cbc(row, "InvoicedQuantity", line["quantity"])
            _cbc(row, "LineExtensionAmount", _amount(line["net_cents"]))
            _cbc(_cac(row, "Item"), "Name", line["name"])
            _cbc(_cac(row, "Price"), "PriceAmount", _amount(line["unit_price_cents"]))

    body = ET.tostring(root, encoding="unicode")
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + body


# =============================================================================
# Creation
# =============================================================================

def _load_reference(tenant_id: int, reference_type: str, reference_id: int):
    """(totals source, customer or None, xml lines) for a sale or return."""
    if reference_type == "sale":
        sale = get_owned_or_404(Sale, reference_id, tenant_id, label="Sale")
        if sale.status == "cancelled":
            raise ConflictError(f"Sale {sale.invoice_number} is cancelled")
        lines = [
            {"name": i.product_name, "quantity": i.quantity, "unit_price_cents": i.unit_price_cents, "net_cents": i.net_cents}
            for i in sale.items
        ]
        return sale, sale.customer, lines

    ret = get_owned_or_404(Return, reference_id, tenant_id, label="Return")
    lines = [
        {
            "name": i.product_name,
            "quantity": i.quantity,
            "unit_price_cents": i.unit_price_cents,
            "net_cents": i.quantity * i.unit_price_cents,
        }
        for i in ret.items
    ]
    return ret, ret.customer, lines


def create_edocument(tenant_id: int, user_id: int | None, payload: dict) -> EDocument:
    """
    Create a draft e-document for a sale or return.

    Raises:
        ValidationError: unknown type / reference type
        NotFoundError: reference not found in the tenant
        ConflictError: cancelled sale, or a live document of that type already exists
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    document_type = require_choice("document_type", payload.get("document_type"), EDOCUMENT_TYPES)
    reference_type = require_choice("reference_type", payload.get("reference_type"), EDOCUMENT_REFERENCE_TYPES)
    reference_id = require_int(payload, "reference_id")

    def _op():
        source, customer, lines = _load_reference(tenant_id, reference_type, reference_id)

        existing = scoped_query(EDocument, tenant_id).filter(
            EDocument.document_type == document_type,
            EDocument.reference_type == reference_type,
            EDocument.reference_id == reference_id,
            EDocument.status != "cancelled",
        ).first()
        if existing is not None:
            raise ConflictError(
                f"A {document_type} document already exists for this {reference_type}",
                details={"e_document_id": existing.id},
            )

        document = EDocument(
            tenant_id=tenant_id,
            document_type=document_type,
            document_number=next_document_number(
                tenant_id=tenant_id,
                document_type=document_type,
                prefix=EDOCUMENT_PREFIXES[document_type],
                pad=EDOCUMENT_NUMBER_PAD,
            ),
            reference_type=reference_type,
            reference_id=reference_id,
            receiver_name=customer.name if customer else END_CONSUMER_NAME,
            receiver_tax_number=customer.tax_number if customer else None,
            receiver_tax_office=customer.tax_office if customer else None,
            receiver_address=customer.address if customer else None,
            subtotal_cents=source.subtotal_cents,
            vat_total_cents=source.vat_total_cents,
            grand_total_cents=source.grand_total_cents,
            status="draft",
            issue_date=utcnow(),
            created_by_user_id=user_id,
        )
        document.xml_content = render_ubl_xml(document, lines)
        db.session.add(document)
        db.session.flush()

        db.session.add(EDocumentLog(
            tenant_id=tenant_id,
            e_document_id=document.id,
            action="created",
            status_before=None,
            status_after="draft",
            user_id=user_id,
        ))
        return document

    document = atomic(_op)
    current_app.logger.info(
        "E-document created tenant=%s number=%s type=%s reference=%s/%s",
        tenant_id, document.document_number, document_type, reference_type, reference_id,
    )
    return document


# =============================================================================
# Transitions
# =============================================================================

def transition(
    document: EDocument,
    target: str,
    *,
    action: str,
    message: str | None = None,
    user_id: int | None = None,
) -> EDocumentLog:
    """
    Move a document along an allowed edge and append its log row.

    Does not commit. Refused edges raise ConflictError before any write.
    """
    if target not in EDOCUMENT_STATUSES:
        raise ValidationError(f"Unknown e-document status: {target}")
    current = document.status
    if target not in ALLOWED_TRANSITIONS.get(current, ()):
        raise ConflictError(
            f"E-document {document.document_number} cannot go from {current} to {target}",
            details={"status": current, "target": target},
        )

    document.status = target
    log = EDocumentLog(
        tenant_id=document.tenant_id,
        e_document_id=document.id,
        action=action,
        status_before=current,
        status_after=target,
        message=message,
        user_id=user_id,
    )
    db.session.add(log)
    return log


def _lock_document(tenant_id: int, document_id: int) -> EDocument:
    return get_owned_or_404(EDocument, document_id, tenant_id, label="E-document", lock=True)


def _run_transition(tenant_id: int, document_id: int, step) -> EDocument:
    def _op():
        document = _lock_document(tenant_id, document_id)
        step(document)
        return document

    document = atomic(_op)
    current_app.logger.info(
        "E-document %s tenant=%s number=%s", document.status, tenant_id, document.document_number
    )
    return document


def submit_edocument(tenant_id: int, document_id: int, user_id: int | None = None) -> EDocument:
    """draft -> pending."""
    return _run_transition(
        tenant_id, document_id,
        lambda doc: transition(doc, "pending", action="submitted", user_id=user_id),
    )


def send_edocument(
    tenant_id: int,
    document_id: int,
    user_id: int | None = None,
    gateway: GibGateway | None = None,
) -> EDocument:
    """
    pending -> sent through the gateway.

    A draft is submitted first, so sending a draft logs draft -> pending and
    pending -> sent as two rows.
    """
    gateway = gateway or get_gateway()

    def _step(document: EDocument):
        if document.status == "draft":
            transition(document, "pending", action="submitted", user_id=user_id)
        if document.status != "pending":
            raise ConflictError(
                f"E-document {document.document_number} cannot be sent (status: {document.status})",
                details={"status": document.status},
            )

        result = gateway.send_document(document.document_type, document.document_number, document.xml_content or "")
        if not result.success:
            raise ConflictError(f"Gateway refused the document: {result.response_message}")

        document.gib_uuid = result.gib_uuid
        document.envelope_uuid = result.envelope_uuid
        document.response_code = result.response_code
        document.response_message = result.response_message
        document.sent_at = utcnow()
        transition(document, "sent", action="sent", message=result.response_message, user_id=user_id)

    return _run_transition(tenant_id, document_id, _step)


def check_edocument_status(
    tenant_id: int,
    document_id: int,
    user_id: int | None = None,
    gateway: GibGateway | None = None,
) -> EDocument:
    """sent -> approved | rejected, as reported by the gateway."""
    gateway = gateway or get_gateway()

    def _step(document: EDocument):
        if document.status != "sent":
            raise ConflictError(
                f"E-document {document.document_number} has not been sent (status: {document.status})",
                details={"status": document.status},
            )
        result = gateway.check_status(document.gib_uuid)
        document.response_code = result.response_code
        document.response_message = result.response_message
        document.responded_at = utcnow()
        transition(document, result.status, action="status_checked", message=result.response_message, user_id=user_id)

    return _run_transition(tenant_id, document_id, _step)


def cancel_edocument(tenant_id: int, document_id: int, user_id: int | None = None, reason: str | None = None) -> EDocument:
    """draft | pending -> cancelled."""
    return _run_transition(
        tenant_id, document_id,
        lambda doc: transition(doc, "cancelled", action="cancelled", message=reason, user_id=user_id),
    )


# =============================================================================
# Queries
# =============================================================================

def get_edocument(tenant_id: int, document_id: int) -> EDocument:
    return get_owned_or_404(EDocument, document_id, tenant_id, label="E-document")


def list_edocument_logs(tenant_id: int, document_id: int) -> list[EDocumentLog]:
    return list(get_edocument(tenant_id, document_id).logs)


def list_edocuments(tenant_id: int, params, filters: dict) -> tuple[list, dict]:
    query = scoped_query(EDocument, tenant_id)
    if filters.get("document_type"):
        query = query.filter(EDocument.document_type == filters["document_type"])
    if filters.get("status"):
        query = query.filter(EDocument.status == filters["status"])
    if filters.get("reference_type"):
        query = query.filter(EDocument.reference_type == filters["reference_type"])
    if filters.get("reference_id"):
        query = query.filter(EDocument.reference_id == filters["reference_id"])
    return paginate(query, params, EDOCUMENT_SORT_FIELDS, "issue_date")


def get_summary(tenant_id: int) -> dict:
    rows = (
        db.session.query(EDocument.document_type, EDocument.status)
        .filter(EDocument.tenant_id == tenant_id)
        .all()
    )
    by_type = Counter(document_type for document_type, _ in rows)
    by_status = Counter(status for _, status in rows)
    return {
        "total": len(rows),
        "by_type": {t: by_type.get(t, 0) for t in EDOCUMENT_TYPES},
        "by_status": {s: by_status.get(s, 0) for s in EDOCUMENT_STATUSES},
    }
