# Overview: Service-layer operations for document numbering.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence
from retailbooks.time_utils import utcnow, period_key
from .concurrency import SequenceConflict

# document_type -> (prefix, zero padding)
DOCUMENT_NUMBER_FORMATS = {
    "sale": ("INV", 4),
    "return": ("RET", 4),
    "quote": ("TKL", 4),
    "stock_transfer": ("TRN", 4),
}


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""


def next_document_number(
    *,
    tenant_id: int,
    document_type: str,
    prefix: str | None = None,
    pad: int | None = None,
    when: datetime | None = None,
) -> str:
    """
    Atomically allocate the next document number for a tenant/type/period.

    Format: {prefix}{YYYY}{MM}{counter}, the counter restarting every month
    (e.g. INV2026100001). Uses an atomic UPDATE ... SET next = next + 1 on the
    sequence row. Does not commit: the number belongs to the caller's unit
    of work and is released if that unit rolls back.
    """
    if not tenant_id:
        raise DocumentSequenceError("tenant_id is required")
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    default_prefix, default_pad = DOCUMENT_NUMBER_FORMATS.get(document_type, (None, 4))
    prefix = prefix or default_prefix
    pad = pad or default_pad
    if not prefix:
        raise DocumentSequenceError(f"No number prefix for {document_type}")

    period = period_key(when or utcnow())

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.tenant_id == tenant_id,
            DocumentSequence.document_type == document_type,
            DocumentSequence.period == period,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(tenant_id=tenant_id, document_type=document_type, period=period)
            .scalar()
        )
        number = current - 1
    else:
        db.session.add(DocumentSequence(
            tenant_id=tenant_id,
            document_type=document_type,
            period=period,
            next_number=2,
        ))
        try:
            db.session.flush()
        except IntegrityError as exc:
            # Another transaction created the row first; the unit of work is retried
            raise SequenceConflict(f"Sequence row for {document_type}/{period} created concurrently") from exc
        number = 1

    return f"{prefix}{period}{number:0{pad}d}"


def next_free_document_number(*, tenant_id: int, document_type: str, column, when: datetime | None = None) -> str:
    """
    Allocate the next sequence number that no row of the tenant already uses.

    column is the mapped number attribute (e.g. Sale.invoice_number). Numbers
    entered by hand can land on a future sequence value; those values are
    consumed and skipped.
    """
    model = column.class_
    while True:
        number = next_document_number(tenant_id=tenant_id, document_type=document_type, when=when)
        taken = db.session.query(model.id).filter(model.tenant_id == tenant_id, column == number).first()
        if taken is None:
            return number
