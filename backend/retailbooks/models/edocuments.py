from __future__ import annotations

from ..extensions import db
from retailbooks.time_utils import to_utc_z

EDOCUMENT_TYPES = ("e_fatura", "e_arsiv", "e_ihracat", "e_irsaliye", "e_smm")
EDOCUMENT_PREFIXES = {
    "e_fatura": "EFT",
    "e_arsiv": "EAR",
    "e_ihracat": "EIH",
    "e_irsaliye": "EIR",
    "e_smm": "ESM",
}
EDOCUMENT_REFERENCE_TYPES = ("sale", "return")
EDOCUMENT_STATUSES = ("draft", "pending", "sent", "approved", "rejected", "cancelled")


class EDocument(db.Model):
    """
    Electronic document submitted to the government clearing system.

    The submission itself goes through a stub gateway; this row tracks the
    document's state machine and the gateway identifiers.
    """
    __tablename__ = "e_documents"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "document_number", name="uq_e_documents_tenant_document_number"),
        db.Index("ix_e_documents_reference", "tenant_id", "reference_type", "reference_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)

    document_type = db.Column(db.String(20), nullable=False, index=True)
    document_number = db.Column(db.String(32), nullable=False)
    reference_type = db.Column(db.String(20), nullable=False)
    reference_id = db.Column(db.Integer, nullable=False)

    receiver_name = db.Column(db.String(255), nullable=True)
    receiver_tax_number = db.Column(db.String(20), nullable=True)
    receiver_tax_office = db.Column(db.String(100), nullable=True)
    receiver_address = db.Column(db.Text, nullable=True)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    vat_total_cents = db.Column(db.Integer, nullable=False, default=0)
    grand_total_cents = db.Column(db.Integer, nullable=False, default=0)
    currency = db.Column(db.String(3), nullable=False, default="TRY")

    status = db.Column(db.String(20), nullable=False, default="draft", index=True)
    gib_uuid = db.Column(db.String(64), nullable=True)
    envelope_uuid = db.Column(db.String(64), nullable=True)
    response_code = db.Column(db.String(16), nullable=True)
    response_message = db.Column(db.Text, nullable=True)
    xml_content = db.Column(db.Text, nullable=True)

    issue_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    responded_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    logs = db.relationship(
        "EDocumentLog",
        backref="document",
        lazy=True,
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="EDocumentLog.id",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_xml: bool = False) -> dict:
        data = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "document_type": self.document_type,
            "document_number": self.document_number,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "receiver_name": self.receiver_name,
            "receiver_tax_number": self.receiver_tax_number,
            "receiver_tax_office": self.receiver_tax_office,
            "subtotal_cents": self.subtotal_cents,
            "vat_total_cents": self.vat_total_cents,
            "grand_total_cents": self.grand_total_cents,
            "currency": self.currency,
            "status": self.status,
            "gib_uuid": self.gib_uuid,
            "envelope_uuid": self.envelope_uuid,
            "response_code": self.response_code,
            "response_message": self.response_message,
            "issue_date": to_utc_z(self.issue_date),
            "sent_at": to_utc_z(self.sent_at),
            "responded_at": to_utc_z(self.responded_at),
        }
        if include_xml:
            data["xml_content"] = self.xml_content
        return data


class EDocumentLog(db.Model):
    """
    One row per state transition of an e-document.

    IMMUTABLE: append-only; status_before is NULL for the creation row.
    """
    __tablename__ = "e_document_logs"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    e_document_id = db.Column(db.Integer, db.ForeignKey("e_documents.id", ondelete="CASCADE"), nullable=False, index=True)

    action = db.Column(db.String(32), nullable=False)
    status_before = db.Column(db.String(20), nullable=True)
    status_after = db.Column(db.String(20), nullable=False)
    message = db.Column(db.Text, nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "e_document_id": self.e_document_id,
            "action": self.action,
            "status_before": self.status_before,
            "status_after": self.status_after,
            "message": self.message,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }
