# Overview: Pytest coverage for the e-document state machine and gateway.

"""
E-Document Tests

STATE MACHINE:
    draft -> pending | cancelled
    pending -> sent | cancelled
    sent -> approved | rejected

Each accepted transition appends one log row; refused transitions write none.
"""

import pytest

from retailbooks.models import EDocument, EDocumentLog
from retailbooks.services import edocument_service
from retailbooks.services.gib_gateway import GibGateway
from retailbooks.services.sales_service import cancel_sale, create_sale
from retailbooks.validation import ConflictError, NotFoundError


@pytest.fixture
def sale(tenant_a, admin_a, product_a, customer_a):
    customer_a.tax_number = "1234567890"
    return create_sale(tenant_a.id, admin_a.id, {
        "payment_method": "veresiye",
        "customer_id": customer_a.id,
        "items": [{"product_id": product_a.id, "quantity": 2}],
    })


@pytest.fixture
def document(tenant_a, admin_a, sale):
    return edocument_service.create_edocument(tenant_a.id, admin_a.id, {
        "document_type": "e_fatura",
        "reference_type": "sale",
        "reference_id": sale.id,
    })


def _log_count(db_session, document) -> int:
    return db_session.query(EDocumentLog).filter_by(e_document_id=document.id).count()


class TestCreateEDocument:

    def test_draft_copies_sale_totals(self, db_session, document, sale):
        assert document.status == "draft"
        assert document.document_number.startswith("EFT")
        assert document.receiver_name == "Ahmet Yilmaz"
        assert document.receiver_tax_number == "1234567890"
        assert document.grand_total_cents == sale.grand_total_cents
        assert _log_count(db_session, document) == 1

    def test_xml_carries_number_and_total(self, db_session, document):
        assert document.document_number in document.xml_content
        assert "240.00" in document.xml_content

    def test_one_live_document_per_reference(self, db_session, tenant_a, admin_a, sale, document):
        with pytest.raises(ConflictError):
            edocument_service.create_edocument(tenant_a.id, admin_a.id, {
                "document_type": "e_fatura",
                "reference_type": "sale",
                "reference_id": sale.id,
            })

    def test_cancelled_document_frees_reference(self, db_session, tenant_a, admin_a, sale, document):
        edocument_service.cancel_edocument(tenant_a.id, document.id, admin_a.id, reason="wrong type")
        again = edocument_service.create_edocument(tenant_a.id, admin_a.id, {
            "document_type": "e_fatura",
            "reference_type": "sale",
            "reference_id": sale.id,
        })
        assert again.id != document.id

    def test_cancelled_sale_refused(self, db_session, tenant_a, admin_a, sale):
        cancel_sale(tenant_a.id, sale.id, admin_a.id)
        with pytest.raises(ConflictError):
            edocument_service.create_edocument(tenant_a.id, admin_a.id, {
                "document_type": "e_arsiv",
                "reference_type": "sale",
                "reference_id": sale.id,
            })

    def test_foreign_reference_not_found(self, db_session, tenant_b, admin_b, sale):
        with pytest.raises(NotFoundError):
            edocument_service.create_edocument(tenant_b.id, admin_b.id, {
                "document_type": "e_arsiv",
                "reference_type": "sale",
                "reference_id": sale.id,
            })


class TestTransitions:

    def test_full_happy_path(self, db_session, tenant_a, admin_a, document):
        edocument_service.submit_edocument(tenant_a.id, document.id, admin_a.id)
        assert document.status == "pending"

        edocument_service.send_edocument(tenant_a.id, document.id, admin_a.id)
        assert document.status == "sent"
        assert document.gib_uuid
        assert document.sent_at is not None

        edocument_service.check_edocument_status(tenant_a.id, document.id, admin_a.id)
        assert document.status == "approved"

        actions = [log.action for log in db_session.query(EDocumentLog).order_by(EDocumentLog.id)]
        assert actions == ["created", "submitted", "sent", "status_checked"]

    def test_sending_a_draft_logs_both_steps(self, db_session, tenant_a, admin_a, document):
        edocument_service.send_edocument(tenant_a.id, document.id, admin_a.id)

        assert document.status == "sent"
        logs = db_session.query(EDocumentLog).filter_by(e_document_id=document.id).order_by(EDocumentLog.id).all()
        assert [(log.status_before, log.status_after) for log in logs] == [
            (None, "draft"),
            ("draft", "pending"),
            ("pending", "sent"),
        ]

    def test_gateway_rejection(self, db_session, tenant_a, admin_a, document):
        edocument_service.send_edocument(tenant_a.id, document.id, admin_a.id)
        edocument_service.check_edocument_status(
            tenant_a.id, document.id, admin_a.id, gateway=GibGateway(reject=True),
        )
        assert document.status == "rejected"
        assert document.response_message

    def test_gateway_ids_are_deterministic(self):
        first = GibGateway().send_document("e_fatura", "EFT202601000001", "<xml/>")
        second = GibGateway().send_document("e_fatura", "EFT202601000001", "<xml/>")
        assert first.gib_uuid == second.gib_uuid
        assert first.envelope_uuid != first.gib_uuid

    @pytest.mark.parametrize("step", ["submit", "cancel"])
    def test_refused_transition_writes_no_log(self, db_session, tenant_a, admin_a, document, step):
        edocument_service.send_edocument(tenant_a.id, document.id, admin_a.id)
        before = _log_count(db_session, document)

        with pytest.raises(ConflictError):
            if step == "submit":
                edocument_service.submit_edocument(tenant_a.id, document.id, admin_a.id)
            else:
                edocument_service.cancel_edocument(tenant_a.id, document.id, admin_a.id)

        assert document.status == "sent"
        assert _log_count(db_session, document) == before

    def test_status_check_before_send_refused(self, db_session, tenant_a, admin_a, document):
        with pytest.raises(ConflictError):
            edocument_service.check_edocument_status(tenant_a.id, document.id, admin_a.id)
        assert _log_count(db_session, document) == 1

    def test_resend_refused(self, db_session, tenant_a, admin_a, document):
        edocument_service.send_edocument(tenant_a.id, document.id, admin_a.id)
        before = _log_count(db_session, document)
        with pytest.raises(ConflictError) as exc_info:
            edocument_service.send_edocument(tenant_a.id, document.id, admin_a.id)
        assert exc_info.value.details == {"status": "sent"}
        assert _log_count(db_session, document) == before

    def test_summary_counts(self, db_session, tenant_a, admin_a, document):
        edocument_service.submit_edocument(tenant_a.id, document.id, admin_a.id)
        summary = edocument_service.get_summary(tenant_a.id)
        assert summary["total"] == 1
        assert summary["by_type"]["e_fatura"] == 1
        assert summary["by_status"]["pending"] == 1
        assert db_session.query(EDocument).count() == 1
