# Overview: Pytest coverage for quote lifecycle and conversion to sales.

"""
Quote Tests

Lifecycle: draft -> sent -> accepted/rejected, expiry, and conversion of a
sent or accepted quote into a sale exactly once.
"""

from datetime import timedelta

import pytest

from retailbooks.models import Quote, Sale, StockMovement
from retailbooks.services import quote_service
from retailbooks.time_utils import utcnow
from retailbooks.validation import ConflictError, ValidationError


def _valid_until(days=7) -> str:
    return (utcnow().date() + timedelta(days=days)).isoformat()


@pytest.fixture
def quote(tenant_a, admin_a, product_a, customer_a):
    return quote_service.create_quote(tenant_a.id, admin_a.id, {
        "customer_id": customer_a.id,
        "valid_until": _valid_until(),
        "discount_cents": 1000,
        "items": [{"product_id": product_a.id, "quantity": 2, "discount_rate_bps": 500}],
    })


class TestQuoteLifecycle:

    def test_create_computes_totals(self, db_session, quote):
        assert quote.status == "draft"
        assert quote.quote_number.startswith("TKL")
        # 2 x 10000 - 5% = 19000 net, 3800 VAT, 1000 global discount
        assert quote.subtotal_cents == 19000
        assert quote.vat_total_cents == 3800
        assert quote.grand_total_cents == 21800

    def test_valid_until_required(self, db_session, tenant_a, admin_a, product_a):
        with pytest.raises(ValidationError):
            quote_service.create_quote(tenant_a.id, admin_a.id, {
                "items": [{"product_id": product_a.id, "quantity": 1}],
            })

    def test_quote_does_not_touch_stock(self, db_session, quote, product_a):
        assert product_a.stock_quantity == 10
        assert db_session.query(StockMovement).count() == 0

    def test_send_accept(self, db_session, tenant_a, quote):
        quote_service.send_quote(tenant_a.id, quote.id)
        assert quote.status == "sent"
        quote_service.accept_quote(tenant_a.id, quote.id)
        assert quote.status == "accepted"

    def test_send_twice_refused(self, db_session, tenant_a, quote):
        quote_service.send_quote(tenant_a.id, quote.id)
        with pytest.raises(ConflictError):
            quote_service.send_quote(tenant_a.id, quote.id)

    def test_rejected_quote_is_final(self, db_session, tenant_a, quote):
        quote_service.reject_quote(tenant_a.id, quote.id)
        with pytest.raises(ConflictError):
            quote_service.accept_quote(tenant_a.id, quote.id)

    def test_update_replaces_items(self, db_session, tenant_a, quote, product_a):
        quote_service.update_quote(tenant_a.id, quote.id, {
            "items": [{"product_id": product_a.id, "quantity": 1}],
            "discount_cents": 0,
        })
        assert len(quote.items) == 1
        assert quote.grand_total_cents == 12000

    def test_expire_overdue(self, db_session, tenant_a, quote):
        expired = quote_service.expire_overdue_quotes(
            tenant_id=tenant_a.id,
            today=utcnow().date() + timedelta(days=30),
        )
        assert expired == 1
        assert quote.status == "expired"

    def test_delete_draft(self, db_session, tenant_a, quote):
        quote_service.delete_quote(tenant_a.id, quote.id)
        assert db_session.query(Quote).count() == 0


class TestQuoteConversion:

    def test_draft_cannot_be_converted(self, db_session, tenant_a, admin_a, quote):
        with pytest.raises(ConflictError):
            quote_service.convert_quote(tenant_a.id, quote.id, admin_a.id, {"payment_method": "nakit"})

    def test_convert_sent_quote(self, db_session, tenant_a, admin_a, quote, product_a):
        quote_service.send_quote(tenant_a.id, quote.id)
        sale = quote_service.convert_quote(tenant_a.id, quote.id, admin_a.id, {"payment_method": "veresiye"})

        assert sale.grand_total_cents == quote.grand_total_cents
        assert sale.discount_cents == 1000
        assert sale.quote_id == quote.id
        assert quote.status == "converted"
        assert quote.converted_sale_id == sale.id
        assert product_a.stock_quantity == 8
        assert quote.customer.balance_cents == -quote.grand_total_cents

    def test_convert_twice_refused(self, db_session, tenant_a, admin_a, quote, product_a):
        quote_service.accept_quote(tenant_a.id, quote.id)
        quote_service.convert_quote(tenant_a.id, quote.id, admin_a.id, {"payment_method": "nakit"})

        with pytest.raises(ConflictError):
            quote_service.convert_quote(tenant_a.id, quote.id, admin_a.id, {"payment_method": "nakit"})

        assert db_session.query(Sale).count() == 1
        assert product_a.stock_quantity == 8

    def test_stock_rechecked_at_conversion(self, db_session, tenant_a, admin_a, quote, product_a):
        quote_service.send_quote(tenant_a.id, quote.id)
        product_a.stock_quantity = 1
        db_session.commit()

        with pytest.raises(ConflictError):
            quote_service.convert_quote(tenant_a.id, quote.id, admin_a.id, {"payment_method": "nakit"})

        assert quote.status == "sent"
        assert db_session.query(Sale).count() == 0

    def test_past_validity_refused(self, db_session, tenant_a, admin_a, product_a):
        stale = quote_service.create_quote(tenant_a.id, admin_a.id, {
            "valid_until": _valid_until(days=-1),
            "items": [{"product_id": product_a.id, "quantity": 1}],
        })
        quote_service.send_quote(tenant_a.id, stale.id)
        with pytest.raises(ConflictError):
            quote_service.convert_quote(tenant_a.id, stale.id, admin_a.id, {"payment_method": "nakit"})

    def test_converted_quote_cannot_be_deleted(self, db_session, tenant_a, admin_a, quote):
        quote_service.send_quote(tenant_a.id, quote.id)
        quote_service.convert_quote(tenant_a.id, quote.id, admin_a.id, {"payment_method": "nakit"})
        with pytest.raises(ConflictError):
            quote_service.delete_quote(tenant_a.id, quote.id)
