# Overview: Pytest coverage for sale-linked and standalone returns.

"""
Returns Tests

A linked return may never take back more than was sold minus what earlier
returns already took back. Returned goods go back into stock and the
customer, when known, is credited.
"""

import pytest

from retailbooks.models import AccountMovement, CustomerTransaction, Return, StockMovement
from retailbooks.services.return_service import create_return
from retailbooks.services.sales_service import cancel_sale, create_sale, returnable_items
from retailbooks.validation import ConflictError, ValidationError

from conftest import cash_account


@pytest.fixture
def sale(tenant_a, admin_a, product_a, customer_a):
    return create_sale(tenant_a.id, admin_a.id, {
        "payment_method": "veresiye",
        "customer_id": customer_a.id,
        "items": [{"product_id": product_a.id, "quantity": 2}],
    })


def _return(tenant, user, sale, quantity):
    return create_return(tenant.id, user.id, {
        "sale_id": sale.id,
        "reason": "damaged",
        "items": [{"sale_item_id": sale.items[0].id, "quantity": quantity}],
    })


class TestLinkedReturns:

    def test_return_restocks_and_credits(self, db_session, tenant_a, admin_a, product_a, customer_a, sale):
        ret = _return(tenant_a, admin_a, sale, 1)

        assert ret.return_number.startswith("RET")
        assert ret.subtotal_cents == 10000
        assert ret.vat_total_cents == 2000
        assert ret.grand_total_cents == 12000
        assert product_a.stock_quantity == 9
        # -24000 debt, 12000 credited back
        assert customer_a.balance_cents == -12000

        movement = db_session.query(StockMovement).filter_by(reference_type="return", reference_id=ret.id).one()
        assert movement.movement_type == "return"
        assert movement.quantity == 1

        credit = db_session.query(CustomerTransaction).filter_by(reference_type="return").one()
        assert credit.transaction_type == "alacak"

    def test_cumulative_cap(self, db_session, tenant_a, admin_a, product_a, sale):
        _return(tenant_a, admin_a, sale, 1)
        _return(tenant_a, admin_a, sale, 1)

        with pytest.raises(ConflictError) as exc_info:
            _return(tenant_a, admin_a, sale, 1)

        assert exc_info.value.details["items"][0]["returnable_quantity"] == 0
        assert db_session.query(Return).count() == 2
        assert product_a.stock_quantity == 10

    def test_single_return_above_sold_refused(self, db_session, tenant_a, admin_a, sale):
        with pytest.raises(ConflictError):
            _return(tenant_a, admin_a, sale, 3)
        assert db_session.query(Return).count() == 0

    def test_returnable_items_reflect_history(self, db_session, tenant_a, admin_a, sale):
        _return(tenant_a, admin_a, sale, 1)
        [row] = returnable_items(tenant_a.id, sale.id)
        assert row["sold_quantity"] == 2
        assert row["returned_quantity"] == 1
        assert row["returnable_quantity"] == 1

    def test_item_from_another_sale_refused(self, db_session, tenant_a, admin_a, product_a, sale):
        other = create_sale(tenant_a.id, admin_a.id, {
            "payment_method": "nakit",
            "items": [{"product_id": product_a.id, "quantity": 1}],
        })
        with pytest.raises(ValidationError):
            create_return(tenant_a.id, admin_a.id, {
                "sale_id": sale.id,
                "items": [{"sale_item_id": other.items[0].id, "quantity": 1}],
            })

    def test_cancelled_sale_cannot_be_returned(self, db_session, tenant_a, admin_a, sale):
        cancel_sale(tenant_a.id, sale.id, admin_a.id)
        with pytest.raises(ConflictError):
            _return(tenant_a, admin_a, sale, 1)

    def test_cancel_after_partial_return_restocks_remainder(self, db_session, tenant_a, admin_a, product_a, customer_a, sale):
        _return(tenant_a, admin_a, sale, 1)
        cancel_sale(tenant_a.id, sale.id, admin_a.id)

        assert product_a.stock_quantity == 10
        restock = db_session.query(StockMovement).filter_by(movement_type="sale_cancel").one()
        assert restock.quantity == 1
        assert customer_a.balance_cents == 0

    def test_cancel_cash_sale_after_credited_return(self, db_session, tenant_a, admin_a, product_a, customer_a):
        cash_sale = create_sale(tenant_a.id, admin_a.id, {
            "payment_method": "nakit",
            "customer_id": customer_a.id,
            "items": [{"product_id": product_a.id, "quantity": 2}],
        })
        kasa = cash_account(tenant_a)
        assert kasa.current_balance_cents == 24000

        _return(tenant_a, admin_a, cash_sale, 1)
        assert customer_a.balance_cents == 12000

        cancel_sale(tenant_a.id, cash_sale.id, admin_a.id)

        # returned half stays credited to the customer, the rest leaves the till
        assert customer_a.balance_cents == 12000
        assert kasa.current_balance_cents == 12000
        reversal = db_session.query(AccountMovement).filter_by(reference_type="sale_cancel").one()
        assert reversal.amount_cents == 12000
        assert product_a.stock_quantity == 10


class TestStandaloneReturns:

    def test_unlinked_return_uses_product_price(self, db_session, tenant_a, admin_a, product_a):
        ret = create_return(tenant_a.id, admin_a.id, {
            "items": [{"product_id": product_a.id, "quantity": 4}],
        })
        assert ret.sale_id is None
        assert ret.customer_id is None
        assert ret.grand_total_cents == 48000
        assert product_a.stock_quantity == 14

    def test_unlinked_return_without_vat(self, db_session, tenant_a, admin_a, product_a, customer_a):
        ret = create_return(tenant_a.id, admin_a.id, {
            "customer_id": customer_a.id,
            "include_vat": False,
            "items": [{"product_id": product_a.id, "quantity": 1, "unit_price_cents": 8000}],
        })
        assert ret.grand_total_cents == 8000
        assert customer_a.balance_cents == 8000
