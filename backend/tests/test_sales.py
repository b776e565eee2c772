# Overview: Pytest coverage for sale creation, line math and cancellation.

"""
Sales Tests

Covers:
- Integer-cent line math (line discount, VAT, global discount)
- Sale creation: stock decrement, one movement per item, settlement
- Atomicity: a refused sale leaves no rows behind
- Cancellation: reversals are applied exactly once
"""

import pytest

from retailbooks.extensions import db
from retailbooks.models import AccountMovement, CustomerTransaction, Payment, Sale, SaleItem, StockMovement
from retailbooks.money import percent_of
from retailbooks.services import account_service
from retailbooks.services.sales_service import cancel_sale, compute_line, compute_totals, create_sale
from retailbooks.validation import ConflictError, NotFoundError, ValidationError

from conftest import add_bank_account, add_product, cash_account


def _nakit_sale(tenant, user, *items, **extra):
    payload = {
        "payment_method": "nakit",
        "items": [{"product_id": p.id, "quantity": q} for p, q in items],
    }
    payload.update(extra)
    return create_sale(tenant.id, user.id, payload)


class TestMoneyMath:
    """Half-up rounding on basis-point rates, all in integer cents."""

    def test_percent_of_rounds_half_up(self):
        assert percent_of(10000, 2000) == 2000
        assert percent_of(333, 1800) == 60  # 59.94
        assert percent_of(25, 5000) == 13  # 12.5
        assert percent_of(0, 2000) == 0

    def test_line_discount_then_vat(self):
        line = compute_line(3, 1000, discount_rate_bps=1000, vat_rate_bps=2000)
        assert line.discount_cents == 300
        assert line.net_cents == 2700
        assert line.vat_cents == 540
        assert line.line_total_cents == 3240

    def test_line_without_vat(self):
        line = compute_line(2, 1500, vat_rate_bps=2000, include_vat=False)
        assert line.vat_cents == 0
        assert line.line_total_cents == 3000

    def test_global_discount_rate(self):
        lines = [compute_line(2, 10000, vat_rate_bps=2000)]
        totals = compute_totals(lines, discount_rate_bps=500)
        assert totals["subtotal_cents"] == 20000
        assert totals["discount_cents"] == 1000
        assert totals["grand_total_cents"] == 20000 - 1000 + 4000

    def test_discount_above_subtotal_rejected(self):
        lines = [compute_line(1, 500)]
        with pytest.raises(ValidationError):
            compute_totals(lines, discount_cents=501)


class TestCreateSale:
    """Sale creation against stock, accounts and customers."""

    def test_totals_and_stock(self, db_session, tenant_a, admin_a, product_a):
        sale = _nakit_sale(tenant_a, admin_a, (product_a, 2))

        assert sale.subtotal_cents == 20000
        assert sale.vat_total_cents == 4000
        assert sale.grand_total_cents == 24000
        assert sale.status == "completed"
        assert sale.invoice_number.startswith("INV")
        assert product_a.stock_quantity == 8

    def test_one_movement_per_item(self, db_session, tenant_a, admin_a, product_a):
        other = add_product(tenant_a, name="Seker 1kg", price=4500, vat=100, stock=5)
        sale = _nakit_sale(tenant_a, admin_a, (product_a, 1), (other, 2))

        movements = db_session.query(StockMovement).filter_by(reference_type="sale", reference_id=sale.id).all()
        assert len(movements) == 2
        assert {m.product_id: m.quantity for m in movements} == {product_a.id: -1, other.id: -2}
        assert {m.product_id: m.stock_after for m in movements} == {product_a.id: 9, other.id: 3}

    def test_cash_sale_books_payment_and_gelir(self, db_session, tenant_a, admin_a, product_a):
        sale = _nakit_sale(tenant_a, admin_a, (product_a, 1))
        kasa = cash_account(tenant_a)

        payment = db_session.query(Payment).filter_by(sale_id=sale.id).one()
        assert payment.status == "completed"
        assert payment.amount_cents == 12000
        assert payment.account_id == kasa.id
        assert kasa.current_balance_cents == 12000

        movement = db_session.query(AccountMovement).filter_by(account_id=kasa.id).one()
        assert movement.movement_type == "gelir"
        assert movement.balance_after_cents == 12000

    def test_veresiye_debits_customer(self, db_session, tenant_a, admin_a, product_a, customer_a):
        sale = create_sale(tenant_a.id, admin_a.id, {
            "payment_method": "veresiye",
            "customer_id": customer_a.id,
            "items": [{"product_id": product_a.id, "quantity": 1}],
        })

        assert customer_a.balance_cents == -12000
        txn = db_session.query(CustomerTransaction).filter_by(reference_type="sale", reference_id=sale.id).one()
        assert txn.transaction_type == "borc"
        assert db_session.query(Payment).filter_by(sale_id=sale.id).count() == 0

    def test_veresiye_requires_customer(self, db_session, tenant_a, admin_a, product_a):
        with pytest.raises(ValidationError):
            create_sale(tenant_a.id, admin_a.id, {
                "payment_method": "veresiye",
                "items": [{"product_id": product_a.id, "quantity": 1}],
            })

    def test_wholesale_uses_wholesale_price(self, db_session, tenant_a, admin_a):
        product = add_product(tenant_a, name="Un 25kg", price=50000, vat=100, stock=4, wholesale_price_cents=42000)
        sale = _nakit_sale(tenant_a, admin_a, (product, 1), sale_type="wholesale")
        assert sale.items[0].unit_price_cents == 42000

    def test_insufficient_stock_writes_nothing(self, db_session, tenant_a, admin_a, product_a):
        other = add_product(tenant_a, name="Kahve", price=9000, stock=1)

        with pytest.raises(ConflictError) as exc_info:
            _nakit_sale(tenant_a, admin_a, (product_a, 2), (other, 3))

        shortages = exc_info.value.details["items"]
        assert [s["product_id"] for s in shortages] == [other.id]
        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleItem).count() == 0
        assert db_session.query(StockMovement).count() == 0
        assert product_a.stock_quantity == 10
        assert cash_account(tenant_a).current_balance_cents == 0

    def test_quantity_summed_across_lines(self, db_session, tenant_a, admin_a, product_a):
        with pytest.raises(ConflictError):
            _nakit_sale(tenant_a, admin_a, (product_a, 6), (product_a, 5))
        assert product_a.stock_quantity == 10

    def test_inactive_product_refused(self, db_session, tenant_a, admin_a):
        product = add_product(tenant_a, name="Eski Urun", is_active=False)
        with pytest.raises(ConflictError):
            _nakit_sale(tenant_a, admin_a, (product, 1))

    def test_foreign_product_not_found(self, db_session, tenant_a, admin_a, product_b):
        with pytest.raises(NotFoundError):
            _nakit_sale(tenant_a, admin_a, (product_b, 1))

    def test_empty_items_rejected(self, db_session, tenant_a, admin_a):
        with pytest.raises(ValidationError):
            create_sale(tenant_a.id, admin_a.id, {"payment_method": "nakit", "items": []})

    def test_invoice_numbers_are_sequential(self, db_session, tenant_a, admin_a, product_a):
        first = _nakit_sale(tenant_a, admin_a, (product_a, 1))
        second = _nakit_sale(tenant_a, admin_a, (product_a, 1))
        assert first.invoice_number[:9] == second.invoice_number[:9]
        assert int(second.invoice_number[9:]) == int(first.invoice_number[9:]) + 1

    def test_duplicate_invoice_number_conflicts(self, db_session, tenant_a, admin_a, product_a):
        _nakit_sale(tenant_a, admin_a, (product_a, 1), invoice_number="EXT-1")
        with pytest.raises(ConflictError):
            _nakit_sale(tenant_a, admin_a, (product_a, 1), invoice_number="EXT-1")

    def test_sequence_skips_hand_entered_number(self, db_session, tenant_a, admin_a, product_a):
        first = _nakit_sale(tenant_a, admin_a, (product_a, 1))
        prefix, counter = first.invoice_number[:-4], int(first.invoice_number[-4:])
        taken = f"{prefix}{counter + 1:04d}"
        _nakit_sale(tenant_a, admin_a, (product_a, 1), invoice_number=taken)

        third = _nakit_sale(tenant_a, admin_a, (product_a, 1))
        fourth = _nakit_sale(tenant_a, admin_a, (product_a, 1))

        assert third.invoice_number == f"{prefix}{counter + 2:04d}"
        assert fourth.invoice_number == f"{prefix}{counter + 3:04d}"
        assert product_a.stock_quantity == 6


class TestCancelSale:
    """Cancellation restores stock and money once."""

    def test_cancel_restores_stock_and_cash(self, db_session, tenant_a, admin_a, product_a):
        sale = _nakit_sale(tenant_a, admin_a, (product_a, 3))
        cancel_sale(tenant_a.id, sale.id, admin_a.id, reason="customer changed mind")

        assert sale.status == "cancelled"
        assert sale.cancel_reason == "customer changed mind"
        assert product_a.stock_quantity == 10
        assert cash_account(tenant_a).current_balance_cents == 0
        payment = db_session.query(Payment).filter_by(sale_id=sale.id).one()
        assert payment.status == "cancelled"

    def test_cancel_twice_is_refused(self, db_session, tenant_a, admin_a, product_a):
        sale = _nakit_sale(tenant_a, admin_a, (product_a, 3))
        cancel_sale(tenant_a.id, sale.id, admin_a.id)

        with pytest.raises(ConflictError):
            cancel_sale(tenant_a.id, sale.id, admin_a.id)

        assert product_a.stock_quantity == 10
        restocks = db_session.query(StockMovement).filter_by(movement_type="sale_cancel").count()
        assert restocks == 1

    def test_cancel_veresiye_credits_customer(self, db_session, tenant_a, admin_a, product_a, customer_a):
        sale = create_sale(tenant_a.id, admin_a.id, {
            "payment_method": "veresiye",
            "customer_id": customer_a.id,
            "items": [{"product_id": product_a.id, "quantity": 2}],
        })
        cancel_sale(tenant_a.id, sale.id, admin_a.id)

        assert customer_a.balance_cents == 0
        credit = db_session.query(CustomerTransaction).filter_by(reference_type="sale_cancel").one()
        assert credit.transaction_type == "alacak"
        assert credit.amount_cents == 24000

    def test_cancel_foreign_sale_not_found(self, db_session, tenant_a, tenant_b, admin_a, admin_b, product_b):
        sale = _nakit_sale(tenant_b, admin_b, (product_b, 1))
        with pytest.raises(NotFoundError):
            cancel_sale(tenant_a.id, sale.id, admin_a.id)
        db.session.refresh(sale)
        assert sale.status == "completed"

    def test_cancel_after_cash_moved_to_bank(self, db_session, tenant_a, admin_a, product_a):
        sale = _nakit_sale(tenant_a, admin_a, (product_a, 2))
        kasa = cash_account(tenant_a)
        bank = add_bank_account(tenant_a)
        account_service.transfer(tenant_a.id, {
            "from_account_id": kasa.id,
            "to_account_id": bank.id,
            "amount_cents": 24000,
        }, user_id=admin_a.id)
        assert kasa.current_balance_cents == 0

        cancel_sale(tenant_a.id, sale.id, admin_a.id)

        assert sale.status == "cancelled"
        assert kasa.current_balance_cents == -24000
        reversal = db_session.query(AccountMovement).filter_by(reference_type="sale_cancel").one()
        assert reversal.movement_type == "gider"
        assert reversal.balance_after_cents == -24000

    def test_cancel_after_account_deactivated(self, db_session, tenant_a, admin_a, product_a):
        sale = _nakit_sale(tenant_a, admin_a, (product_a, 1))
        kasa = cash_account(tenant_a)
        account_service.update_account(tenant_a.id, kasa.id, {"is_active": False})

        cancel_sale(tenant_a.id, sale.id, admin_a.id)

        assert sale.status == "cancelled"
        assert kasa.current_balance_cents == 0
        assert product_a.stock_quantity == 10

    def test_manual_gider_still_cannot_overdraw(self, db_session, tenant_a, admin_a):
        kasa = cash_account(tenant_a)
        with pytest.raises(ConflictError):
            account_service.post_manual_movement(tenant_a.id, kasa.id, {"movement_type": "gider", "amount_cents": 1})
        assert kasa.current_balance_cents == 0
