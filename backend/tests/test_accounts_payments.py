# Overview: Pytest coverage for cash/bank accounts, transfers and collections.

"""
Accounts and Payments Tests

INVARIANT: current_balance_cents = opening balance + signed movements, and
each movement records the running balance after it.
"""

import pytest

from retailbooks.models import AccountMovement, AccountTransfer, CustomerTransaction, Payment
from retailbooks.services import account_service, payment_service
from retailbooks.services.sales_service import create_sale
from retailbooks.validation import ConflictError, NotFoundError, ValidationError

from conftest import add_bank_account, cash_account


class TestAccounts:

    def test_create_with_opening_balance(self, db_session, tenant_a):
        account = account_service.create_account(tenant_a.id, {
            "name": "Is Bankasi",
            "account_type": "banka",
            "iban": "TR000000000000000000000000",
            "opening_balance_cents": 50000,
        })
        assert account.current_balance_cents == 50000
        assert account.currency == "TRY"

    def test_unknown_type_rejected(self, db_session, tenant_a):
        with pytest.raises(ValidationError):
            account_service.create_account(tenant_a.id, {"name": "Kumbara", "account_type": "piggy"})

    def test_duplicate_name_conflicts(self, db_session, tenant_a):
        with pytest.raises(ConflictError):
            account_service.create_account(tenant_a.id, {"name": "Ana Kasa", "account_type": "kasa"})

    def test_running_balances(self, db_session, tenant_a, admin_a):
        kasa = cash_account(tenant_a)
        for movement_type, amount in (("gelir", 10000), ("gelir", 2500), ("gider", 4000)):
            account_service.post_manual_movement(tenant_a.id, kasa.id, {
                "movement_type": movement_type,
                "amount_cents": amount,
            }, user_id=admin_a.id)

        movements = db_session.query(AccountMovement).filter_by(account_id=kasa.id).order_by(AccountMovement.id).all()
        assert [m.balance_after_cents for m in movements] == [10000, 12500, 8500]
        assert kasa.current_balance_cents == 8500

    def test_overdraw_refused(self, db_session, tenant_a):
        kasa = cash_account(tenant_a)
        with pytest.raises(ConflictError):
            account_service.post_manual_movement(tenant_a.id, kasa.id, {"movement_type": "gider", "amount_cents": 1})
        assert db_session.query(AccountMovement).count() == 0

    def test_manual_transfer_type_refused(self, db_session, tenant_a):
        kasa = cash_account(tenant_a)
        with pytest.raises(ValidationError):
            account_service.post_manual_movement(tenant_a.id, kasa.id, {"movement_type": "transfer_in", "amount_cents": 100})

    def test_summary(self, db_session, tenant_a):
        add_bank_account(tenant_a, opening=30000)
        kasa = cash_account(tenant_a)
        account_service.post_manual_movement(tenant_a.id, kasa.id, {"movement_type": "gelir", "amount_cents": 7000})

        summary = account_service.get_summary(tenant_a.id)
        assert summary == {"total_kasa": 7000, "total_banka": 30000, "total_balance": 37000, "account_count": 2}


class TestTransfers:

    def test_transfer_moves_money(self, db_session, tenant_a, admin_a):
        bank = add_bank_account(tenant_a, opening=20000)
        kasa = cash_account(tenant_a)

        record = account_service.transfer(tenant_a.id, {
            "from_account_id": bank.id,
            "to_account_id": kasa.id,
            "amount_cents": 15000,
            "description": "Cash withdrawal",
        }, user_id=admin_a.id)

        assert bank.current_balance_cents == 5000
        assert kasa.current_balance_cents == 15000
        movements = db_session.query(AccountMovement).filter_by(reference_type="transfer", reference_id=record.id).all()
        assert sorted(m.movement_type for m in movements) == ["transfer_in", "transfer_out"]

    def test_transfer_to_self_refused(self, db_session, tenant_a):
        kasa = cash_account(tenant_a)
        with pytest.raises(ValidationError):
            account_service.transfer(tenant_a.id, {"from_account_id": kasa.id, "to_account_id": kasa.id, "amount_cents": 1})

    def test_overdrawing_transfer_writes_nothing(self, db_session, tenant_a):
        bank = add_bank_account(tenant_a, opening=1000)
        kasa = cash_account(tenant_a)

        with pytest.raises(ConflictError):
            account_service.transfer(tenant_a.id, {"from_account_id": bank.id, "to_account_id": kasa.id, "amount_cents": 1001})

        assert db_session.query(AccountTransfer).count() == 0
        assert db_session.query(AccountMovement).count() == 0
        assert bank.current_balance_cents == 1000

    def test_foreign_account_not_found(self, db_session, tenant_a, tenant_b):
        foreign = cash_account(tenant_b)
        kasa = cash_account(tenant_a)
        with pytest.raises(NotFoundError):
            account_service.transfer(tenant_a.id, {"from_account_id": kasa.id, "to_account_id": foreign.id, "amount_cents": 1})


class TestPayments:

    @pytest.fixture
    def debt(self, tenant_a, admin_a, product_a, customer_a):
        return create_sale(tenant_a.id, admin_a.id, {
            "payment_method": "veresiye",
            "customer_id": customer_a.id,
            "items": [{"product_id": product_a.id, "quantity": 1}],
        })

    def test_collection_credits_customer_and_account(self, db_session, tenant_a, admin_a, customer_a, debt):
        payment = payment_service.record_payment(tenant_a.id, {
            "customer_id": customer_a.id,
            "amount_cents": 5000,
            "payment_method": "nakit",
        }, user_id=admin_a.id)

        assert customer_a.balance_cents == -7000
        assert cash_account(tenant_a).current_balance_cents == 5000
        assert payment.account_id == cash_account(tenant_a).id
        txn = db_session.query(CustomerTransaction).filter_by(reference_type="payment").one()
        assert txn.balance_after_cents == -7000

    def test_card_payment_goes_to_bank(self, db_session, tenant_a, customer_a, debt):
        bank = add_bank_account(tenant_a)
        payment_service.record_payment(tenant_a.id, {
            "customer_id": customer_a.id,
            "amount_cents": 12000,
            "payment_method": "kredi_karti",
        })
        assert bank.current_balance_cents == 12000
        assert customer_a.balance_cents == 0

    def test_without_matching_account_only_payment_row(self, db_session, tenant_a, customer_a, debt):
        payment = payment_service.record_payment(tenant_a.id, {
            "customer_id": customer_a.id,
            "amount_cents": 1000,
            "payment_method": "havale",
        })
        assert payment.account_id is None
        assert db_session.query(AccountMovement).count() == 0

    def test_veresiye_is_not_a_collection_method(self, db_session, tenant_a, customer_a):
        with pytest.raises(ValidationError):
            payment_service.record_payment(tenant_a.id, {
                "customer_id": customer_a.id,
                "amount_cents": 1000,
                "payment_method": "veresiye",
            })
        assert db_session.query(Payment).count() == 0
