# Overview: Pytest coverage for expenses and their account postings.

"""
Expense Tests

An expense paid from an account leaves a gider movement on it; editing the
amount or deleting the expense posts the difference back, so the account
balance always matches the expenses it paid.
"""

import pytest

from retailbooks.models import AccountMovement, Expense
from retailbooks.services import account_service, expense_service
from retailbooks.validation import ConflictError, NotFoundError, ValidationError

from conftest import add_bank_account, auth_headers, cash_account, make_user


@pytest.fixture
def funded_kasa(tenant_a, admin_a):
    kasa = cash_account(tenant_a)
    account_service.post_manual_movement(tenant_a.id, kasa.id, {"movement_type": "gelir", "amount_cents": 50000})
    return kasa


def _expense(tenant, user, amount, **extra):
    payload = {"category": "kira", "amount_cents": amount, "expense_date": "2026-10-01"}
    payload.update(extra)
    return expense_service.create_expense(tenant.id, payload, user_id=user.id)


class TestCreateExpense:

    def test_unpaid_expense_touches_no_account(self, db_session, tenant_a, admin_a):
        expense = _expense(tenant_a, admin_a, 15000, description="Ekim kirasi")

        assert expense.account_id is None
        assert expense.expense_date.isoformat() == "2026-10-01"
        assert expense.is_recurring is False
        assert db_session.query(AccountMovement).count() == 0

    def test_paid_expense_books_gider(self, db_session, tenant_a, admin_a, funded_kasa):
        expense = _expense(tenant_a, admin_a, 20000, account_id=funded_kasa.id)

        assert funded_kasa.current_balance_cents == 30000
        gider = db_session.query(AccountMovement).filter_by(reference_type="expense").one()
        assert gider.movement_type == "gider"
        assert gider.reference_id == expense.id
        assert gider.balance_after_cents == 30000

    def test_cannot_overdraw_account(self, db_session, tenant_a, admin_a):
        kasa = cash_account(tenant_a)
        with pytest.raises(ConflictError):
            _expense(tenant_a, admin_a, 100, account_id=kasa.id)
        assert db_session.query(Expense).count() == 0
        assert kasa.current_balance_cents == 0

    def test_foreign_account_not_found(self, db_session, tenant_a, tenant_b, admin_a):
        foreign = add_bank_account(tenant_b, opening=100000)
        with pytest.raises(NotFoundError):
            _expense(tenant_a, admin_a, 100, account_id=foreign.id)
        assert db_session.query(Expense).count() == 0

    @pytest.mark.parametrize("extra", [
        {"category": "eglence"},
        {"amount_cents": 0},
        {"expense_date": "01.10.2026"},
        {"is_recurring": True},
        {"is_recurring": True, "recurrence_period": "haftalik"},
    ])
    def test_invalid_input(self, db_session, tenant_a, admin_a, extra):
        with pytest.raises(ValidationError):
            _expense(tenant_a, admin_a, 1000, **extra)

    def test_recurring_expense(self, db_session, tenant_a, admin_a):
        expense = _expense(tenant_a, admin_a, 5000, category="fatura", is_recurring=True, recurrence_period="aylik")
        assert expense.recurrence_period == "aylik"

    def test_period_dropped_when_not_recurring(self, db_session, tenant_a, admin_a):
        expense = _expense(tenant_a, admin_a, 5000, recurrence_period="yillik")
        assert expense.recurrence_period is None


class TestChangeExpense:

    def test_raising_amount_posts_difference(self, db_session, tenant_a, admin_a, funded_kasa):
        expense = _expense(tenant_a, admin_a, 20000, account_id=funded_kasa.id)
        expense_service.update_expense(tenant_a.id, expense.id, {"amount_cents": 26000}, user_id=admin_a.id)

        assert expense.amount_cents == 26000
        assert funded_kasa.current_balance_cents == 24000

    def test_lowering_amount_gives_money_back(self, db_session, tenant_a, admin_a, funded_kasa):
        expense = _expense(tenant_a, admin_a, 20000, account_id=funded_kasa.id)
        expense_service.update_expense(tenant_a.id, expense.id, {"amount_cents": 5000}, user_id=admin_a.id)

        assert funded_kasa.current_balance_cents == 45000
        back = db_session.query(AccountMovement).filter_by(movement_type="gelir", reference_type="expense").one()
        assert back.amount_cents == 15000

    def test_account_is_fixed(self, db_session, tenant_a, admin_a, funded_kasa):
        expense = _expense(tenant_a, admin_a, 20000, account_id=funded_kasa.id)
        bank = add_bank_account(tenant_a)
        with pytest.raises(ValidationError):
            expense_service.update_expense(tenant_a.id, expense.id, {"account_id": bank.id})

    def test_description_only_edit_posts_nothing(self, db_session, tenant_a, admin_a, funded_kasa):
        expense = _expense(tenant_a, admin_a, 20000, account_id=funded_kasa.id)
        expense_service.update_expense(tenant_a.id, expense.id, {
            "description": "Depo kirasi",
            "account_id": funded_kasa.id,
        })
        assert expense.description == "Depo kirasi"
        assert db_session.query(AccountMovement).filter_by(reference_type="expense").count() == 1

    def test_delete_returns_the_money(self, db_session, tenant_a, admin_a, funded_kasa):
        expense = _expense(tenant_a, admin_a, 20000, account_id=funded_kasa.id)
        expense_service.delete_expense(tenant_a.id, expense.id, user_id=admin_a.id)

        assert db_session.query(Expense).count() == 0
        assert funded_kasa.current_balance_cents == 50000
        assert db_session.query(AccountMovement).filter_by(reference_type="expense_delete").count() == 1

    def test_foreign_expense_not_found(self, db_session, tenant_a, tenant_b, admin_a, admin_b):
        expense = _expense(tenant_a, admin_a, 1000)
        with pytest.raises(NotFoundError):
            expense_service.delete_expense(tenant_b.id, expense.id, user_id=admin_b.id)
        assert db_session.query(Expense).count() == 1


class TestExpenseRoutes:

    def test_summary_by_category(self, client, db_session, tenant_a, admin_a, admin_headers):
        _expense(tenant_a, admin_a, 15000)
        _expense(tenant_a, admin_a, 4000, category="fatura")
        _expense(tenant_a, admin_a, 3000, category="fatura")
        _expense(tenant_a, admin_a, 9000, category="vergi", expense_date="2026-09-15")

        resp = client.get("/api/expenses/summary?start=2026-10-01&end=2026-10-31", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["data"] == [
            {"category": "kira", "total_cents": 15000, "count": 1},
            {"category": "fatura", "total_cents": 7000, "count": 2},
        ]
        assert resp.json["meta"]["total_cents"] == 22000

    def test_create_and_filter(self, client, admin_headers):
        resp = client.post("/api/expenses", json={
            "category": "maas",
            "amount_cents": 30000,
            "expense_date": "2026-10-05",
        }, headers=admin_headers)
        assert resp.status_code == 201
        assert resp.json["data"]["category"] == "maas"
        assert resp.json["data"]["expense_date"] == "2026-10-05"

        resp = client.get("/api/expenses?category=maas", headers=admin_headers)
        assert resp.json["meta"]["total"] == 1
        assert client.get("/api/expenses?category=kira", headers=admin_headers).json["meta"]["total"] == 0

    def test_user_role_has_no_expenses(self, client, tenant_a):
        headers = auth_headers(make_user(tenant_a, "user"))
        resp = client.get("/api/expenses", headers=headers)
        assert resp.status_code == 403
        assert resp.json["errors"]["required_permission"] == "expenses.view"
