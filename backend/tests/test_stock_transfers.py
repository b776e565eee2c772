# Overview: Pytest coverage for stock transfers between warehouses.

"""
Stock Transfer Tests

LIFECYCLE:
    pending -> completed   (goods booked into the destination)
    pending -> cancelled   (goods booked back into the source)

Creating a transfer takes the goods out of the source warehouse right away,
so the source can never ship stock it does not hold.
"""

import pytest

from retailbooks.extensions import db
from retailbooks.models import StockMovement, StockTransfer, Warehouse, WarehouseStock
from retailbooks.services import inventory_service
from retailbooks.validation import ConflictError, NotFoundError, ValidationError

from conftest import auth_headers, make_user


@pytest.fixture
def warehouses(tenant_a):
    main = db.session.query(Warehouse).filter_by(tenant_id=tenant_a.id, is_default=True).one()
    branch = inventory_service.create_warehouse(tenant_a, {"name": "Sube Depo", "code": "SUBE"})
    return main, branch


@pytest.fixture
def stocked(tenant_a, admin_a, product_a, warehouses):
    """product_a with 6 units received into the main warehouse (16 in total)."""
    main, _branch = warehouses
    inventory_service.adjust_stock(tenant_a.id, product_a.id, {
        "movement_type": "purchase",
        "quantity": 6,
        "warehouse_id": main.id,
    }, admin_a.id)
    return product_a


def _held(warehouse, product) -> int:
    row = db.session.query(WarehouseStock).filter_by(warehouse_id=warehouse.id, product_id=product.id).first()
    return row.quantity if row else 0


def _transfer(tenant, user, source, target, product, quantity, **extra):
    payload = {
        "from_warehouse_id": source.id,
        "to_warehouse_id": target.id,
        "items": [{"product_id": product.id, "quantity": quantity}],
    }
    payload.update(extra)
    return inventory_service.create_stock_transfer(tenant.id, payload, user_id=user.id)


class TestCreateTransfer:

    def test_goods_leave_the_source(self, db_session, tenant_a, admin_a, warehouses, stocked):
        main, branch = warehouses
        record = _transfer(tenant_a, admin_a, main, branch, stocked, 4, notes="weekly refill")

        assert record.status == "pending"
        assert record.transfer_number.startswith("TRN")
        assert record.notes == "weekly refill"
        assert [(i.product_id, i.quantity) for i in record.items] == [(stocked.id, 4)]
        assert _held(main, stocked) == 2
        assert _held(branch, stocked) == 0
        assert stocked.stock_quantity == 12

        out = db_session.query(StockMovement).filter_by(movement_type="transfer_out").one()
        assert out.quantity == -4
        assert out.warehouse_id == main.id
        assert out.reference_type == "stock_transfer"
        assert out.reference_id == record.id
        assert out.stock_after == 12

    def test_more_than_source_holds_refused(self, db_session, tenant_a, admin_a, warehouses, stocked):
        main, branch = warehouses
        with pytest.raises(ConflictError) as exc_info:
            _transfer(tenant_a, admin_a, main, branch, stocked, 7)

        shortage = exc_info.value.details["items"][0]
        assert shortage["warehouse_quantity"] == 6
        assert shortage["requested_quantity"] == 7
        assert db_session.query(StockTransfer).count() == 0
        assert _held(main, stocked) == 6

    def test_repeated_lines_are_summed(self, db_session, tenant_a, admin_a, warehouses, stocked):
        main, branch = warehouses
        with pytest.raises(ConflictError):
            inventory_service.create_stock_transfer(tenant_a.id, {
                "from_warehouse_id": main.id,
                "to_warehouse_id": branch.id,
                "items": [
                    {"product_id": stocked.id, "quantity": 4},
                    {"product_id": stocked.id, "quantity": 3},
                ],
            }, user_id=admin_a.id)

    def test_same_warehouse_refused(self, db_session, tenant_a, admin_a, warehouses, stocked):
        main, _branch = warehouses
        with pytest.raises(ValidationError):
            _transfer(tenant_a, admin_a, main, main, stocked, 1)

    def test_inactive_destination_refused(self, db_session, tenant_a, admin_a, warehouses, stocked):
        main, branch = warehouses
        inventory_service.update_warehouse(tenant_a.id, branch.id, {"is_active": False})
        with pytest.raises(ConflictError):
            _transfer(tenant_a, admin_a, main, branch, stocked, 1)
        assert _held(main, stocked) == 6

    def test_foreign_warehouse_not_found(self, db_session, tenant_a, tenant_b, admin_a, warehouses, stocked):
        main, _branch = warehouses
        foreign = db_session.query(Warehouse).filter_by(tenant_id=tenant_b.id).first()
        with pytest.raises(NotFoundError):
            _transfer(tenant_a, admin_a, main, foreign, stocked, 1)


class TestCloseTransfer:

    def test_complete_books_into_destination(self, db_session, tenant_a, admin_a, warehouses, stocked):
        main, branch = warehouses
        record = _transfer(tenant_a, admin_a, main, branch, stocked, 4)
        inventory_service.complete_stock_transfer(tenant_a.id, record.id, admin_a.id)

        assert record.status == "completed"
        assert record.completed_at is not None
        assert _held(main, stocked) == 2
        assert _held(branch, stocked) == 4
        assert stocked.stock_quantity == 16

        received = db_session.query(StockMovement).filter_by(movement_type="transfer_in").one()
        assert received.warehouse_id == branch.id
        assert received.quantity == 4

    def test_cancel_books_back_into_source(self, db_session, tenant_a, admin_a, warehouses, stocked):
        main, branch = warehouses
        record = _transfer(tenant_a, admin_a, main, branch, stocked, 4)
        inventory_service.cancel_stock_transfer(tenant_a.id, record.id, admin_a.id)

        assert record.status == "cancelled"
        assert _held(main, stocked) == 6
        assert _held(branch, stocked) == 0
        assert stocked.stock_quantity == 16
        back = db_session.query(StockMovement).filter_by(movement_type="transfer_in").one()
        assert back.warehouse_id == main.id

    def test_closed_transfer_cannot_close_again(self, db_session, tenant_a, admin_a, warehouses, stocked):
        main, branch = warehouses
        record = _transfer(tenant_a, admin_a, main, branch, stocked, 4)
        inventory_service.complete_stock_transfer(tenant_a.id, record.id, admin_a.id)

        with pytest.raises(ConflictError) as exc_info:
            inventory_service.cancel_stock_transfer(tenant_a.id, record.id, admin_a.id)
        assert exc_info.value.details == {"status": "completed"}
        with pytest.raises(ConflictError):
            inventory_service.complete_stock_transfer(tenant_a.id, record.id, admin_a.id)

        assert _held(branch, stocked) == 4
        assert db_session.query(StockMovement).filter_by(movement_type="transfer_in").count() == 1

    def test_foreign_transfer_not_found(self, db_session, tenant_a, tenant_b, admin_a, admin_b, warehouses, stocked):
        main, branch = warehouses
        record = _transfer(tenant_a, admin_a, main, branch, stocked, 1)
        with pytest.raises(NotFoundError):
            inventory_service.complete_stock_transfer(tenant_b.id, record.id, admin_b.id)
        assert record.status == "pending"


class TestTransferRoutes:

    def test_create_and_complete(self, client, admin_headers, warehouses, stocked):
        main, branch = warehouses
        resp = client.post("/api/stock-transfers", json={
            "from_warehouse_id": main.id,
            "to_warehouse_id": branch.id,
            "items": [{"product_id": stocked.id, "quantity": 2}],
        }, headers=admin_headers)
        assert resp.status_code == 201
        transfer_id = resp.json["data"]["id"]
        assert resp.json["data"]["items"][0]["quantity"] == 2
        assert resp.json["data"]["from_warehouse_name"] == main.name

        resp = client.post(f"/api/stock-transfers/{transfer_id}/complete", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["data"]["status"] == "completed"

        resp = client.get(f"/api/stock-transfers?status=completed&warehouse_id={branch.id}", headers=admin_headers)
        assert [t["id"] for t in resp.json["data"]] == [transfer_id]
        assert resp.json["meta"]["total"] == 1

    def test_user_role_can_view_but_not_transfer(self, client, tenant_a, warehouses, stocked):
        main, branch = warehouses
        headers = auth_headers(make_user(tenant_a, "user"))
        assert client.get("/api/stock-transfers", headers=headers).status_code == 200

        resp = client.post("/api/stock-transfers", json={
            "from_warehouse_id": main.id,
            "to_warehouse_id": branch.id,
            "items": [{"product_id": stocked.id, "quantity": 1}],
        }, headers=headers)
        assert resp.status_code == 403
        assert resp.json["errors"]["required_permission"] == "stock.transfer"

    def test_basic_plan_has_no_transfers(self, client, basic_headers):
        resp = client.get("/api/stock-transfers", headers=basic_headers)
        assert resp.status_code == 403
        assert resp.json["code"] == "FEATURE_NOT_AVAILABLE"
