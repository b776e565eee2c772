# Overview: Flask API routes for warehouses, stock transfers and the stock movement ledger.

from flask import Blueprint, request, g

from ..services import inventory_service
from ..services.tenant_service import get_owned_or_404
from ..models import Warehouse
from ..validation import DomainError
from ..decorators import require_auth, require_permission
from ..responses import ok, error_response
from .common import list_params, bool_arg

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api")


@inventory_bp.get("/stock-movements")
@require_auth
@require_permission("products.view")
def list_stock_movements_route():
    """Filters: product_id, warehouse_id, movement_type, reference_type, reference_id."""
    try:
        rows, meta = inventory_service.list_stock_movements(g.tenant_id, list_params(), {
            "product_id": request.args.get("product_id", type=int),
            "warehouse_id": request.args.get("warehouse_id", type=int),
            "movement_type": request.args.get("movement_type"),
            "reference_type": request.args.get("reference_type"),
            "reference_id": request.args.get("reference_id", type=int),
        })
        return ok([m.to_dict() for m in rows], meta=meta)
    except DomainError as e:
        return error_response(e)


@inventory_bp.get("/warehouses")
@require_auth
@require_permission("warehouses.view")
def list_warehouses_route():
    warehouses = inventory_service.list_warehouses(g.tenant_id, include_inactive=bool(bool_arg("include_inactive")))
    return ok([w.to_dict() for w in warehouses])


@inventory_bp.post("/warehouses")
@require_auth
@require_permission("warehouses.manage")
def create_warehouse_route():
    payload = request.get_json(silent=True) or {}
    try:
        warehouse = inventory_service.create_warehouse(g.context.tenant, payload)
        return ok(warehouse.to_dict(), 201)
    except DomainError as e:
        return error_response(e)


@inventory_bp.get("/warehouses/<int:warehouse_id>")
@require_auth
@require_permission("warehouses.view")
def get_warehouse_route(warehouse_id: int):
    try:
        warehouse = get_owned_or_404(Warehouse, warehouse_id, g.tenant_id, label="Warehouse")
        return ok(warehouse.to_dict())
    except DomainError as e:
        return error_response(e)


@inventory_bp.patch("/warehouses/<int:warehouse_id>")
@require_auth
@require_permission("warehouses.manage")
def update_warehouse_route(warehouse_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        warehouse = inventory_service.update_warehouse(g.tenant_id, warehouse_id, payload)
        return ok(warehouse.to_dict())
    except DomainError as e:
        return error_response(e)


@inventory_bp.get("/warehouses/<int:warehouse_id>/stock")
@require_auth
@require_permission("warehouses.view")
def warehouse_stock_route(warehouse_id: int):
    try:
        rows = inventory_service.get_warehouse_stock(g.tenant_id, warehouse_id)
        return ok([r.to_dict() for r in rows])
    except DomainError as e:
        return error_response(e)


@inventory_bp.get("/stock-transfers")
@require_auth
@require_permission("warehouses.view")
def list_stock_transfers_route():
    """Filters: status, warehouse_id (source or destination)."""
    try:
        rows, meta = inventory_service.list_stock_transfers(g.tenant_id, list_params(), {
            "status": request.args.get("status"),
            "warehouse_id": request.args.get("warehouse_id", type=int),
        })
        return ok([t.to_dict() for t in rows], meta=meta)
    except DomainError as e:
        return error_response(e)


@inventory_bp.post("/stock-transfers")
@require_auth
@require_permission("stock.transfer")
def create_stock_transfer_route():
    """Body: {"from_warehouse_id", "to_warehouse_id", "items": [{"product_id", "quantity"}], "notes"?}"""
    payload = request.get_json(silent=True) or {}
    try:
        record = inventory_service.create_stock_transfer(g.tenant_id, payload, user_id=g.current_user.id)
        return ok(record.to_dict(include_items=True), 201)
    except DomainError as e:
        return error_response(e)


@inventory_bp.get("/stock-transfers/<int:transfer_id>")
@require_auth
@require_permission("warehouses.view")
def get_stock_transfer_route(transfer_id: int):
    try:
        return ok(inventory_service.get_stock_transfer(g.tenant_id, transfer_id).to_dict(include_items=True))
    except DomainError as e:
        return error_response(e)


@inventory_bp.post("/stock-transfers/<int:transfer_id>/<any(complete, cancel):action>")
@require_auth
@require_permission("stock.transfer")
def close_stock_transfer_route(transfer_id: int, action: str):
    try:
        if action == "complete":
            record = inventory_service.complete_stock_transfer(g.tenant_id, transfer_id, user_id=g.current_user.id)
        else:
            record = inventory_service.cancel_stock_transfer(g.tenant_id, transfer_id, user_id=g.current_user.id)
        return ok(record.to_dict(include_items=True))
    except DomainError as e:
        return error_response(e)
