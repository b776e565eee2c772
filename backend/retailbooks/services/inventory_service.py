# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

"""
Inventory Service: products, warehouses and the stock movement ledger.

INVARIANTS:
- apply_stock_movement() is the only code path that changes
  Product.stock_quantity; every change writes exactly one StockMovement
  whose stock_after equals the new quantity.
- Stock never goes negative through application logic.
- Callers lock the product row (lock_product) before applying a movement
  and commit once for the whole unit of work.
- A stock transfer writes one transfer_out per item when created and one
  transfer_in per item when completed (destination) or cancelled (source).
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Product, Warehouse, WarehouseStock, StockMovement, StockTransfer, StockTransferItem, Tenant
from ..models.inventory import MOVEMENT_TYPES, STOCK_TRANSFER_STATUSES
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    ConflictError,
    coerce_int,
    require_choice,
    require_int,
    require_items,
)
from retailbooks.time_utils import utcnow
from .concurrency import atomic, lock_for_update
from .tenant_service import get_owned_or_404, scoped_query
from .pagination import paginate
from .document_service import next_document_number
from . import plan_service

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "barcode", "category", "unit", "description",
        "purchase_price_cents", "sale_price_cents", "wholesale_price_cents",
        "vat_rate_bps", "min_stock_level", "is_active",
    },
    required_on_create={"name", "sale_price_cents"},
    money_fields={"purchase_price_cents", "sale_price_cents", "wholesale_price_cents"},
    rate_fields={"vat_rate_bps"},
)

WAREHOUSE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "code", "address", "is_default", "is_active"},
    required_on_create={"name", "code"},
)

PRODUCT_SORT_FIELDS = {
    "name": Product.name,
    "created_at": Product.created_at,
    "sale_price_cents": Product.sale_price_cents,
    "stock_quantity": Product.stock_quantity,
    "category": Product.category,
}

MOVEMENT_SORT_FIELDS = {
    "movement_date": StockMovement.movement_date,
    "quantity": StockMovement.quantity,
}

TRANSFER_SORT_FIELDS = {
    "transfer_date": StockTransfer.transfer_date,
    "transfer_number": StockTransfer.transfer_number,
}

# Movement types a user may post by hand; the rest come from documents
MANUAL_MOVEMENT_TYPES = ("adjustment", "purchase")


# =============================================================================
# Stock movements
# =============================================================================

def lock_product(tenant_id: int, product_id, *, label: str = "Product") -> Product:
    """Load a tenant's product with a row lock for a stock update."""
    return get_owned_or_404(Product, product_id, tenant_id, label=label, lock=True)


def apply_stock_movement(
    *,
    tenant_id: int,
    product: Product,
    quantity: int,
    movement_type: str,
    warehouse_id: int | None = None,
    reference_type: str | None = None,
    reference_id: int | None = None,
    notes: str | None = None,
    user_id: int | None = None,
) -> StockMovement:
    """
    Change a product's stock by a signed quantity and record the movement.

    Does not commit. Raises ConflictError if the result would be negative.
    """
    if movement_type not in MOVEMENT_TYPES:
        raise ValidationError(f"Unknown movement type: {movement_type}")
    if quantity == 0:
        raise ValidationError("quantity must be non-zero")

    new_stock = product.stock_quantity + quantity
    if new_stock < 0:
        raise ConflictError(
            f"Insufficient stock for {product.name}",
            details={"items": [{
                "product_id": product.id,
                "product_name": product.name,
                "requested_quantity": -quantity,
                "stock_quantity": product.stock_quantity,
            }]},
        )

    product.stock_quantity = new_stock

    if warehouse_id is not None:
        _apply_warehouse_stock(tenant_id, warehouse_id, product.id, quantity)

    movement = StockMovement(
        tenant_id=tenant_id,
        product_id=product.id,
        warehouse_id=warehouse_id,
        movement_type=movement_type,
        quantity=quantity,
        stock_after=new_stock,
        reference_type=reference_type,
        reference_id=reference_id,
        notes=notes,
        created_by_user_id=user_id,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def _apply_warehouse_stock(tenant_id: int, warehouse_id: int, product_id: int, quantity: int) -> None:
    row = lock_for_update(
        db.session.query(WarehouseStock).filter_by(warehouse_id=warehouse_id, product_id=product_id)
    ).first()
    if row is None:
        row = WarehouseStock(tenant_id=tenant_id, warehouse_id=warehouse_id, product_id=product_id, quantity=0)
        db.session.add(row)
    row.quantity = (row.quantity or 0) + quantity


def adjust_stock(tenant_id: int, product_id: int, payload: dict, user_id: int | None = None) -> StockMovement:
    """Manual adjustment/purchase posted by a user."""
    movement_type = payload.get("movement_type") or "adjustment"
    if movement_type not in MANUAL_MOVEMENT_TYPES:
        raise ValidationError(f"movement_type must be one of: {', '.join(MANUAL_MOVEMENT_TYPES)}")
    if payload.get("quantity") in (None, ""):
        raise ValidationError("quantity is required", details={"quantity": "required"})
    quantity = coerce_int("quantity", payload.get("quantity"))
    if quantity == 0:
        raise ValidationError("quantity must be non-zero")
    if movement_type == "purchase" and quantity < 0:
        raise ValidationError("purchase quantity must be positive")

    warehouse_id = payload.get("warehouse_id")

    def _op():
        product = lock_product(tenant_id, product_id)
        wh_id = None
        if warehouse_id is not None:
            wh_id = get_owned_or_404(Warehouse, coerce_int("warehouse_id", warehouse_id), tenant_id, label="Warehouse").id
        return apply_stock_movement(
            tenant_id=tenant_id,
            product=product,
            quantity=quantity,
            movement_type=movement_type,
            warehouse_id=wh_id,
            reference_type="manual",
            notes=payload.get("notes"),
            user_id=user_id,
        )

    movement = atomic(_op)
    current_app.logger.info(
        "Stock %s tenant=%s product=%s qty=%s stock_after=%s",
        movement_type, tenant_id, product_id, quantity, movement.stock_after,
    )
    return movement


def list_stock_movements(tenant_id: int, params, filters: dict) -> tuple[list, dict]:
    query = scoped_query(StockMovement, tenant_id)
    if filters.get("product_id"):
        query = query.filter(StockMovement.product_id == filters["product_id"])
    if filters.get("warehouse_id"):
        query = query.filter(StockMovement.warehouse_id == filters["warehouse_id"])
    if filters.get("movement_type"):
        query = query.filter(StockMovement.movement_type == filters["movement_type"])
    if filters.get("reference_type"):
        query = query.filter(StockMovement.reference_type == filters["reference_type"])
    if filters.get("reference_id"):
        query = query.filter(StockMovement.reference_id == filters["reference_id"])
    return paginate(query, params, MOVEMENT_SORT_FIELDS, "movement_date")


# =============================================================================
# Products
# =============================================================================

def list_products(tenant_id: int, params, filters: dict) -> tuple[list, dict]:
    """
    Tenant-scoped product listing.

    Filters: search (name or barcode), category, is_active, low_stock.
    """
    query = scoped_query(Product, tenant_id)
    search = (filters.get("search") or "").strip()
    if search:
        like = f"%{search}%"
        query = query.filter(or_(Product.name.ilike(like), Product.barcode.ilike(like)))
    if filters.get("category"):
        query = query.filter(Product.category == filters["category"])
    if filters.get("is_active") is not None:
        query = query.filter(Product.is_active.is_(filters["is_active"]))
    if filters.get("low_stock"):
        query = query.filter(Product.stock_quantity <= Product.min_stock_level)
    return paginate(query, params, PRODUCT_SORT_FIELDS, "name")


def _ensure_unique_barcode(tenant_id: int, barcode: str | None, exclude_id: int | None = None) -> None:
    if not barcode:
        return
    query = scoped_query(Product, tenant_id).filter(Product.barcode == barcode)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("Barcode already exists", details={"barcode": "duplicate"})


def create_product(tenant: Tenant, payload: dict, user_id: int | None = None) -> Product:
    """
    Create a product, counting against the plan's maxProducts limit.

    An initial stock_quantity is booked as an 'adjustment' movement so the
    movement ledger always replays to the current stock.
    """
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    initial_stock = coerce_int("stock_quantity", payload.get("stock_quantity") or 0)
    if initial_stock < 0:
        raise ValidationError("stock_quantity must be >= 0")

    plan_service.require_within_limit(tenant, "maxProducts")
    _ensure_unique_barcode(tenant.id, patch.get("barcode"))

    def _op():
        product = Product(tenant_id=tenant.id, stock_quantity=0, **patch)
        db.session.add(product)
        db.session.flush()
        if initial_stock:
            apply_stock_movement(
                tenant_id=tenant.id,
                product=product,
                quantity=initial_stock,
                movement_type="adjustment",
                reference_type="manual",
                notes="Opening stock",
                user_id=user_id,
            )
        return product

    try:
        return atomic(_op)
    except IntegrityError:
        raise ConflictError("Barcode already exists", details={"barcode": "duplicate"})


def update_product(tenant_id: int, product_id: int, payload: dict) -> Product:
    product = get_owned_or_404(Product, product_id, tenant_id, label="Product")
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    if "barcode" in patch:
        _ensure_unique_barcode(tenant_id, patch["barcode"], exclude_id=product.id)

    def _op():
        for key, value in patch.items():
            setattr(product, key, value)
        return product

    return atomic(_op)


def deactivate_product(tenant_id: int, product_id: int) -> Product:
    """Products are never hard-deleted; sale history references them."""
    product = get_owned_or_404(Product, product_id, tenant_id, label="Product")
    product.is_active = False
    db.session.commit()
    return product


# =============================================================================
# Warehouses
# =============================================================================

def list_warehouses(tenant_id: int, include_inactive: bool = False) -> list[Warehouse]:
    query = scoped_query(Warehouse, tenant_id)
    if not include_inactive:
        query = query.filter(Warehouse.is_active.is_(True))
    return query.order_by(Warehouse.is_default.desc(), Warehouse.name).all()


def create_warehouse(tenant: Tenant, payload: dict, *, enforce_limit: bool = True) -> Warehouse:
    patch = validate_payload(model=Warehouse, payload=payload, policy=WAREHOUSE_POLICY, partial=False)
    if enforce_limit:
        plan_service.require_within_limit(tenant, "maxWarehouses")
    if scoped_query(Warehouse, tenant.id).filter(Warehouse.code == patch["code"]).first():
        raise ConflictError("Warehouse code already exists", details={"code": "duplicate"})

    def _op():
        if patch.get("is_default"):
            _clear_default_warehouse(tenant.id)
        warehouse = Warehouse(tenant_id=tenant.id, **patch)
        db.session.add(warehouse)
        return warehouse

    return atomic(_op)


def update_warehouse(tenant_id: int, warehouse_id: int, payload: dict) -> Warehouse:
    warehouse = get_owned_or_404(Warehouse, warehouse_id, tenant_id, label="Warehouse")
    patch = validate_payload(model=Warehouse, payload=payload, policy=WAREHOUSE_POLICY, partial=True)
    if "code" in patch:
        clash = scoped_query(Warehouse, tenant_id).filter(
            Warehouse.code == patch["code"], Warehouse.id != warehouse.id
        ).first()
        if clash:
            raise ConflictError("Warehouse code already exists", details={"code": "duplicate"})

    def _op():
        if patch.get("is_default"):
            _clear_default_warehouse(tenant_id)
        for key, value in patch.items():
            setattr(warehouse, key, value)
        return warehouse

    return atomic(_op)


def _clear_default_warehouse(tenant_id: int) -> None:
    scoped_query(Warehouse, tenant_id).filter(Warehouse.is_default.is_(True)).update(
        {"is_default": False}, synchronize_session=False
    )


def get_warehouse_stock(tenant_id: int, warehouse_id: int) -> list[WarehouseStock]:
    warehouse = get_owned_or_404(Warehouse, warehouse_id, tenant_id, label="Warehouse")
    return (
        db.session.query(WarehouseStock)
        .filter(WarehouseStock.warehouse_id == warehouse.id)
        .order_by(WarehouseStock.product_id)
        .all()
    )


# =============================================================================
# Stock transfers
# =============================================================================

def _warehouse_quantity(warehouse_id: int, product_id: int) -> int:
    row = lock_for_update(
        db.session.query(WarehouseStock).filter_by(warehouse_id=warehouse_id, product_id=product_id)
    ).first()
    return row.quantity if row is not None else 0


def _active_warehouse(tenant_id: int, warehouse_id: int) -> Warehouse:
    warehouse = get_owned_or_404(Warehouse, warehouse_id, tenant_id, label="Warehouse")
    if not warehouse.is_active:
        raise ConflictError(f"Warehouse {warehouse.name} is not active", details={"warehouse_id": warehouse.id})
    return warehouse


def _parse_transfer_items(payload: dict) -> dict[int, int]:
    """product_id -> quantity, summing repeated products."""
    requested: dict[int, int] = {}
    for entry in require_items(payload):
        product_id = require_int(entry, "product_id")
        quantity = require_int(entry, "quantity", minimum=1)
        requested[product_id] = requested.get(product_id, 0) + quantity
    return requested


def create_stock_transfer(tenant_id: int, payload: dict, user_id: int | None = None) -> StockTransfer:
    """
    Open a transfer and take its goods out of the source warehouse.

    Raises:
        ValidationError: same warehouse on both sides, malformed items
        NotFoundError: unknown warehouse or product
        ConflictError: inactive warehouse, not enough stock in the source
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    from_id = require_int(payload, "from_warehouse_id")
    to_id = require_int(payload, "to_warehouse_id")
    if from_id == to_id:
        raise ValidationError("Cannot transfer to the same warehouse")
    requested = _parse_transfer_items(payload)

    def _op():
        source = _active_warehouse(tenant_id, from_id)
        target = _active_warehouse(tenant_id, to_id)
        products = {pid: lock_product(tenant_id, pid) for pid in sorted(requested)}

        shortages = []
        for product_id, quantity in requested.items():
            available = _warehouse_quantity(source.id, product_id)
            if available < quantity:
                shortages.append({
                    "product_id": product_id,
                    "product_name": products[product_id].name,
                    "requested_quantity": quantity,
                    "warehouse_quantity": available,
                })
        if shortages:
            raise ConflictError(f"Insufficient stock in warehouse {source.name}", details={"items": shortages})

        record = StockTransfer(
            tenant_id=tenant_id,
            transfer_number=next_document_number(tenant_id=tenant_id, document_type="stock_transfer"),
            from_warehouse_id=source.id,
            to_warehouse_id=target.id,
            status="pending",
            notes=payload.get("notes"),
            created_by_user_id=user_id,
        )
        db.session.add(record)
        db.session.flush()

        for product_id, quantity in requested.items():
            record.items.append(StockTransferItem(product_id=product_id, quantity=quantity))
            apply_stock_movement(
                tenant_id=tenant_id,
                product=products[product_id],
                quantity=-quantity,
                movement_type="transfer_out",
                warehouse_id=source.id,
                reference_type="stock_transfer",
                reference_id=record.id,
                notes=f"Transfer {record.transfer_number} to {target.name}",
                user_id=user_id,
            )
        return record

    record = atomic(_op)
    current_app.logger.info(
        "Stock transfer created tenant=%s number=%s from=%s to=%s items=%s",
        tenant_id, record.transfer_number, from_id, to_id, len(record.items),
    )
    return record


def _close_transfer(tenant_id: int, transfer_id: int, status: str, user_id: int | None) -> StockTransfer:
    """Book the pending goods into the destination (completed) or back into the source (cancelled)."""
    def _op():
        record = get_owned_or_404(StockTransfer, transfer_id, tenant_id, label="Stock transfer", lock=True)
        if record.status != "pending":
            raise ConflictError(
                f"Stock transfer {record.transfer_number} is already {record.status}",
                details={"status": record.status},
            )

        warehouse_id = record.to_warehouse_id if status == "completed" else record.from_warehouse_id
        note = "received" if status == "completed" else "cancelled"
        products = {pid: lock_product(tenant_id, pid) for pid in sorted({i.product_id for i in record.items})}
        for item in record.items:
            apply_stock_movement(
                tenant_id=tenant_id,
                product=products[item.product_id],
                quantity=item.quantity,
                movement_type="transfer_in",
                warehouse_id=warehouse_id,
                reference_type="stock_transfer",
                reference_id=record.id,
                notes=f"Transfer {record.transfer_number} {note}",
                user_id=user_id,
            )

        record.status = status
        if status == "completed":
            record.completed_at = utcnow()
        else:
            record.cancelled_at = utcnow()
        return record

    record = atomic(_op)
    current_app.logger.info("Stock transfer %s tenant=%s number=%s", status, tenant_id, record.transfer_number)
    return record


def complete_stock_transfer(tenant_id: int, transfer_id: int, user_id: int | None = None) -> StockTransfer:
    return _close_transfer(tenant_id, transfer_id, "completed", user_id)


def cancel_stock_transfer(tenant_id: int, transfer_id: int, user_id: int | None = None) -> StockTransfer:
    return _close_transfer(tenant_id, transfer_id, "cancelled", user_id)


def get_stock_transfer(tenant_id: int, transfer_id: int) -> StockTransfer:
    return get_owned_or_404(StockTransfer, transfer_id, tenant_id, label="Stock transfer")


def list_stock_transfers(tenant_id: int, params, filters: dict) -> tuple[list, dict]:
    """Filters: status, warehouse_id (either side of the transfer)."""
    query = scoped_query(StockTransfer, tenant_id)
    if filters.get("status"):
        query = query.filter(
            StockTransfer.status == require_choice("status", filters["status"], STOCK_TRANSFER_STATUSES)
        )
    if filters.get("warehouse_id"):
        query = query.filter(or_(
            StockTransfer.from_warehouse_id == filters["warehouse_id"],
            StockTransfer.to_warehouse_id == filters["warehouse_id"],
        ))
    return paginate(query, params, TRANSFER_SORT_FIELDS, "transfer_date")
