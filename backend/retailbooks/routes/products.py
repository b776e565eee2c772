# Overview: Flask API routes for products operations; parses input and returns JSON responses.

"""
Product management routes.

MULTI-TENANT: All product operations are scoped to g.tenant_id
(set by @require_auth).

SECURITY:
- Read operations require products.view
- Write operations require products.manage
- Manual stock movements require stock.adjust
"""

from flask import Blueprint, request, g

from ..services import inventory_service
from ..services.tenant_service import get_owned_or_404
from ..models import Product
from ..validation import DomainError
from ..decorators import require_auth, require_permission
from ..responses import ok, error_response
from .common import list_params, bool_arg

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_permission("products.view")
def list_products_route():
    """
    Query params: page, limit, sort_by (name|created_at|sale_price_cents|
    stock_quantity|category), sort_order, search, category, is_active, low_stock
    """
    try:
        rows, meta = inventory_service.list_products(g.tenant_id, list_params(), {
            "search": request.args.get("search"),
            "category": request.args.get("category"),
            "is_active": bool_arg("is_active"),
            "low_stock": bool_arg("low_stock"),
        })
        return ok([p.to_dict() for p in rows], meta=meta)
    except DomainError as e:
        return error_response(e)


@products_bp.post("")
@require_auth
@require_permission("products.manage")
def create_product_route():
    payload = request.get_json(silent=True) or {}
    try:
        product = inventory_service.create_product(g.context.tenant, payload, user_id=g.current_user.id)
        return ok(product.to_dict(), 201)
    except DomainError as e:
        return error_response(e)


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("products.view")
def get_product_route(product_id: int):
    try:
        product = get_owned_or_404(Product, product_id, g.tenant_id, label="Product")
        return ok(product.to_dict())
    except DomainError as e:
        return error_response(e)


@products_bp.patch("/<int:product_id>")
@require_auth
@require_permission("products.manage")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        product = inventory_service.update_product(g.tenant_id, product_id, payload)
        return ok(product.to_dict())
    except DomainError as e:
        return error_response(e)


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission("products.manage")
def delete_product_route(product_id: int):
    """Deactivates the product; sale history keeps referencing it."""
    try:
        product = inventory_service.deactivate_product(g.tenant_id, product_id)
        return ok(product.to_dict())
    except DomainError as e:
        return error_response(e)


@products_bp.post("/<int:product_id>/stock")
@require_auth
@require_permission("stock.adjust")
def adjust_stock_route(product_id: int):
    """
    Manual stock movement.

    Body: {"quantity": signed int, "movement_type": "adjustment"|"purchase",
           "warehouse_id"?, "notes"?}
    """
    payload = request.get_json(silent=True) or {}
    try:
        movement = inventory_service.adjust_stock(g.tenant_id, product_id, payload, user_id=g.current_user.id)
        return ok(movement.to_dict(), 201)
    except DomainError as e:
        return error_response(e)
