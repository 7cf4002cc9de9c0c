# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/provision_store/routes/products.py
"""
Product catalog routes.

Money fields are integer cents (price_cents, cost_cents).
"""
from flask import Blueprint, request

from ..models import Product
from ..services import products_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
    ConflictError,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "category", "barcode", "cost_cents", "price_cents", "stock", "min_stock"},
    required_on_create={"name", "category", "cost_cents", "price_cents", "stock"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    """List all products ordered by name."""
    return products_service.list_products()


@products_bp.get("/alerts/low-stock")
def low_stock_alerts():
    """Products at or below their reorder threshold."""
    items = products_service.low_stock_products()
    return {"items": items, "count": len(items)}


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    product = products_service.get_product(product_id)
    if not product:
        return {"error": "Product not found"}, 404
    return product


@products_bp.post("")
def create_product_route():
    """Create a new product."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        created = products_service.create_product(patch=patch)
    except ConflictError as e:
        return {"error": str(e)}, 409

    return {"message": "Product added successfully", "id": created["id"], "product": created}, 201


@products_bp.put("/<int:product_id>")
def update_product_route(product_id: int):
    """Update any subset of a product's fields."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    if not patch:
        return {"error": "No fields to update"}, 400

    try:
        updated = products_service.update_product(product_id=product_id, patch=patch)
    except ConflictError as e:
        return {"error": str(e)}, 409

    if not updated:
        return {"error": "Product not found"}, 404

    return {"message": "Product updated successfully", "product": updated}, 200


@products_bp.delete("/<int:product_id>")
def delete_product_route(product_id: int):
    deleted = products_service.delete_product(product_id=product_id)
    if not deleted:
        return {"error": "Product not found"}, 404

    return {"message": "Product deleted successfully"}, 200
