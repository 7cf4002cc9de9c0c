# backend/provision_store/services/products_service.py
"""
Products Service

Catalog CRUD for the store. Stock edits here are manual corrections
(receiving, counts); sale-time decrements go through inventory_service.
"""
from __future__ import annotations

import logging

from flask import current_app

from ..extensions import db
from ..models import Product
from ..validation import ConflictError
from .concurrency import run_with_retry
from .inventory_service import get_product as load_product, list_low_stock

logger = logging.getLogger(__name__)

PRODUCT_MUTABLE_FIELDS = {"name", "category", "barcode", "cost_cents", "price_cents", "stock", "min_stock"}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _ensure_barcode_free(barcode: str | None, exclude_id: int | None = None) -> None:
    if not barcode:
        return
    query = db.session.query(Product).filter(Product.barcode == barcode)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ConflictError("Barcode already assigned to another product.")


def list_products() -> dict:
    """All products ordered by name."""
    products = db.session.query(Product).order_by(Product.name.asc(), Product.id.asc()).all()
    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
    }


def get_product(product_id: int) -> dict | None:
    p = load_product(db.session, product_id)
    return p.to_dict() if p else None


def create_product(*, patch: dict) -> dict:
    """
    Create product using a validated patch dict.

    Raises:
        ConflictError: If the barcode is already in use
    """
    _ensure_barcode_free(patch.get("barcode"))

    p = Product()
    apply_product_patch(p, patch)
    if p.min_stock is None:
        p.min_stock = current_app.config["DEFAULT_MIN_STOCK"]

    db.session.add(p)
    db.session.commit()
    logger.info("Created product id=%s name=%s", p.id, p.name)
    return p.to_dict()


def update_product(*, product_id: int, patch: dict) -> dict | None:
    """
    Partially update a product.

    Retries on version conflicts (e.g. a sale decremented stock between
    our read and write) by re-reading the row and re-applying the patch.

    Returns:
        Updated product dict, or None if not found

    Raises:
        ConflictError: If new barcode already exists
    """
    def _op():
        p = load_product(db.session, product_id)
        if not p:
            return None

        if "barcode" in patch and patch["barcode"] != p.barcode:
            _ensure_barcode_free(patch["barcode"], exclude_id=p.id)

        apply_product_patch(p, patch)
        db.session.commit()
        return p.to_dict()

    updated = run_with_retry(_op)
    if updated is not None:
        logger.info("Updated product id=%s fields=%s", product_id, ", ".join(sorted(patch.keys())))
    return updated


def delete_product(*, product_id: int) -> bool:
    """
    Delete a product.

    Recorded sales keep their name/price/cost snapshots, so history is
    unaffected.

    Returns:
        True if deleted, False if not found
    """
    p = load_product(db.session, product_id)
    if not p:
        return False

    db.session.delete(p)
    db.session.commit()
    logger.info("Deleted product id=%s", product_id)
    return True


def low_stock_products() -> list[dict]:
    return [p.to_dict() for p in list_low_stock(db.session)]
