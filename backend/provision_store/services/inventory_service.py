# Overview: Service-layer operations for inventory; the only place sale-time stock is read or written.

from __future__ import annotations

from sqlalchemy.orm import Session

from ..models import Product
from .concurrency import lock_for_update

# Largest id an INTEGER primary key can hold
MAX_ROW_ID = 2**63 - 1


class StockError(Exception):
    """Raised when a stock decrement cannot be applied."""
    def __init__(self, product_id: int, requested: int, available: int | None):
        if available is None:
            message = f"Product {product_id} not found"
        else:
            message = f"Cannot remove {requested} units of product {product_id}: only {available} on hand"
        super().__init__(message)
        self.product_id = product_id
        self.requested = requested
        self.available = available


def get_product(session: Session, product_id: int, *, for_update: bool = False) -> Product | None:
    """
    Load a product by id.

    for_update=True takes a row lock for the rest of the transaction.
    Ids no row can have are reported as missing without a query.
    """
    if not 0 < product_id <= MAX_ROW_ID:
        return None
    query = session.query(Product).filter(Product.id == product_id)
    if for_update:
        query = lock_for_update(query)
    return query.first()


def decrement_stock(session: Session, product_id: int, amount: int) -> Product:
    """
    Remove `amount` units from a product's stock inside the caller's transaction.

    Never commits. Refuses to drive stock negative even when the caller
    has already validated availability; the version_id column turns a
    concurrent writer into StaleDataError at flush.
    """
    if amount <= 0:
        raise ValueError("amount must be > 0")

    product = get_product(session, product_id, for_update=True)
    if product is None:
        raise StockError(product_id, amount, None)

    if product.stock < amount:
        raise StockError(product_id, amount, product.stock)

    product.stock = product.stock - amount
    session.flush()
    return product


def list_low_stock(session: Session) -> list[Product]:
    """Products at or below their reorder threshold, lowest stock first."""
    return (
        session.query(Product)
        .filter(Product.stock <= Product.min_stock)
        .order_by(Product.stock.asc(), Product.id.asc())
        .all()
    )


def count_low_stock(session: Session) -> int:
    return session.query(Product).filter(Product.stock <= Product.min_stock).count()
