# Overview: Service-layer operations for the sale ledger; append-only writes plus read views.

from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..extensions import db
from ..models import Sale, SaleItem
from ..time_utils import utcnow
from .inventory_service import MAX_ROW_ID
"""
Sale Ledger Invariants (authoritative)

- Append-only: sales and sale items are inserted once and never updated or deleted
  (enforced by mapper events on the models).
- Writes happen inside the caller's transaction; this module never commits.
- Sale.total_cents == sum(item.price_cents * item.quantity)
- Sale.profit_cents == sum((item.price_cents - item.cost_cents) * item.quantity)
"""


def create_sale(session: Session, *, total_cents: int, profit_cents: int) -> int:
    """Insert a sale header and return its id (flush only)."""
    sale = Sale(
        total_cents=total_cents,
        profit_cents=profit_cents,
        created_at=utcnow(),
    )
    session.add(sale)
    session.flush()  # ensures sale.id is assigned without committing
    return sale.id


def create_sale_item(
    session: Session,
    *,
    sale_id: int,
    product_id: int,
    product_name: str,
    quantity: int,
    price_cents: int,
    cost_cents: int,
) -> SaleItem:
    """Insert one line of a sale with its point-in-time product snapshot (flush only)."""
    item = SaleItem(
        sale_id=sale_id,
        product_id=product_id,
        product_name=product_name,
        quantity=quantity,
        price_cents=price_cents,
        cost_cents=cost_cents,
    )
    session.add(item)
    session.flush()
    return item


def get_sale(sale_id: int) -> dict | None:
    """Sale header with its items, or None."""
    if not 0 < sale_id <= MAX_ROW_ID:
        return None
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        return None

    data = sale.to_dict()
    data["items"] = [item.to_dict() for item in sale.items]
    return data


def list_sales() -> list[dict]:
    """All sale headers with their item count, newest first."""
    rows = (
        db.session.query(Sale, func.count(SaleItem.id).label("item_count"))
        .outerjoin(SaleItem, SaleItem.sale_id == Sale.id)
        .group_by(Sale.id)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .all()
    )

    results = []
    for sale, item_count in rows:
        data = sale.to_dict()
        data["item_count"] = int(item_count or 0)
        results.append(data)
    return results
