# Overview: Read-only rollups over the sale ledger and catalog.

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Product, Sale, SaleItem
from .inventory_service import count_low_stock


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


def sales_summary() -> dict:
    """Revenue, profit and number of sales over the whole ledger."""
    revenue, profit, count = db.session.query(
        func.coalesce(func.sum(Sale.total_cents), 0),
        func.coalesce(func.sum(Sale.profit_cents), 0),
        func.count(Sale.id),
    ).one()
    return {
        "revenue_cents": int(revenue),
        "profit_cents": int(profit),
        "sales_count": int(count),
    }


def top_products(limit: int | None = None) -> list[dict]:
    """
    Best sellers by units sold.

    Grouped by the snapshot product name so renamed or deleted products
    still report under the name they were sold as.
    """
    if limit is None:
        limit = current_app.config["TOP_PRODUCTS_LIMIT"]
    if limit <= 0:
        raise ReportError("limit must be > 0")

    total_quantity = func.sum(SaleItem.quantity).label("total_quantity")
    rows = (
        db.session.query(
            SaleItem.product_name,
            total_quantity,
            func.sum(SaleItem.price_cents * SaleItem.quantity).label("total_revenue_cents"),
        )
        .group_by(SaleItem.product_name)
        .order_by(total_quantity.desc(), SaleItem.product_name.asc())
        .limit(limit)
        .all()
    )
    return [
        {
            "product_name": name,
            "total_quantity": int(qty or 0),
            "total_revenue_cents": int(revenue or 0),
        }
        for name, qty, revenue in rows
    ]


def store_stats() -> dict:
    stats = sales_summary()
    stats["total_products"] = db.session.query(Product).count()
    stats["low_stock_count"] = count_low_stock(db.session)
    stats["top_products"] = top_products()
    return stats
