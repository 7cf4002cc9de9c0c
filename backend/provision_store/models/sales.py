from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.orm import object_session

from ..extensions import db
from ..money_utils import cents_to_amount
from ..time_utils import to_utc_z


class LedgerImmutableError(Exception):
    """Raised when something tries to update or delete a recorded sale."""


class Sale(db.Model):
    """
    Sale header.

    Append-only: created exactly once together with its items and never
    changed afterwards. total_cents and profit_cents always equal the sums
    over the sale's items.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_created_at", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    total_cents = db.Column(db.Integer, nullable=False)
    profit_cents = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    items = db.relationship(
        "SaleItem",
        backref=db.backref("sale", lazy=True),
        lazy=True,
        order_by="SaleItem.id",
    )

    def __repr__(self) -> str:
        return f"<Sale id={self.id} total_cents={self.total_cents}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "total_cents": self.total_cents,
            "profit_cents": self.profit_cents,
            "total": cents_to_amount(self.total_cents),
            "profit": cents_to_amount(self.profit_cents),
            "created_at": to_utc_z(self.created_at),
        }


class SaleItem(db.Model):
    """
    One cart line of a sale.

    product_name, price_cents and cost_cents are point-in-time snapshots;
    product_id is a plain reference (no FK) so catalog deletes never touch
    recorded sales.
    """
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    cost_cents = db.Column(db.Integer, nullable=False)

    @property
    def line_total_cents(self) -> int:
        return self.price_cents * self.quantity

    @property
    def line_profit_cents(self) -> int:
        return (self.price_cents - self.cost_cents) * self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "cost_cents": self.cost_cents,
            "line_total_cents": self.line_total_cents,
        }


def _reject_update(mapper, connection, target):
    session = object_session(target)
    if session is not None and not session.is_modified(target, include_collections=False):
        return
    raise LedgerImmutableError(f"{type(target).__name__} {target.id} is append-only and cannot be updated")


def _reject_delete(mapper, connection, target):
    raise LedgerImmutableError(f"{type(target).__name__} {target.id} is append-only and cannot be deleted")


for _model in (Sale, SaleItem):
    event.listen(_model, "before_update", _reject_update)
    event.listen(_model, "before_delete", _reject_delete)
