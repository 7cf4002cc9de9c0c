"""
Sale Transaction Processor

Turns a cart into one durable state change: a sale header, one sale item
per cart line, and the matching stock decrements. Either all three are
written or none are.

Invariants:
- Validation (cart shape, product existence, summed availability) completes
  before the first write, and runs again from scratch on every retry.
- Prices and costs come from the product rows read under lock, never from
  the client payload.
- Referenced products are locked in ascending id order for the whole
  validate+commit scope (BEGIN IMMEDIATE on SQLite, SELECT ... FOR UPDATE
  elsewhere), so two carts competing for the last unit cannot both pass.
- Client errors (SaleError) are never retried; storage conflicts are
  retried by re-running the whole operation.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterable, Iterator

from flask import current_app, has_app_context
from sqlalchemy.orm import Session

from ..extensions import db
from ..money_utils import cents_to_amount
from . import inventory_service, ledger_service
from .concurrency import begin_write, run_with_retry
from .inventory_service import MAX_ROW_ID, StockError

logger = logging.getLogger(__name__)


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class EmptyCart(SaleError):
    def __init__(self):
        super().__init__("No items in cart")


class InvalidCartLine(SaleError):
    def __init__(self, message: str, line_index: int):
        super().__init__(message, details={"line": line_index})
        self.line_index = line_index


class ProductNotFound(SaleError):
    def __init__(self, product_id: int):
        super().__init__(f"Product {product_id} not found", details={"product_id": product_id})
        self.product_id = product_id


class InsufficientStock(SaleError):
    def __init__(self, product_id: int, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for product {product_id}: requested {requested}, available {available}",
            details={
                "product_id": product_id,
                "requested_quantity": requested,
                "available": available,
            },
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


@dataclass(frozen=True)
class CartLine:
    """
    One requested line. client_* prices are display-only hints from the
    register and never feed the totals.
    """
    product_id: int
    quantity: int
    client_price_cents: int | None = None
    client_cost_cents: int | None = None


@dataclass(frozen=True)
class LineSnapshot:
    product_id: int
    product_name: str
    quantity: int
    price_cents: int
    cost_cents: int


@dataclass(frozen=True)
class SaleResult:
    sale_id: int
    total_cents: int
    profit_cents: int

    def to_dict(self) -> dict:
        return {
            "sale_id": self.sale_id,
            "total": cents_to_amount(self.total_cents),
            "profit": cents_to_amount(self.profit_cents),
            "total_cents": self.total_cents,
            "profit_cents": self.profit_cents,
        }


class SaleStore:
    """
    Storage used by the processor: inventory reads/writes and ledger appends
    scoped to one session, plus the transaction boundary around them.

    Anything with the same methods can be passed to process_sale().
    """

    def __init__(self, session: Session | None = None):
        self.session = session if session is not None else db.session

    @contextmanager
    def transaction(self) -> Iterator["SaleStore"]:
        begin_write(self.session)
        try:
            yield self
            self.session.commit()
        except BaseException:
            self.session.rollback()
            raise

    def rollback(self) -> None:
        self.session.rollback()

    def get_product(self, product_id: int, *, for_update: bool = False):
        return inventory_service.get_product(self.session, product_id, for_update=for_update)

    def decrement_stock(self, product_id: int, amount: int) -> None:
        inventory_service.decrement_stock(self.session, product_id, amount)

    def create_sale(self, *, total_cents: int, profit_cents: int) -> int:
        return ledger_service.create_sale(self.session, total_cents=total_cents, profit_cents=profit_cents)

    def create_sale_item(self, *, sale_id: int, product_id: int, product_name: str,
                         quantity: int, price_cents: int, cost_cents: int) -> None:
        ledger_service.create_sale_item(
            self.session,
            sale_id=sale_id,
            product_id=product_id,
            product_name=product_name,
            quantity=quantity,
            price_cents=price_cents,
            cost_cents=cost_cents,
        )


def _setting(name: str, default):
    if has_app_context():
        return current_app.config.get(name, default)
    return default


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _check_lines(lines: list[CartLine]) -> None:
    for i, line in enumerate(lines):
        if not _is_int(line.product_id):
            raise InvalidCartLine(f"Line {i + 1}: product_id must be an integer", i)
        if not _is_int(line.quantity) or line.quantity <= 0:
            raise InvalidCartLine(f"Line {i + 1}: quantity must be a positive integer", i)


def requested_by_product(lines: Iterable[CartLine]) -> dict[int, int]:
    """Summed quantity per product, keyed in first-appearance order."""
    totals: dict[int, int] = {}
    for line in lines:
        totals[line.product_id] = totals.get(line.product_id, 0) + line.quantity
    return totals


def compute_totals(snapshots: Iterable[LineSnapshot]) -> tuple[int, int]:
    """(total_cents, profit_cents) over snapshot lines."""
    total = 0
    profit = 0
    for snap in snapshots:
        total += snap.price_cents * snap.quantity
        profit += (snap.price_cents - snap.cost_cents) * snap.quantity
    return total, profit


def _warn_on_client_price(line: CartLine, product) -> None:
    mismatched = (
        (line.client_price_cents is not None and line.client_price_cents != product.price_cents)
        or (line.client_cost_cents is not None and line.client_cost_cents != product.cost_cents)
    )
    if mismatched:
        logger.warning(
            "Ignoring client pricing for product %s: client price=%s cost=%s, catalog price=%s cost=%s",
            product.id,
            line.client_price_cents,
            line.client_cost_cents,
            product.price_cents,
            product.cost_cents,
        )


def _validate_cart(store, lines: list[CartLine]) -> list[LineSnapshot]:
    requested = requested_by_product(lines)

    # Lock in a fixed order so overlapping carts cannot deadlock
    products = {
        product_id: (
            store.get_product(product_id, for_update=True)
            if 0 < product_id <= MAX_ROW_ID
            else None
        )
        for product_id in sorted(requested)
    }

    for line in lines:
        if products[line.product_id] is None:
            raise ProductNotFound(line.product_id)

    for product_id, quantity in requested.items():
        on_hand = products[product_id].stock
        if quantity > on_hand:
            raise InsufficientStock(product_id, quantity, on_hand)

    snapshots = []
    for line in lines:
        product = products[line.product_id]
        _warn_on_client_price(line, product)
        snapshots.append(LineSnapshot(
            product_id=product.id,
            product_name=product.name,
            quantity=line.quantity,
            price_cents=product.price_cents,
            cost_cents=product.cost_cents,
        ))
    return snapshots


def _post_sale_locked(store, lines: list[CartLine]) -> SaleResult:
    snapshots = _validate_cart(store, lines)
    total_cents, profit_cents = compute_totals(snapshots)

    sale_id = store.create_sale(total_cents=total_cents, profit_cents=profit_cents)

    for snap in snapshots:
        store.create_sale_item(
            sale_id=sale_id,
            product_id=snap.product_id,
            product_name=snap.product_name,
            quantity=snap.quantity,
            price_cents=snap.price_cents,
            cost_cents=snap.cost_cents,
        )

    for product_id, quantity in requested_by_product(lines).items():
        try:
            store.decrement_stock(product_id, quantity)
        except StockError as exc:
            if exc.available is None:
                raise ProductNotFound(product_id) from exc
            raise InsufficientStock(product_id, exc.requested, exc.available) from exc

    return SaleResult(sale_id=sale_id, total_cents=total_cents, profit_cents=profit_cents)


def process_sale(
    lines: Iterable[CartLine],
    *,
    store=None,
    attempts: int | None = None,
    backoff_base: float | None = None,
) -> SaleResult:
    """
    Validate a cart and commit the sale atomically.

    Raises a SaleError subclass (nothing written) for client errors.
    Storage errors propagate after the retry budget is spent, with the
    transaction rolled back.
    """
    lines = list(lines)
    if not lines:
        raise EmptyCart()
    _check_lines(lines)

    if store is None:
        store = SaleStore()
    if attempts is None:
        attempts = _setting("SALE_COMMIT_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = _setting("SALE_RETRY_BACKOFF_SECONDS", 0.05)

    def _op() -> SaleResult:
        with store.transaction():
            return _post_sale_locked(store, lines)

    def _on_retry(attempt: int, exc: Exception) -> None:
        logger.warning("Sale commit conflict (attempt %s/%s): %s", attempt, attempts, exc)

    result = run_with_retry(
        _op,
        attempts=attempts,
        backoff_base=backoff_base,
        rollback=store.rollback,
        on_retry=_on_retry,
    )

    logger.info(
        "Sale %s committed: %s lines, total_cents=%s profit_cents=%s",
        result.sale_id,
        len(lines),
        result.total_cents,
        result.profit_cents,
    )
    return result
