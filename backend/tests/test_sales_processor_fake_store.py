"""
Processor tests against an in-memory store.

No Flask app or database: the processor only needs something with the
SaleStore methods, which lets these tests force conflicts and failures at
exact points in the commit.
"""
import copy
import threading
from contextlib import contextmanager
from dataclasses import dataclass

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from provision_store.services.inventory_service import StockError
from provision_store.services.sales_service import (
    CartLine,
    EmptyCart,
    InsufficientStock,
    LineSnapshot,
    ProductNotFound,
    compute_totals,
    process_sale,
    requested_by_product,
)


@dataclass
class FakeProduct:
    id: int
    name: str
    price_cents: int
    cost_cents: int
    stock: int


class FakeSaleStore:
    """Single global lock as the serialization point; snapshot/restore as rollback."""

    def __init__(self, products):
        self.products = {p.id: p for p in products}
        self.sales = []
        self.items = []
        self.failures = {}
        self.calls = []
        self._lock = threading.RLock()

    def fail_once(self, method: str, exc: Exception) -> None:
        self.failures[method] = exc

    def _maybe_fail(self, method: str) -> None:
        exc = self.failures.pop(method, None)
        if exc is not None:
            raise exc

    @contextmanager
    def transaction(self):
        with self._lock:
            saved = (copy.deepcopy(self.products), list(self.sales), list(self.items))
            try:
                yield self
            except BaseException:
                self.products, self.sales, self.items = saved
                raise

    def rollback(self):
        self.calls.append("rollback")

    def get_product(self, product_id, *, for_update=False):
        self.calls.append(("get_product", product_id, for_update))
        return self.products.get(product_id)

    def decrement_stock(self, product_id, amount):
        self._maybe_fail("decrement_stock")
        product = self.products.get(product_id)
        if product is None:
            raise StockError(product_id, amount, None)
        if product.stock < amount:
            raise StockError(product_id, amount, product.stock)
        product.stock -= amount

    def create_sale(self, *, total_cents, profit_cents):
        self._maybe_fail("create_sale")
        sale_id = len(self.sales) + 1
        self.sales.append({"id": sale_id, "total_cents": total_cents, "profit_cents": profit_cents})
        return sale_id

    def create_sale_item(self, **item):
        self._maybe_fail("create_sale_item")
        self.items.append(item)


def _rice(stock=10):
    return FakeProduct(id=1, name="Rice 1kg", price_cents=5000, cost_cents=4000, stock=stock)


def _oil(stock=25):
    return FakeProduct(id=2, name="Cooking Oil 1L", price_cents=15000, cost_cents=12000, stock=stock)


def test_commit_writes_header_items_and_stock():
    store = FakeSaleStore([_rice(), _oil()])

    result = process_sale(
        [CartLine(product_id=2, quantity=1), CartLine(product_id=1, quantity=3)],
        store=store,
    )

    assert (result.total_cents, result.profit_cents) == (30000, 6000)
    assert store.sales == [{"id": 1, "total_cents": 30000, "profit_cents": 6000}]
    assert [i["product_id"] for i in store.items] == [2, 1]
    assert store.products[1].stock == 7
    assert store.products[2].stock == 24


def test_products_are_locked_in_id_order():
    store = FakeSaleStore([_rice(), _oil()])

    process_sale([CartLine(product_id=2, quantity=1), CartLine(product_id=1, quantity=1)], store=store)

    locks = [c for c in store.calls if isinstance(c, tuple)]
    assert locks == [("get_product", 1, True), ("get_product", 2, True)]


def test_empty_cart_never_touches_storage():
    store = FakeSaleStore([_rice()])
    with pytest.raises(EmptyCart):
        process_sale([], store=store)
    assert store.calls == []


def test_missing_product_aborts_without_writes():
    store = FakeSaleStore([_rice()])
    with pytest.raises(ProductNotFound):
        process_sale([CartLine(product_id=1, quantity=1), CartLine(product_id=7, quantity=1)], store=store)
    assert store.sales == []
    assert store.products[1].stock == 10


def test_ids_beyond_integer_range_are_not_looked_up():
    store = FakeSaleStore([_rice()])
    with pytest.raises(ProductNotFound) as excinfo:
        process_sale([CartLine(product_id=1, quantity=1), CartLine(product_id=2**63, quantity=1)], store=store)

    assert excinfo.value.details == {"product_id": 2**63}
    assert ("get_product", 2**63, True) not in store.calls
    assert store.sales == []
    assert store.products[1].stock == 10


def test_failure_between_header_and_stock_is_all_or_nothing():
    store = FakeSaleStore([_rice()])
    store.fail_once("decrement_stock", RuntimeError("crash"))

    with pytest.raises(RuntimeError):
        process_sale([CartLine(product_id=1, quantity=3)], store=store)

    assert store.sales == []
    assert store.items == []
    assert store.products[1].stock == 10


def test_storage_conflict_retries_from_scratch():
    store = FakeSaleStore([_rice()])
    store.fail_once("create_sale", OperationalError("INSERT INTO sales", {}, Exception("database is locked")))

    result = process_sale([CartLine(product_id=1, quantity=2)], store=store, backoff_base=0)

    assert result.sale_id == 1
    assert len(store.sales) == 1
    assert store.products[1].stock == 8
    assert "rollback" in store.calls
    # validation ran once per attempt
    assert store.calls.count(("get_product", 1, True)) == 2


def test_version_conflict_retries_and_revalidates():
    store = FakeSaleStore([_rice(stock=3)])
    store.fail_once("decrement_stock", StaleDataError("products row changed"))

    result = process_sale([CartLine(product_id=1, quantity=3)], store=store, backoff_base=0)

    assert result.total_cents == 15000
    assert store.products[1].stock == 0
    assert len(store.items) == 1


def test_conflicts_exhausting_retries_propagate():
    class AlwaysLocked(FakeSaleStore):
        def create_sale(self, **kwargs):
            raise OperationalError("INSERT INTO sales", {}, Exception("database is locked"))

    store = AlwaysLocked([_rice()])
    with pytest.raises(OperationalError):
        process_sale([CartLine(product_id=1, quantity=1)], store=store, attempts=3, backoff_base=0)

    assert store.calls.count("rollback") == 3
    assert store.products[1].stock == 10


def test_client_errors_are_not_retried():
    store = FakeSaleStore([_rice(stock=1)])
    with pytest.raises(InsufficientStock):
        process_sale([CartLine(product_id=1, quantity=2)], store=store, attempts=5, backoff_base=0)
    assert store.calls.count(("get_product", 1, True)) == 1


def test_concurrent_carts_never_oversell():
    store = FakeSaleStore([_rice(stock=3)])
    barrier = threading.Barrier(10)
    outcomes = []
    outcomes_lock = threading.Lock()

    def worker():
        barrier.wait()
        try:
            process_sale([CartLine(product_id=1, quantity=1)], store=store, backoff_base=0)
            outcome = "ok"
        except InsufficientStock:
            outcome = "short"
        with outcomes_lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("ok") == 3
    assert outcomes.count("short") == 7
    assert store.products[1].stock == 0
    assert sum(i["quantity"] for i in store.items) == 3


def test_compute_totals():
    snaps = [
        LineSnapshot(product_id=1, product_name="Rice 1kg", quantity=3, price_cents=5000, cost_cents=4000),
        LineSnapshot(product_id=2, product_name="Bread", quantity=2, price_cents=3500, cost_cents=2500),
    ]
    assert compute_totals(snaps) == (22000, 5000)
    assert compute_totals([]) == (0, 0)


def test_requested_by_product_keeps_first_appearance_order():
    lines = [CartLine(3, 1), CartLine(1, 2), CartLine(3, 4)]
    assert list(requested_by_product(lines).items()) == [(3, 5), (1, 2)]
