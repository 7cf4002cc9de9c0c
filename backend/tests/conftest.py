"""
Pytest fixtures for the store backend tests.

Provides test database setup, catalog fixtures, and test client.
"""

import pytest
from provision_store import create_app
from provision_store.extensions import db
from provision_store.models import Product


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SALE_RETRY_BACKOFF_SECONDS': 0,
        'CURRENCY_SYMBOL': '₹',
        'DEFAULT_MIN_STOCK': 5,
        'TOP_PRODUCTS_LIMIT': 5,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory for committed products; returns the new product's id."""
    def _make(
        name="Rice 1kg",
        category="Groceries",
        cost_cents=4000,
        price_cents=5000,
        stock=10,
        min_stock=5,
        barcode=None,
    ) -> int:
        product = Product(
            name=name,
            category=category,
            barcode=barcode,
            cost_cents=cost_cents,
            price_cents=price_cents,
            stock=stock,
            min_stock=min_stock,
        )
        db_session.add(product)
        db_session.commit()
        return product.id

    return _make


@pytest.fixture(scope='function')
def rice(make_product):
    """Rice 1kg: cost 40.00, price 50.00, 10 on hand."""
    return make_product()


@pytest.fixture(scope='function')
def milk(make_product):
    """Milk 1L: cost 45.00, price 60.00, 30 on hand."""
    return make_product(name="Milk 1L", category="Dairy", cost_cents=4500, price_cents=6000, stock=30, barcode="MILK001")


@pytest.fixture(scope='function')
def stock_of(db_session):
    """Fresh stock value straight from the database."""
    def _stock(product_id: int) -> int:
        db_session.expire_all()
        return db_session.get(Product, product_id).stock

    return _stock
