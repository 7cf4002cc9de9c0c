import pytest
import sqlalchemy as sa
from flask_migrate import upgrade
from sqlalchemy.exc import IntegrityError

from provision_store import create_app
from provision_store.extensions import db
from provision_store.models import Product
from provision_store.services.sales_service import CartLine, process_sale


@pytest.fixture
def migrated_app(tmp_path):
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'migrated.db'}",
    })
    with app.app_context():
        upgrade()
        yield app
        db.session.remove()
        db.engine.dispose()


def test_migration_creates_schema(migrated_app):
    tables = set(sa.inspect(db.engine).get_table_names())
    assert {"products", "sales", "sale_items", "chat_history", "alembic_version"} <= tables


def test_migrated_schema_accepts_sales(migrated_app):
    product = Product(name="Bread", category="Bakery", cost_cents=2500, price_cents=3500, stock=4, min_stock=5)
    db.session.add(product)
    db.session.commit()

    result = process_sale([CartLine(product.id, 3)])

    assert result.total_cents == 10500
    db.session.expire_all()
    assert db.session.get(Product, product.id).stock == 1


def test_migrated_schema_rejects_negative_stock(migrated_app):
    product = Product(name="Bread", category="Bakery", cost_cents=2500, price_cents=3500, stock=1, min_stock=5)
    db.session.add(product)
    db.session.commit()

    with pytest.raises(IntegrityError):
        db.session.execute(sa.text("UPDATE products SET stock = -1 WHERE id = :id"), {"id": product.id})
        db.session.commit()
    db.session.rollback()
