# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/provision_store/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and seeds sample products when the catalog is empty.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Catalog inspection:
# - python -m flask products list
#   List products with stock and prices.
# - python -m flask products low-stock
#   List products at or below their reorder threshold.
#
# Sales inspection:
# - python -m flask sales list --limit 20
#   List recent sales with totals.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Product
from .money_utils import format_cents
from .services import ledger_service
from .services.inventory_service import list_low_stock


SAMPLE_PRODUCTS = [
    {"name": "Rice 1kg", "category": "Groceries", "barcode": "RICE001", "cost_cents": 4000, "price_cents": 5000, "stock": 100},
    {"name": "Sugar 1kg", "category": "Groceries", "barcode": "SUGAR001", "cost_cents": 3500, "price_cents": 4500, "stock": 80},
    {"name": "Milk 1L", "category": "Dairy", "barcode": "MILK001", "cost_cents": 4500, "price_cents": 6000, "stock": 30},
    {"name": "Bread", "category": "Bakery", "barcode": "BREAD001", "cost_cents": 2500, "price_cents": 3500, "stock": 40},
    {"name": "Eggs 12pcs", "category": "Dairy", "barcode": "EGG001", "cost_cents": 6000, "price_cents": 8000, "stock": 50},
    {"name": "Cooking Oil 1L", "category": "Groceries", "barcode": "OIL001", "cost_cents": 12000, "price_cents": 15000, "stock": 25},
]


def seed_sample_products(default_min_stock: int = 5) -> int:
    """Insert the sample catalog if there are no products yet. Returns rows added."""
    if db.session.query(Product).count() > 0:
        return 0

    for data in SAMPLE_PRODUCTS:
        db.session.add(Product(min_stock=default_min_stock, **data))
    db.session.commit()
    return len(SAMPLE_PRODUCTS)


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--no-seed', is_flag=True, help='Create tables without sample products.')
@with_appcontext
def system_init(no_seed):
    """Create tables and seed sample products (safe to re-run)."""
    db.create_all()
    click.echo("Tables ready.")

    if no_seed:
        return

    added = seed_sample_products(current_app.config["DEFAULT_MIN_STOCK"])
    if added:
        click.echo(f"Seeded {added} sample products.")
    else:
        click.echo("Catalog already has products; skipping sample data.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset.')
@with_appcontext
def system_reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        raise click.ClickException("Refusing to reset without --yes.")

    db.drop_all()
    db.create_all()
    click.echo("Database reset.")


@click.group('products')
def products_group():
    """Catalog inspection commands."""


def _echo_product(p: Product) -> None:
    flag = " LOW" if p.is_low_stock else ""
    click.echo(
        f"{p.id:>4}  {p.name:<24} {p.category:<12} stock={p.stock:<5} "
        f"price={format_cents(p.price_cents)} cost={format_cents(p.cost_cents)}{flag}"
    )


@products_group.command('list')
@with_appcontext
def products_list():
    """List all products."""
    products = db.session.query(Product).order_by(Product.name.asc()).all()
    if not products:
        click.echo("No products.")
        return
    for p in products:
        _echo_product(p)


@products_group.command('low-stock')
@with_appcontext
def products_low_stock():
    """List products at or below their reorder threshold."""
    products = list_low_stock(db.session)
    if not products:
        click.echo("No low stock items.")
        return
    for p in products:
        _echo_product(p)


@click.group('sales')
def sales_group():
    """Sales inspection commands."""


@sales_group.command('list')
@click.option('--limit', default=20, show_default=True, type=int)
@with_appcontext
def sales_list(limit):
    """List recent sales."""
    sales = ledger_service.list_sales()[:limit]
    if not sales:
        click.echo("No sales recorded.")
        return
    for s in sales:
        click.echo(
            f"{s['id']:>5}  {s['created_at']}  items={s['item_count']:<3} "
            f"total={format_cents(s['total_cents'])} profit={format_cents(s['profit_cents'])}"
        )


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(products_group)
    app.cli.add_command(sales_group)
