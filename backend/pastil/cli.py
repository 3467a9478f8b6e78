# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/pastil/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to pastil (PowerShell: $env:FLASK_APP="pastil").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Idempotent: payment methods, customer types, a few ingredients and products.
#
# Sales inspection:
# - python -m flask sales next-number [--period 24-05]
#   Preview the next transaction number (nothing is reserved).
# - python -m flask sales list --limit 20
#   Recent sale rows, newest first.
#
# Inventory inspection:
# - python -m flask inventory list
#   Raw materials with stock in storage and display units.
# - python -m flask inventory products
#   Finished products with derived cost and availability.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import CustomerType, FinishedProduct, InventoryItem, PaymentMethod, RecipeLine
from .services import inventory_service, recipe_service, sales_service, transaction_number_service
from .services.units import PIECE, VOLUME, WEIGHT, to_display, unit_labels


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-demo' to load demo data.")


DEMO_PAYMENT_METHODS = [("Cash", "#22c55e"), ("GCash", "#3b82f6")]
DEMO_CUSTOMER_TYPES = [("Walk-in", "#f59e0b"), ("Student", "#a855f7")]

# name, unit_type, qty (storage units), cost_cents per storage unit
DEMO_ITEMS = [
    ("Rice", WEIGHT, 10.0, 5500),
    ("Chicken", WEIGHT, 5.0, 22000),
    ("Soy Sauce", VOLUME, 2.0, 9000),
    ("Banana Leaf", PIECE, 200, 200),
]

# name, selling_price_cents, [(item name, display qty)]
DEMO_PRODUCTS = [
    ("Pastil Classic", 4500, [("Rice", 150), ("Chicken", 60), ("Banana Leaf", 1)]),
    ("Pastil Spicy", 5000, [("Rice", 150), ("Chicken", 70), ("Soy Sauce", 10), ("Banana Leaf", 1)]),
    ("Extra Rice", 1500, [("Rice", 150), ("Banana Leaf", 1)]),
]


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Load demo lookups, ingredients and products (skips rows that exist)."""
    for name, color in DEMO_PAYMENT_METHODS:
        if not db.session.query(PaymentMethod).filter_by(name=name).first():
            db.session.add(PaymentMethod(name=name, color=color))
    for name, color in DEMO_CUSTOMER_TYPES:
        if not db.session.query(CustomerType).filter_by(name=name).first():
            db.session.add(CustomerType(name=name, color=color))
    db.session.commit()

    items = {}
    for name, unit_type, qty, cost_cents in DEMO_ITEMS:
        item = db.session.query(InventoryItem).filter_by(name=name).first()
        if item is None:
            item = inventory_service.create_item(name=name, unit_type=unit_type, qty=qty, cost_cents=cost_cents)
            click.echo(f"PASS Created ingredient {name}")
        items[name] = item

    for name, price_cents, recipe in DEMO_PRODUCTS:
        if db.session.query(FinishedProduct).filter_by(name=name).first():
            continue
        product = FinishedProduct(name=name, selling_price_cents=price_cents)
        for item_name, qty in recipe:
            product.recipe_lines.append(RecipeLine(item=items[item_name], qty=qty))
        db.session.add(product)
        db.session.commit()
        click.echo(f"PASS Created product {name}")

    click.echo("PASS Demo data ready.")


@click.group('sales')
def sales_group():
    """Sale inspection commands."""


@sales_group.command('next-number')
@click.option('--period', default=None, help="Period as YY-MM (defaults to the current month)")
@with_appcontext
def next_number(period):
    """Preview the next transaction number."""
    try:
        number = transaction_number_service.next_transaction_number(period)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="--period")
    click.echo(number)


@sales_group.command('list')
@click.option('--limit', type=int, default=20, show_default=True, help='Number of rows')
@with_appcontext
def list_sales(limit):
    """List recent sale rows."""
    rows = sales_service.list_recent_sales(limit=limit)
    if not rows:
        click.echo("No sales recorded.")
        return

    click.echo("\n" + "=" * 100)
    click.echo(f"{'NUMBER':<14} {'PRODUCT':<28} {'QTY':>4} {'TOTAL':>10} {'PAYMENT':<10} {'STATUS':<10} CREATED")
    click.echo("=" * 100)
    for row in rows:
        status = "CANCELLED" if row.cancelled else "FINAL"
        click.echo(
            f"{row.transaction_number:<14} {row.product_name[:28]:<28} {row.qty:>4} "
            f"{row.total_cents / 100:>10.2f} {row.payment_method[:10]:<10} {status:<10} {row.created_at}"
        )
    click.echo("=" * 100 + "\n")


@click.group('inventory')
def inventory_group():
    """Inventory inspection commands."""


@inventory_group.command('list')
@with_appcontext
def list_inventory():
    """List raw materials."""
    for item in inventory_service.list_items():
        storage_label, display_label = unit_labels(item.unit_type)
        click.echo(
            f"{item.id:>4} {item.name:<24} {item.qty:>10.3f} {storage_label:<4} "
            f"({to_display(item.qty, item.unit_type):,.0f} {display_label}) "
            f"cost {item.cost_cents / 100:.2f}/{storage_label}"
        )


@inventory_group.command('products')
@with_appcontext
def list_products():
    """List finished products with derived cost and availability."""
    for row in recipe_service.list_product_availability():
        flag = "AVAILABLE" if row["available"] else "OUT"
        click.echo(
            f"{row['id']:>4} {row['name']:<24} price {row['selling_price_cents'] / 100:>8.2f} "
            f"cost {row['cost_cents'] / 100:>8.2f} {flag}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(sales_group)
    app.cli.add_command(inventory_group)
