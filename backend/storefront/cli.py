# Overview: Flask CLI command groups for bootstrap, catalogue and fulfillment tasks.

# backend/storefront/cli.py
# Commands Legend (run from the repository root):
# Prereqs:
# - Activate your virtualenv and `pip install -e .`.
# - Set FLASK_APP=storefront (PowerShell: $env:FLASK_APP="storefront").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (use `flask db upgrade` in production).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Catalogue:
# - python -m flask products list [--all]
#   List products with stock and cost (lowest stock first).
# - python -m flask products create --name "Tea" --price 45000 [--opening-stock 10 --opening-cost 30000]
#   Create a product; opening stock is recorded as an inbound batch.
#
# Inventory:
# - python -m flask stock inbound 1 --quantity 10 --cost 30000 [--supplier "ACME"]
#   Record a stock delivery and re-blend the weighted-average cost.
# - python -m flask stock adjust 1 --delta -2 --reason "Damaged"
#   Manual correction; cost is unchanged.
#
# Orders:
# - python -m flask orders set-status 42 processing [--from pending]
#   Move an order through its lifecycle (stock effects apply).

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import StorefrontError
from .money import money_str
from .services import inventory_service, order_status_service, products_service

CLI_ACTOR = "CLI"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables."""
    db.create_all()
    click.echo("PASS Schema created")


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
    click.echo("BUILD  Creating tables...")
    db.create_all()
    click.echo("PASS Database reset complete")


@click.group('products')
def products_group():
    """Catalogue commands."""


@products_group.command('list')
@click.option('--all', 'include_inactive', is_flag=True, help='Include inactive products')
@with_appcontext
def list_products(include_inactive):
    result = products_service.list_products(include_inactive=include_inactive)
    if not result["items"]:
        click.echo("No products found")
        return
    for p in result["items"]:
        flag = "" if p["is_active"] else "  (inactive)"
        click.echo(
            f"{p['id']:>5}  {p['name']:<30}  stock={p['stock_quantity']:<6} "
            f"price={p['price']:<12} cost={p['cost_price']}{flag}"
        )


@products_group.command('create')
@click.option('--name', required=True)
@click.option('--price', required=True)
@click.option('--category', default=None)
@click.option('--description', default=None)
@click.option('--opening-stock', type=int, default=None)
@click.option('--opening-cost', default=None)
@click.option('--supplier', default=None)
@with_appcontext
def create_product(name, price, category, description, opening_stock, opening_cost, supplier):
    from .validation import parse_amount, enforce_rules_product

    try:
        patch = {"name": name.strip(), "price": parse_amount(price, "price"),
                 "category": category, "description": description}
        enforce_rules_product(patch)
        product = products_service.create_product(
            patch=patch,
            opening_stock=opening_stock,
            opening_cost=opening_cost,
            supplier=supplier,
            actor=CLI_ACTOR,
        )
    except StorefrontError as e:
        raise click.ClickException(str(e))

    click.echo(
        f"PASS Created product {product.id}: {product.name} "
        f"(stock={product.stock_quantity}, cost={money_str(product.cost_price)})"
    )


@click.group('stock')
def stock_group():
    """Inventory commands."""


@stock_group.command('inbound')
@click.argument('product_id', type=int)
@click.option('--quantity', required=True, type=int)
@click.option('--cost', required=True)
@click.option('--supplier', default=None)
@click.option('--notes', default=None)
@with_appcontext
def stock_inbound(product_id, quantity, cost, supplier, notes):
    try:
        record = inventory_service.record_stock_inbound(
            product_id, quantity, cost, supplier, notes, actor=CLI_ACTOR
        )
    except StorefrontError as e:
        raise click.ClickException(str(e))
    click.echo(
        f"PASS Product {product_id}: stock now {record.stock_after}, "
        f"average cost {money_str(record.cost_price_after)}"
    )


@stock_group.command('adjust')
@click.argument('product_id', type=int)
@click.option('--delta', required=True, type=int)
@click.option('--reason', required=True)
@with_appcontext
def stock_adjust(product_id, delta, reason):
    try:
        product = inventory_service.adjust_stock(product_id, delta, reason, actor=CLI_ACTOR)
    except StorefrontError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Product {product_id}: stock now {product.stock_quantity}")


@click.group('orders')
def orders_group():
    """Fulfillment commands."""


@orders_group.command('set-status')
@click.argument('order_id', type=int)
@click.argument('new_status')
@click.option('--from', 'from_status', default=None, help='Expected current status')
@with_appcontext
def set_order_status(order_id, new_status, from_status):
    try:
        order = order_status_service.transition_order_status(
            order_id, from_status, new_status, actor=CLI_ACTOR
        )
    except StorefrontError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Order {order.order_code} is now {order.status}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(products_group)
    app.cli.add_command(stock_group)
    app.cli.add_command(orders_group)
