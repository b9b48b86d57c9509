# Overview: Flask CLI command groups for bootstrap, catalog entry and delivery scheduling.

# backend/app/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates the tables and the admin account.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Catalog:
# - python -m flask inventory add --name "Deformed Bar 10mm" --price 185.50 --quantity 500 --unit pcs
#   Add a catalog item (price in pesos).
# - python -m flask inventory list
#   List catalog items with stock on hand.
#
# Orders:
# - python -m flask orders schedule 12 13 --fee 1500 --destination "Batangas" --date 2026-10-20
#   Put orders on a truck delivery; open orders pick the fee up at completion, completed orders owe it on top.
# - python -m flask orders list --status pending
#   List recent orders.

import click
from decimal import Decimal, InvalidOperation
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .models.auth import ROLE_ADMIN
from .services.auth_service import create_user, AuthError, PasswordValidationError
from .services import inventory_service, order_service
from .services.order_service import OrderError
from .validation import ConflictError
from .time_utils import parse_iso_date


def _pesos_to_cents(value: str) -> int:
    try:
        amount = Decimal(value)
    except InvalidOperation:
        raise click.BadParameter(f"Not a peso amount: {value}")
    if amount < 0:
        raise click.BadParameter("Amount cannot be negative")
    return int((amount * 100).quantize(Decimal("1")))


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--email', default=None, help='Admin email (default: BOOTSTRAP_ADMIN_EMAIL)')
@click.option('--password', default=None, help='Admin password (default: BOOTSTRAP_ADMIN_PASSWORD)')
@with_appcontext
def init_system(email, password):
    """
    Initialize the database and the bootstrap admin account.

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing UniAsia order system...")

    db.create_all()
    click.echo("PASS Tables ready")

    email = email or current_app.config["BOOTSTRAP_ADMIN_EMAIL"]
    password = password or current_app.config["BOOTSTRAP_ADMIN_PASSWORD"]

    existing = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if existing:
        click.echo(f"WARN  User '{existing.email}' already exists, skipping...")
    else:
        try:
            create_user(email=email, password=password, role=ROLE_ADMIN, name="Administrator")
            click.echo(f"PASS Created admin: {email}")
        except (PasswordValidationError, AuthError) as e:
            click.echo(f"FAIL Failed to create admin '{email}': {str(e)}")
            return

    click.echo("\n" + "="*60)
    click.echo("DONE System Initialized Successfully!")
    click.echo("="*60)
    click.echo("\nSECURITY WARNING:")
    click.echo("   - Change the admin password immediately in production!")
    click.echo("   - Password requirements: 8+ chars, uppercase, lowercase, digit, special char")
    click.echo("")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('inventory')
def inventory_group():
    """Catalog commands."""


@inventory_group.command('add')
@click.option('--name', prompt=True, help='Product name')
@click.option('--price', prompt=True, help='Unit price in pesos')
@click.option('--quantity', type=int, default=0, show_default=True, help='Stock on hand')
@click.option('--unit', default='pcs', show_default=True)
@click.option('--sku', default=None)
@click.option('--category', default=None)
@with_appcontext
def add_inventory_cli(name, price, quantity, unit, sku, category):
    """Add a catalog item."""
    if quantity < 0:
        raise click.BadParameter("Quantity cannot be negative")
    try:
        item = inventory_service.create_inventory_item({
            "product_name": name.strip(),
            "unit_price_cents": _pesos_to_cents(price),
            "quantity": quantity,
            "unit": unit,
            "sku": sku,
            "category": category,
        })
    except ConflictError as e:
        click.echo(f"FAIL {str(e)}")
        return
    click.echo(f"PASS Created item {item.id}: {item.product_name} @ {item.unit_price_cents} cents ({item.quantity} {item.unit})")


@inventory_group.command('list')
@with_appcontext
def list_inventory_cli():
    """List catalog items."""
    result = inventory_service.list_inventory()
    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<6} {'SKU':<14} {'Product':<40} {'Price (cents)':>14} {'Qty':>8}")
    click.echo("-"*90)
    for item in result["items"]:
        click.echo(
            f"{item['id']:<6} {(item['sku'] or '-'):<14} {item['product_name'][:40]:<40} "
            f"{item['unit_price_cents']:>14} {item['quantity']:>8}"
        )
    click.echo("="*90 + "\n")


@click.group('orders')
def orders_group():
    """Order inspection and delivery scheduling."""


@orders_group.command('schedule')
@click.argument('order_ids', nargs=-1, type=int, required=True)
@click.option('--fee', default='0', help='Shipping fee in pesos')
@click.option('--destination', default=None)
@click.option('--plate', 'plate_number', default=None, help='Truck plate number')
@click.option('--date', 'schedule_date', default=None, help='YYYY-MM-DD')
@with_appcontext
def schedule_orders_cli(order_ids, fee, destination, plate_number, schedule_date):
    """Put orders on a truck delivery."""
    try:
        parsed_date = parse_iso_date(schedule_date) if schedule_date else None
    except ValueError:
        raise click.BadParameter(f"Not a YYYY-MM-DD date: {schedule_date}")

    try:
        delivery = order_service.schedule_delivery(
            list(order_ids),
            shipping_fee_cents=_pesos_to_cents(fee),
            destination=destination,
            plate_number=plate_number,
            schedule_date=parsed_date,
        )
    except OrderError as e:
        click.echo(f"FAIL {str(e)}")
        return
    click.echo(
        f"PASS Truck delivery {delivery.id} scheduled for orders {', '.join(map(str, order_ids))} "
        f"(fee {delivery.shipping_fee_cents} cents)"
    )


@orders_group.command('list')
@click.option('--status', default=None, help='pending | accepted | rejected | completed')
@click.option('--limit', type=int, default=20, show_default=True)
@with_appcontext
def list_orders_cli(status, limit):
    """List recent orders."""
    orders = order_service.list_orders(status=status, limit=limit)
    if not orders:
        click.echo("No orders found.")
        return
    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<6} {'TXN':<22} {'Status':<10} {'Type':<7} {'Subtotal':>12} {'Grand Total':>12}")
    click.echo("-"*90)
    for order in orders:
        grand = order.grand_total_with_interest_cents
        click.echo(
            f"{order.id:<6} {order_service.order_txn_code(order):<22} {order.status:<10} "
            f"{order.payment_type:<7} {order.total_amount_cents:>12} {('-' if grand is None else grand):>12}"
        )
    click.echo("="*90 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(orders_group)
