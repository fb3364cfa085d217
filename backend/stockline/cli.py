# Overview: Flask CLI command groups for bootstrap, inspection, and ledger audits.

# backend/stockline/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "stockline:create_app".
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed
#   Idempotent demo data: admin user, three warehouses, three clients, six items.
#
# Ledger audits:
# - python -m flask ledger check
#   Report any item whose stored quantity is negative.
# - python -m flask ledger reconcile [--order-code ORD-0001]
#   Compare completed orders with the movements carrying their code.
#
# Orders:
# - python -m flask orders list --status PENDING --limit 20

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Order, OrderStatus, User, USER_ROLE_ADMIN
from .services import catalog_service, order_service


SEED_WAREHOUSES = [
    ("WH-001", "Bodega Central", "Ciudad de México", 1000),
    ("WH-002", "Bodega Norte", "Monterrey", 800),
    ("WH-003", "Bodega Sur", "Guadalajara", 600),
]

SEED_CLIENTS = [
    ("CL-001", "Tech Solutions SA", "contacto@techsolutions.com", "555-0101", "Av. Reforma 123"),
    ("CL-002", "Distribuidora Global", "ventas@global.com", "555-0202", "Calle Industria 45"),
    ("CL-003", "Comercializadora Local", "info@comercial.com", "555-0303", "Plaza Central 8"),
]

# sku, name, description, quantity, warehouse code
SEED_ITEMS = [
    ("LPT-001", "Laptop Gamer X", "Laptop de alto rendimiento", 50, "WH-001"),
    ("MON-002", 'Monitor 4K 27"', "Monitor IPS UHD", 30, "WH-001"),
    ("KEY-003", "Teclado Mecánico RGB", "Switch Cherry MX Blue", 100, "WH-002"),
    ("MOU-004", "Mouse Inalámbrico", "Ergonómico 2.4Ghz", 200, "WH-002"),
    ("CHR-005", "Silla Ergonómica", "Soporte lumbar ajustable", 15, "WH-003"),
    ("DSK-006", "Escritorio Elevable", "Motor eléctrico dual", 10, "WH-003"),
]


@click.group('system')
def system_group():
    """System bootstrap commands."""


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

    click.echo("PASS Database reset complete. Run 'python -m flask system seed' for demo data.")


@system_group.command('seed')
@with_appcontext
def seed():
    """Insert demo warehouses, clients and items (skips anything that already exists)."""
    from .models import Client, Warehouse

    admin = db.session.query(User).filter_by(email="admin@example.com").first()
    if admin is None:
        admin = catalog_service.create_user(
            name="Admin User", email="admin@example.com", role=USER_ROLE_ADMIN, position="System Admin",
        )
        click.echo(f"  + user {admin.email} (id={admin.id})")

    warehouses = {}
    for code, name, location, capacity in SEED_WAREHOUSES:
        wh = db.session.query(Warehouse).filter_by(code=code).first()
        if wh is None:
            wh = catalog_service.create_warehouse(code=code, name=name, location=location, capacity=capacity)
            click.echo(f"  + warehouse {code} {name}")
        warehouses[code] = wh

    for code, name, email, phone, address in SEED_CLIENTS:
        if db.session.query(Client).filter_by(code=code).first() is None:
            catalog_service.create_client(code=code, name=name, email=email, phone=phone, address=address)
            click.echo(f"  + client {code} {name}")

    for sku, name, description, quantity, wh_code in SEED_ITEMS:
        if catalog_service.get_item_by_sku(sku) is None:
            catalog_service.create_item(
                sku=sku,
                name=name,
                description=description,
                warehouse_id=warehouses[wh_code].id,
                opening_quantity=quantity,
                user_id=admin.id,
            )
            click.echo(f"  + item {sku} x{quantity}")

    click.echo("PASS Seed complete.")


@click.group('ledger')
def ledger_group():
    """Ledger audit commands."""


@ledger_group.command('check')
@with_appcontext
def ledger_check():
    """Report items with a negative quantity."""
    bad = catalog_service.find_negative_items()
    if not bad:
        click.echo("PASS No negative quantities.")
        return
    for item in bad:
        click.echo(f"FAIL item {item.id} {item.sku}: quantity {item.quantity}")
    raise SystemExit(1)


@ledger_group.command('reconcile')
@click.option('--order-code', default=None, help='Only reconcile this order code')
@with_appcontext
def ledger_reconcile(order_code):
    """
    Compare completed orders against movements tagged with their code.

    Flags orders whose lines were applied a different number of times than
    recorded (including reprocessed orders, which are reported as WARN).
    """
    q = db.session.query(Order)
    if order_code:
        q = q.filter_by(code=order_code)
    else:
        q = q.filter(Order.status == OrderStatus.COMPLETED.value)

    failures = 0
    for order in q.order_by(Order.id).all():
        report = order_service.reconcile_order(order.id)
        if not report["consistent"]:
            failures += 1
            click.echo(f"FAIL {report['code']}: {report['lines']} unexpected={report['unexpected']}")
        elif report["reprocessed"]:
            click.echo(f"WARN {report['code']}: applied {report['fulfillment_count']} times (reprocessed)")
        else:
            click.echo(f"PASS {report['code']}")

    if failures:
        raise SystemExit(1)


@click.group('orders')
def orders_group():
    """Order inspection commands."""


@orders_group.command('list')
@click.option('--status', type=click.Choice([s.value for s in OrderStatus]), default=None)
@click.option('--limit', type=int, default=20)
@with_appcontext
def list_orders_cli(status, limit):
    """List recent orders."""
    orders = order_service.list_orders(status=status, limit=limit)
    if not orders:
        click.echo("No orders found.")
        return

    click.echo(f"\n{'ID':<6} {'Code':<12} {'Dir':<4} {'Status':<10} {'Lines':<6} Created")
    click.echo("=" * 60)
    for order in orders:
        click.echo(
            f"{order.id:<6} {order.code:<12} {order.direction:<4} {order.status:<10} "
            f"{len(order.lines):<6} {order.created_at}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(ledger_group)
    app.cli.add_command(orders_group)
