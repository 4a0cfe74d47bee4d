# Overview: Flask CLI command groups for bootstrap, verification, and maintenance.

# backend/stockledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "stockledger:create_app".
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--org "Org Name"] [--org-code CODE]
#   Idempotent bootstrap: creates the organization and its default settings.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system wipe --org-id 1 --yes
#   Clear one organization's stock, documents, ledger and activity; keeps
#   products, customers and settings.
#
# Ledger:
# - python -m flask ledger verify [--org-id 1]
#   Report customers whose balance differs from their transactions, and
#   lots outside 0 <= remaining <= purchased. Exit code 1 on any problem.
# - python -m flask ledger mark-overdue --org-id 1
#   Flag Sent / Partially Paid invoices past their due date as Overdue.
#
# Inventory:
# - python -m flask inventory stock --org-id 1
#   Available stock per product (bundles: max sellable).

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Organization
from .services import inventory_service, invoice_service, ledger_service, maintenance_service
from .services.customer_service import get_or_create_internal_customer
from .services.settings_service import get_tenant_settings, set_tenant_setting
from .services.unit_of_work import context_from_app


def _require_org(org_id: int) -> Organization:
    org = db.session.get(Organization, org_id)
    if org is None:
        raise click.ClickException(f"Organization {org_id} not found")
    return org


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--org', 'org_name', default='Default Organization', help='Organization name')
@click.option('--org-code', default='DEFAULT', help='Organization code')
@click.option('--currency', default=None, help='Currency symbol (default: DEFAULT_CURRENCY)')
@click.option('--due-days', type=int, default=None, help='Default invoice due window in days')
@with_appcontext
def init_system(org_name, org_code, currency, due_days):
    """
    Initialize a tenant: organization, default settings, Internal customer.

    Safe to run repeatedly; an organization with the same code is reused.
    """
    click.echo("START Initializing stockledger tenant...")

    org = db.session.query(Organization).filter_by(code=org_code).first()
    if not org:
        org = Organization(name=org_name, code=org_code, is_active=True)
        db.session.add(org)
        db.session.flush()
        click.echo(f"PASS Created organization: {org.name} (ID: {org.id}, Code: {org.code})")
    else:
        click.echo(f"PASS Using existing organization: {org.name} (ID: {org.id})")

    if currency is not None:
        set_tenant_setting(org.id, "currency", currency)
    if due_days is not None:
        set_tenant_setting(org.id, "default_due_date_days", due_days)

    get_or_create_internal_customer(org.id)
    db.session.commit()

    settings = get_tenant_settings(org.id)
    click.echo(f"PASS Currency: {settings.currency}  Due window: {settings.default_due_date_days} days")
    click.echo(
        "PASS Prefixes: "
        f"{settings.invoice_prefix} {settings.quotation_prefix} {settings.return_prefix} {settings.repair_prefix}"
    )


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


@system_group.command('wipe')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def wipe_data(org_id, yes):
    """
    Clear one organization's transactional data.

    Keeps: the organization, its settings, products, bundle definitions and
    customers (balances reset to zero).

    Removes: lots, invoices, sales, quotations, returns, repairs, damaged
    stock entries, ledger transactions, activity and document counters.
    """
    org = _require_org(org_id)
    if not yes:
        click.confirm(f"WARN This will DELETE all transactional data of {org.name}. Are you sure?", abort=True)

    click.echo("WIPE  Clearing transactional data...")
    counts = maintenance_service.clear_tenant_data(context_from_app(org.id))
    for table, count in counts.items():
        click.echo(f"  {table:<24} {count}")
    click.echo("PASS Wipe complete.")


@click.group('ledger')
def ledger_group():
    """Ledger verification and sweeps."""


@ledger_group.command('verify')
@click.option('--org-id', type=int, default=None, help='Limit to one organization')
@with_appcontext
def verify_ledger(org_id):
    """Check balance == signed sum of transactions, and lot bounds."""
    if org_id is not None:
        _require_org(org_id)

    balance_problems = ledger_service.verify_balances(org_id)
    stock_problems = inventory_service.verify_stock(org_id)

    for row in balance_problems:
        click.echo(
            f"FAIL Customer {row['customer_id']}: balance {row['balance_cents']} "
            f"!= ledger {row['ledger_sum_cents']}"
        )
    for row in stock_problems:
        click.echo(f"FAIL Lot {row['lot_id']} (product {row['product_id']}): {row['problem']}")

    if balance_problems or stock_problems:
        raise click.ClickException(
            f"{len(balance_problems)} balance and {len(stock_problems)} stock problem(s) found"
        )
    click.echo("PASS Balances and lots are consistent.")


@ledger_group.command('mark-overdue')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@with_appcontext
def mark_overdue(org_id):
    org = _require_org(org_id)
    invoices = invoice_service.mark_overdue_invoices(context_from_app(org.id))
    for invoice in invoices:
        click.echo(f"OVERDUE {invoice.invoice_number} due {invoice.due_date:%Y-%m-%d}")
    click.echo(f"PASS {len(invoices)} invoice(s) marked overdue.")


@click.group('inventory')
def inventory_group():
    """Inventory inspection commands."""


@inventory_group.command('stock')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@with_appcontext
def stock_report(org_id):
    org = _require_org(org_id)
    rows = inventory_service.stock_summary(org.id)
    if not rows:
        click.echo("No products found.")
        return

    click.echo(f"\n{'SKU':<16} {'Name':<32} {'Type':<10} {'Available':>9}")
    click.echo("-" * 70)
    for row in rows:
        click.echo(f"{row['sku']:<16} {row['name'][:32]:<32} {row['product_type']:<10} {row['available']:>9}")
    click.echo("")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(ledger_group)
    app.cli.add_command(inventory_group)
