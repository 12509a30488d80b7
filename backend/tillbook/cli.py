# Overview: Flask CLI command groups for bootstrap and day inspection.

# backend/tillbook/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--store "Main Store"] [--code MAIN]
#   Idempotent bootstrap: creates tables, a default store and admin/manager/cashier users.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Day inspection:
# - python -m flask days list --store-id 1 [--status CLOSED] [--limit 30]
#   List recent day operations with expected/actual/variance.
# - python -m flask days status --store-id 1 --date 2024-01-15
#   Show what can be done for a store/date (open, close, reopen).

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Store, User
from .money import format_cents
from .services import day_service
from .services.auth_service import create_user
from .validation import SERVICE_ERRORS


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--store', 'store_name', default='Main Store', help='Default store name')
@click.option('--code', 'store_code', default='MAIN', help='Default store code')
@with_appcontext
def init_system(store_name, store_code):
    """
    Initialize the back office: tables, default store and users.

    Creates:
    - Default store (if none exists)
    - Users: admin (org-level), manager and cashier (bound to the store)
    - All passwords default to: "Password123!"

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing Tillbook...")
    db.create_all()

    store = db.session.query(Store).filter_by(code=store_code).first()
    if not store:
        store = Store(name=store_name, code=store_code, is_active=True)
        db.session.add(store)
        db.session.commit()
        click.echo(f"PASS Created default store: {store.name} (ID: {store.id})")
    else:
        click.echo(f"PASS Using existing store: {store.name} (ID: {store.id})")

    default_password = "Password123!"
    default_users = [
        ("admin", "admin@tillbook.local", "admin", None),
        ("manager", "manager@tillbook.local", "manager", store.id),
        ("cashier", "cashier@tillbook.local", "cashier", store.id),
    ]

    for username, email, role, store_id in default_users:
        if db.session.query(User).filter_by(username=username).first():
            click.echo(f"WARN  User '{username}' already exists, skipping...")
            continue
        try:
            create_user(username, default_password, role=role, store_id=store_id, email=email)
            click.echo(f"PASS Created user: {username} with role '{role}'")
        except SERVICE_ERRORS as e:
            click.echo(f"FAIL Failed to create user '{username}': {str(e)}")

    click.echo("\n" + "=" * 60)
    click.echo("DONE Tillbook initialized")
    click.echo("=" * 60)
    click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
    click.echo("   admin   / Password123!")
    click.echo("   manager / Password123!")
    click.echo("   cashier / Password123!")


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


@click.group('days')
def days_group():
    """Day operation inspection commands."""


@days_group.command('list')
@click.option('--store-id', type=int, required=True, help='Store ID')
@click.option('--status', default=None, help='OPEN, CLOSED or REOPENED')
@click.option('--limit', type=int, default=30, help='Max rows (1-100)')
@with_appcontext
def list_days(store_id, status, limit):
    """List recent day operations."""
    days = day_service.list_day_operations(store_id, status=status, limit=limit)

    if not days:
        click.echo("No day operations found.")
        return

    click.echo("\n" + "=" * 100)
    click.echo(f"{'ID':<6} {'Date':<12} {'Status':<10} {'Expected cash':>14} {'Counted':>12} {'Diff':>10} {'Bank diff':>10} {'Reopens':>8}")
    click.echo("=" * 100)

    for day in days:
        click.echo(
            f"{day.id:<6} {day.business_date.isoformat():<12} {day.status:<10} "
            f"{format_cents(day.expected_cash_cents) or '-':>14} "
            f"{format_cents(day.actual_cash_count_cents) or '-':>12} "
            f"{format_cents(day.cash_difference_cents) or '-':>10} "
            f"{format_cents(day.bank_difference_cents) or '-':>10} "
            f"{day.reopen_count:>8}"
        )

    click.echo("=" * 100 + "\n")


@days_group.command('status')
@click.option('--store-id', type=int, required=True, help='Store ID')
@click.option('--date', 'business_date', required=True, help='Business date (YYYY-MM-DD)')
@with_appcontext
def day_status(store_id, business_date):
    """Show the day status and allowed transitions for a store/date."""
    try:
        status = day_service.get_day_status(store_id, business_date)
    except SERVICE_ERRORS as e:
        raise click.ClickException(str(e))

    click.echo(f"Status:     {status.status}")
    click.echo(f"Can open:   {'Yes' if status.can_open else 'No'}")
    click.echo(f"Can close:  {'Yes' if status.can_close else 'No'}")
    click.echo(f"Can reopen: {'Yes' if status.can_reopen else 'No'}")
    click.echo(status.message)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(days_group)
