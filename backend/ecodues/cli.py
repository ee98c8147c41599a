# Overview: Flask CLI command groups for bootstrap, demo data, and scheduled due maintenance.

# backend/ecodues/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Create one consumer, business, retailer and company with stock and an open due chain.
#
# Dues:
# - python -m flask dues sweep-overdue [--as-of 2026-01-31] [--tier consumer] [--owner-id 4]
#   Mark pending dues past their due date overdue. Meant for cron.
# - python -m flask dues settle consumer 12
#   Settle one due and advance the cascade.
# - python -m flask dues chain retailer 7
#   Print the chain a due belongs to, root first.

from decimal import Decimal

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User, Business, Retailer, Company, CompanyProduct
from .models.dues import TIERS
from .services import dues_service
from .services import sweeper_service
from .services import purchase_service
from .validation import ValidationError, NotFoundError
from .time_utils import parse_iso_date


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-demo' for sample data.")


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """
    Seed a small supply chain.

    Creates:
    - consumer@ecodues.local (consumer)
    - owner@ecodues.local owning "Corner Cafe"
    - "Green Goods" retailer, registered with the cafe
    - "PolyCorp" company selling "PET Granulate" at 0.05/gram disposal cost
    - a company restock, a business purchase and a consumer purchase
    """
    if db.session.query(Company).filter_by(name="PolyCorp").first():
        click.echo("SKIP Demo data already present.")
        return

    consumer = User(email="consumer@ecodues.local", name="Demo Consumer", user_type="consumer")
    owner = User(email="owner@ecodues.local", name="Cafe Owner", user_type="business")
    retailer_user = User(email="retail@ecodues.local", name="Retail Staff", user_type="retailer")
    company_user = User(email="company@ecodues.local", name="Company Staff", user_type="company")
    db.session.add_all([consumer, owner, retailer_user, company_user])
    db.session.flush()

    business = Business(owner_id=owner.id, name="Corner Cafe", type="cafe")
    retailer = Retailer(user_id=retailer_user.id, name="Green Goods", email="retail@ecodues.local")
    company = Company(user_id=company_user.id, name="PolyCorp", contact_person="Company Staff")
    db.session.add_all([business, retailer, company])
    db.session.flush()

    product = CompanyProduct(company_id=company.id, name="PET Granulate", category="material", disposal_cost=Decimal("0.05"))
    db.session.add(product)
    db.session.commit()

    purchase_service.register_business_with_retailer(business_id=business.id, retailer_id=retailer.id)
    restock = purchase_service.record_retailer_company_purchase(
        retailer_id=retailer.id,
        company_id=company.id,
        quantity=5000,
        unit_price="0.02",
    )
    item = restock.inventory
    purchase_service.record_business_purchase(
        business_id=business.id,
        inventory_id=item.id,
        quantity=200,
        unit_price="0.02",
        plastic_grams=200,
    )
    sale = purchase_service.record_consumer_purchase(
        buyer_id=consumer.id,
        inventory_id=item.id,
        amount_paid="4.50",
        disposal_fee="0.25",
    )

    click.echo(f"PASS Seeded retailer {retailer.id}, company {company.id}, inventory item {item.id}.")
    for due in restock.dues + sale.dues:
        click.echo(f"  {due.tier} due {due.id}: {due.amount} due {due.due_date}")


@click.group('dues')
def dues_group():
    """Disposal due commands."""


@dues_group.command('sweep-overdue')
@click.option('--as-of', default=None, help='Cutoff date (YYYY-MM-DD); defaults to today (UTC)')
@click.option('--tier', type=click.Choice(TIERS), default=None, help='Limit to one tier')
@click.option('--owner-id', type=int, default=None, help='Limit to one owner (requires --tier)')
@with_appcontext
def sweep_overdue_cli(as_of, tier, owner_id):
    """
    Mark pending dues whose due date is before the cutoff overdue.

    Safe to run repeatedly; a second run for the same date changes nothing.
    """
    try:
        cutoff = parse_iso_date(as_of) if as_of else None
    except ValueError:
        raise click.BadParameter("must be YYYY-MM-DD", param_hint="--as-of")

    try:
        counts = sweeper_service.sweep_overdue(as_of=cutoff, tier=tier, owner_id=owner_id)
    except ValidationError as e:
        raise click.UsageError(str(e))

    total = sum(counts.values())
    click.echo(f"PASS Marked {total} dues overdue.")
    for t, count in counts.items():
        click.echo(f"  {t}: {count}")


@dues_group.command('settle')
@click.argument('tier', type=click.Choice(TIERS))
@click.argument('due_id', type=int)
@with_appcontext
def settle_cli(tier, due_id):
    """Settle one due and advance the cascade."""
    try:
        result = dues_service.settle(tier, due_id)
    except NotFoundError as e:
        raise click.ClickException(str(e))
    except dues_service.AlreadySettled as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS {tier} due {due_id} paid ({result.outcome}).")
    if result.next_due is not None:
        click.echo(f"  next: {result.next_due.tier} due {result.next_due.id} due {result.next_due.due_date}")


@dues_group.command('chain')
@click.argument('tier', type=click.Choice(TIERS))
@click.argument('due_id', type=int)
@with_appcontext
def chain_cli(tier, due_id):
    """Print the chain a due belongs to, root first."""
    try:
        chain = dues_service.get_due_chain(tier, due_id)
    except NotFoundError as e:
        raise click.ClickException(str(e))

    for due in chain:
        marker = "*" if (due.tier == tier and due.id == due_id) else " "
        click.echo(
            f"{marker} {due.tier:<9} #{due.id:<6} owner {due.owner_id:<6} "
            f"{due.amount:>10} {due.status:<8} due {due.due_date} ({due.source_type})"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(dues_group)
