# Overview: Flask CLI command groups for bootstrap and user inspection.

# backend/lumberpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init
#   Idempotent bootstrap: creates tables, the admin user, default categories
#   and sample products with initial stock.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --username ana --email ana@lumberyard.local --role seller

from decimal import Decimal

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Category, Product, User
from .models.users import USER_ROLES

DEFAULT_CATEGORIES = [
    ("Sawn Timber", "Boards, beams and battens"),
    ("Plywood", "Plywood sheets"),
    ("MDF/Particleboard", "Wood fibre panels"),
    ("Treated Timber", "Pressure-treated lumber"),
    ("Hardware", "Screws, nails and fittings"),
    ("Tools", "Carpentry tools"),
]

# (name, description, category name, unit, price, cost, dimensions)
SAMPLE_PRODUCTS = [
    ("Pine Board 2.5x20x300cm", "Construction pine board", "Sawn Timber", "metre", "25.90", "18.50", "2.5 x 20 x 300"),
    ("Eucalyptus Beam 5x10x400cm", "Structural eucalyptus beam", "Sawn Timber", "piece", "89.90", "65.00", "5 x 10 x 400"),
    ("Marine Plywood 18mm", "Marine plywood sheet 220x110cm", "Plywood", "m2", "145.00", "98.00", "220 x 110 x 1.8"),
    ("Raw MDF 15mm", "Raw MDF sheet 275x185cm", "MDF/Particleboard", "m2", "78.50", "52.00", "275 x 185 x 1.5"),
    ("Cumaru Decking", "Decking board 2.5x9x300cm", "Treated Timber", "metre", "45.90", "32.00", "2.5 x 9 x 300"),
]

SAMPLE_STOCK = Decimal("100")


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create tables and seed default data (safe to run repeatedly)."""
    from .services import inventory_service, products_service

    click.echo("START Initializing lumber yard POS...")
    db.create_all()

    if not db.session.query(User).filter_by(role="admin").first():
        db.session.add(User(username="admin", email="admin@lumberyard.local", role="admin"))
        db.session.commit()
        click.echo("PASS Created admin user")
    else:
        click.echo("WARN  Admin user already exists, skipping...")

    if db.session.query(Category).count() == 0:
        for name, description in DEFAULT_CATEGORIES:
            db.session.add(Category(name=name, description=description))
        db.session.commit()
        click.echo(f"PASS Created {len(DEFAULT_CATEGORIES)} categories")

    if db.session.query(Product).count() == 0:
        categories = {c.name: c.id for c in db.session.query(Category).all()}
        for name, description, category, unit, price, cost, dimensions in SAMPLE_PRODUCTS:
            created = products_service.create_product(patch={
                "name": name,
                "description": description,
                "category_id": categories.get(category),
                "unit": unit,
                "price": Decimal(price),
                "cost": Decimal(cost),
                "dimensions": dimensions,
            })
            inventory_service.set_stock_levels(
                created["id"],
                {"min_stock": Decimal("10"), "max_stock": Decimal("1000")},
            )
            inventory_service.add_stock(created["id"], SAMPLE_STOCK, "Initial stock")
        click.echo(f"PASS Created {len(SAMPLE_PRODUCTS)} sample products with {SAMPLE_STOCK} units each")

    click.echo("DONE System initialized")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm dropping all data')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        raise SystemExit(1)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('users')
def users_group():
    """User inspection and bootstrap."""


@users_group.command('list')
@with_appcontext
def list_users():
    users = db.session.query(User).order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<30} {'Role':<8} {'Active'}")
    for user in users:
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<30} {user.role:<8} {'yes' if user.is_active else 'no'}")


@users_group.command('create')
@click.option('--username', prompt=True, help='Login name (unique)')
@click.option('--email', prompt=True, help='Email (unique)')
@click.option('--role', type=click.Choice(USER_ROLES), default='seller', show_default=True)
@with_appcontext
def create_user(username, email, role):
    existing = db.session.query(User).filter(
        (User.username == username) | (User.email == email)
    ).first()
    if existing:
        click.echo(f"FAIL User or email already exists (ID: {existing.id})")
        raise SystemExit(1)

    user = User(username=username, email=email, role=role)
    db.session.add(user)
    db.session.commit()
    click.echo(f"PASS Created user: {user.username} ({user.email}) with role '{user.role}'")
