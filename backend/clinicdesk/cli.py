# Overview: Flask CLI command groups for bootstrap, tenant setup and seeding.

# backend/clinicdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Platform operators:
# - python -m flask platform create-operator --email ops@clinicdesk.local --name "Ops" --password "secret1"
#   Create a SUPER_ADMIN (no clinic).
#
# Clinic management (MULTI-TENANT):
# - python -m flask clinics list
#   List all clinics.
# - python -m flask clinics create --name "Acme Clinic" --slug acme --abbreviation ACM \
#       --admin-email admin@acme.test --admin-name "Admin" --admin-password "secret1"
#   Create a clinic and its ADMIN.
#
# Inventory:
# - python -m flask inventory seed --clinic acme --actor-email admin@acme.test
#   Load the default catalogue into an empty clinic inventory.

import click
from flask.cli import with_appcontext

from .constants import Role
from .extensions import db
from .models import User
from .services import clinic_service, inventory_service
from .services.auth_service import hash_password
from .services.tenant_service import get_clinic_by_slug
from .validation import ConflictError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables (idempotent)."""
    db.create_all()
    click.echo("PASS Database tables ready")


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

    click.echo("PASS Database reset")


@click.group('platform')
def platform_group():
    """Platform operator management."""


@platform_group.command('create-operator')
@click.option('--email', required=True)
@click.option('--name', required=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@with_appcontext
def create_operator(email, name, password):
    """Create a SUPER_ADMIN with no clinic."""
    email = email.strip().lower()
    existing = (
        db.session.query(User)
        .filter(User.email == email, User.clinic_id.is_(None))
        .first()
    )
    if existing:
        click.echo(f"FAIL Operator '{email}' already exists")
        return

    try:
        password_hash = hash_password(password)
    except ValidationError as e:
        click.echo(f"FAIL {e}")
        return

    user = User(
        clinic_id=None,
        name=name,
        email=email,
        password_hash=password_hash,
        role=Role.SUPER_ADMIN.value,
    )
    db.session.add(user)
    db.session.commit()
    click.echo(f"PASS Created operator {user.email} (ID: {user.id})")


@click.group('clinics')
def clinics_group():
    """Clinic (tenant) management commands."""


@clinics_group.command('list')
@with_appcontext
def list_clinics():
    """List all clinics."""
    clinics = clinic_service.list_clinics()

    if not clinics:
        click.echo("No clinics found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Slug':<20} {'Active':<8} {'Users':<7} {'Patients'}")
    click.echo("="*80)

    for c in clinics:
        active_str = "Yes" if c["is_active"] else "No"
        click.echo(
            f"{c['id']:<5} {c['name'][:30]:<30} {c['slug']:<20} {active_str:<8} "
            f"{c['counts']['users']:<7} {c['counts']['patients']}"
        )

    click.echo("="*80 + "\n")


@clinics_group.command('create')
@click.option('--name', required=True, help='Clinic name')
@click.option('--slug', required=True, help='Subdomain label (unique)')
@click.option('--abbreviation', required=True, help='Receipt prefix')
@click.option('--admin-email', required=True)
@click.option('--admin-name', required=True)
@click.option('--admin-password', prompt=True, hide_input=True, confirmation_prompt=True)
@with_appcontext
def create_clinic_cli(name, slug, abbreviation, admin_email, admin_name, admin_password):
    """Create a clinic (tenant) and its ADMIN user."""
    try:
        clinic, admin = clinic_service.create_clinic_with_admin({
            "name": name,
            "slug": slug,
            "abbreviation": abbreviation,
            "adminEmail": admin_email,
            "adminName": admin_name,
            "adminPassword": admin_password,
        })
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created clinic: {clinic.name} (ID: {clinic.id}, Slug: {clinic.slug})")
    click.echo(f"PASS Admin: {admin.email} (ID: {admin.id})")


@click.group('inventory')
def inventory_group():
    """Inventory maintenance."""


@inventory_group.command('seed')
@click.option('--clinic', 'clinic_slug', required=True, help='Clinic slug')
@click.option('--actor-email', required=True, help='Email of the clinic user recorded on the stock-in rows')
@with_appcontext
def seed_inventory(clinic_slug, actor_email):
    """Seed the default inventory catalogue for one clinic."""
    clinic = get_clinic_by_slug(clinic_slug)
    if clinic is None:
        click.echo(f"FAIL Clinic '{clinic_slug}' not found or inactive")
        return

    actor = (
        db.session.query(User)
        .filter_by(clinic_id=clinic.id, email=actor_email.strip().lower())
        .first()
    )
    if actor is None:
        click.echo(f"FAIL No user '{actor_email}' in clinic '{clinic.slug}'")
        return

    try:
        items = inventory_service.seed_default_items(clinic.id, actor_id=actor.id)
    except ConflictError as e:
        click.echo(f"FAIL {e}")
        return

    for item in items:
        click.echo(f"  + {item.name} ({item.quantity} {item.unit})")
    click.echo(f"PASS Seeded {len(items)} items for {clinic.name}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(platform_group)
    app.cli.add_command(clinics_group)
    app.cli.add_command(inventory_group)
