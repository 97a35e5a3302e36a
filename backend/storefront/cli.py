# Overview: Flask CLI command groups for bootstrap, account administration and catalogue seeding.

# backend/storefront/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "storefront:create_app".
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Accounts:
# - python -m flask users create-admin --email admin@example.com --password "Password123" --first-name Site --last-name Admin
#   Create an admin account (prompts if options are omitted).
# - python -m flask users make-admin someone@example.com
#   Promote an existing account to admin.
# - python -m flask users list
#   List all accounts with role and active status.
#
# Catalogue:
# - python -m flask catalog seed-categories
#   Create the default category set (idempotent).

import click
from flask.cli import with_appcontext

from .errors import ApiError
from .extensions import db
from .models import Category, User, ROLE_ADMIN
from .services.auth_service import register_user

DEFAULT_CATEGORIES = [
    ("Skincare", "skincare", "Face and body skincare products"),
    ("Makeup", "makeup", "Cosmetic and makeup products"),
    ("Hair Care", "haircare", "Hair care and styling products"),
    ("Fragrance", "fragrance", "Perfumes and fragrances"),
    ("Tools", "tools", "Beauty tools and accessories"),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables (existing data is kept)."""
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

    click.echo("PASS Database reset complete. Run 'python -m flask users create-admin' next.")


# =============================================================================
# ACCOUNT COMMANDS
# =============================================================================

@click.group('users')
def users_group():
    """Account inspection and bootstrap commands."""


@users_group.command('create-admin')
@click.option('--email', prompt=True, help='Admin email')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Admin password')
@click.option('--first-name', default='Admin', show_default=True)
@click.option('--last-name', default='User', show_default=True)
@with_appcontext
def create_admin(email, password, first_name, last_name):
    """Create an admin account."""
    try:
        user = register_user(
            first_name=first_name,
            last_name=last_name,
            email=email,
            password=password,
            role=ROLE_ADMIN,
        )
    except ApiError as e:
        raise click.ClickException(f"{e.code}: {e.message}")

    click.echo(f"PASS Created admin: {user.email} (ID: {user.id})")


@users_group.command('make-admin')
@click.argument('email')
@with_appcontext
def make_admin(email):
    """Promote an existing account to admin."""
    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if not user:
        raise click.ClickException(f"No account with email {email}")

    if user.role == ROLE_ADMIN:
        click.echo(f"WARN {user.email} is already an admin")
        return

    user.role = ROLE_ADMIN
    db.session.commit()
    click.echo(f"PASS {user.email} is now an admin")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all accounts with role and active status."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Email':<35} {'Name':<25} {'Role':<8} {'Active'}")
    click.echo("="*80)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.email:<35} {user.full_name:<25} {user.role:<8} {active_str}")

    click.echo("="*80 + "\n")


# =============================================================================
# CATALOGUE COMMANDS
# =============================================================================

@click.group('catalog')
def catalog_group():
    """Catalogue seeding commands."""


@catalog_group.command('seed-categories')
@with_appcontext
def seed_categories():
    """Create the default categories; existing slugs are skipped."""
    created = 0
    for sort_order, (name, slug, description) in enumerate(DEFAULT_CATEGORIES):
        if db.session.query(Category).filter_by(slug=slug).first():
            click.echo(f"WARN  Category '{slug}' already exists, skipping...")
            continue
        db.session.add(Category(name=name, slug=slug, description=description, sort_order=sort_order))
        created += 1

    db.session.commit()
    click.echo(f"PASS Created {created} categories")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(catalog_group)
