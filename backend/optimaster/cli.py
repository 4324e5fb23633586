# Overview: Flask CLI command groups for bootstrap and user management.

# backend/optimaster/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--admin-email admin@optimaster.local]
#   Create all tables (if missing) and a default admin user. Idempotent.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system cleanup-sessions --retention-days 30
#   Delete expired/revoked session tokens older than the retention window.
#
# Users:
# - python -m flask users list
# - python -m flask users create --email a@b.c --name "Front Desk" --password "Password123!"

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .services.auth_service import create_user, PasswordValidationError
from .services.session_service import cleanup_expired_sessions


DEFAULT_ADMIN_EMAIL = "admin@optimaster.local"
DEFAULT_ADMIN_PASSWORD = "Password123!"


@click.group('system')
def system_group():
    """System bootstrap and maintenance."""


@system_group.command('init')
@click.option('--admin-email', default=DEFAULT_ADMIN_EMAIL, help='Email for the default admin')
@click.option('--admin-password', default=DEFAULT_ADMIN_PASSWORD, help='Password for the default admin')
@with_appcontext
def init_system(admin_email, admin_password):
    """Create tables and a default admin user (idempotent)."""
    click.echo("START Initializing OptiMaster backend...")
    db.create_all()
    click.echo("PASS Tables ready")

    existing = db.session.query(User).filter_by(email=admin_email.strip().lower()).first()
    if existing:
        click.echo(f"WARN  User '{admin_email}' already exists, skipping...")
        return

    try:
        user = create_user(admin_email, "Administrator", admin_password)
    except (PasswordValidationError, ValueError) as e:
        click.echo(f"FAIL Could not create admin user: {e}")
        raise SystemExit(1)

    click.echo(f"PASS Created user: {user.email} (ID: {user.id})")
    click.echo("\nDefault credentials (CHANGE IN PRODUCTION!):")
    click.echo(f"   {user.email} / {admin_password}")


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


@system_group.command('cleanup-sessions')
@click.option('--retention-days', default=30, type=int, help='Keep sessions newer than this')
@with_appcontext
def cleanup_sessions(retention_days):
    """Delete expired or revoked session tokens."""
    deleted = cleanup_expired_sessions(retention_days=retention_days)
    click.echo(f"PASS Deleted {deleted} session(s)")


@click.group('users')
def users_group():
    """User management."""


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = db.session.query(User).order_by(User.id).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 72)
    click.echo(f"{'ID':<5} {'Email':<35} {'Name':<22} {'Active'}")
    click.echo("=" * 72)
    for user in users:
        click.echo(f"{user.id:<5} {user.email:<35} {user.name:<22} {'yes' if user.is_active else 'no'}")
    click.echo("=" * 72 + "\n")


@users_group.command('create')
@click.option('--email', prompt=True, help='Login email')
@click.option('--name', prompt=True, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_user_cli(email, name, password):
    """Create a user."""
    try:
        user = create_user(email, name, password)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e}")
        raise SystemExit(1)
    except ValueError as e:
        click.echo(f"FAIL Failed to create user: {e}")
        raise SystemExit(1)
    click.echo(f"PASS Created user: {user.email} (ID: {user.id})")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
