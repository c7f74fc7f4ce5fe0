# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/femenine/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Use: flask --app wsgi <group> <command> [options]
#
# System bootstrap/repair:
# - flask --app wsgi system init [--email admin@femenine.local] [--password ...]
#   Idempotent bootstrap: creates tables (if missing) and the first ADMIN user.
# - flask --app wsgi system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - flask --app wsgi users list
#   List all users with role and active status.
# - flask --app wsgi users create --email ana@femenine.local --name "Ana" --password "Password123!" --role EMPLOYEE
#   Create a user (prompts if options are omitted).
#
# Permission inspection:
# - flask --app wsgi perms list [--role MANAGER]
#   List permissions (optionally only those a role holds).
#
# Maintenance:
# - flask --app wsgi maintenance cleanup-sessions
#   Delete expired/revoked session tokens older than 30 days.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .permissions import PERMISSION_DEFINITIONS, Role, ROLE_PERMISSIONS
from .services.auth_service import create_user
from .services import session_service
from .validation import ValidationError, ConflictError

DEFAULT_ADMIN_EMAIL = "admin@femenine.local"
DEFAULT_ADMIN_PASSWORD = "Password123!"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--email', default=DEFAULT_ADMIN_EMAIL, help='Admin email')
@click.option('--name', default='Administrator', help='Admin display name')
@click.option('--password', default=DEFAULT_ADMIN_PASSWORD, help='Admin password')
@with_appcontext
def init_system(email, name, password):
    """
    Initialize FEMENINE: create missing tables and the first ADMIN user.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing FEMENINE...")

    db.create_all()
    click.echo("PASS Schema ready")

    if db.session.query(User).filter(User.role == Role.ADMIN).first():
        click.echo("WARN  An ADMIN user already exists, skipping...")
        return

    try:
        user = create_user(email=email, password=password, name=name, role=Role.ADMIN)
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created ADMIN user: {user.email}")
    if password == DEFAULT_ADMIN_PASSWORD:
        click.echo("\nSECURITY WARNING: default password in use, change it now!")


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
    click.echo("BUILD Creating tables...")
    db.create_all()
    click.echo("DONE Database reset. Run `flask system init` to create the admin user.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True)
@click.option('--name', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', type=click.Choice([r.value for r in Role], case_sensitive=False), default=Role.EMPLOYEE.value)
@with_appcontext
def create_user_command(email, name, password, role):
    """Create a user."""
    try:
        user = create_user(email=email, password=password, name=name, role=role)
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created user {user.email} (ID: {user.id}, role: {user.role.value})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their role."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Email':<35} {'Name':<20} {'Active':<8} {'Role'}")
    click.echo("="*80)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.email:<35} {user.name[:20]:<20} {active_str:<8} {user.role.value}")


@click.group('perms')
def perms_group():
    """Permission inspection commands."""


@perms_group.command('list')
@click.option('--role', type=click.Choice([r.value for r in Role], case_sensitive=False), help='Only permissions held by this role')
@with_appcontext
def list_permissions(role):
    """List permission definitions."""
    allowed = ROLE_PERMISSIONS[Role.parse(role)] if role else None

    for code, name, description, category in PERMISSION_DEFINITIONS:
        if allowed is not None and code not in allowed:
            continue
        click.echo(f"{category:<10} {code:<18} {name} - {description}")


@click.group('maintenance')
def maintenance_group():
    """Housekeeping commands."""


@maintenance_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions():
    """Delete expired/revoked session tokens older than 30 days."""
    deleted = session_service.cleanup_expired_sessions()
    click.echo(f"PASS Deleted {deleted} session(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(perms_group)
    app.cli.add_command(maintenance_group)
