# Overview: Flask CLI command groups for bootstrap, user management, and certificate maintenance.

# backend/halalcert/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--seed-users]
#   Create all tables. --seed-users adds admin/inspector accounts with the default password.
#
# User inspection/bootstrap:
# - python -m flask users list [--role inspector]
# - python -m flask users create --username admin --email admin@halalcert.local --password "Password123!" --role admin
#
# Certificates:
# - python -m flask certificates expire
#   Administrative sweep: mark active certificates past their expiry date as expired.
# - python -m flask certificates list [--status active]

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .models.auth import ROLE_ADMIN, ROLE_INSPECTOR, VALID_ROLES
from .models.certificates import CERTIFICATE_STATUSES
from .services import certificate_service
from .services.auth_service import create_user, list_users, PasswordValidationError
from .time_utils import to_utc_z


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--seed-users', is_flag=True, help='Create default admin and inspector accounts')
@with_appcontext
def init_system(seed_users):
    """
    Create database tables (idempotent).

    With --seed-users, also creates:
    - admin / admin@halalcert.local (admin)
    - inspector / inspector@halalcert.local (inspector)
    All passwords default to: "Password123!"

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing halal certification system...")
    db.create_all()
    click.echo("PASS Tables created")

    if not seed_users:
        return

    default_password = "Password123!"
    default_users = [
        ("admin", "admin@halalcert.local", ROLE_ADMIN),
        ("inspector", "inspector@halalcert.local", ROLE_INSPECTOR),
    ]
    for username, email, role in default_users:
        if db.session.query(User).filter_by(username=username).first():
            click.echo(f"SKIP User '{username}' already exists")
            continue
        create_user(username, email, default_password, role)
        click.echo(f"PASS Created {role} user: {username} ({email})")

    click.echo(f"\nWARN Default password for seeded users: {default_password}")


# =============================================================================
# USER MANAGEMENT COMMANDS
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(sorted(VALID_ROLES)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(username, email, password, role):
    """
    Create a staff user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_user(username, email, password, role)
        click.echo(f"PASS Created user: {user.username} ({user.email}) with role '{role}' (ID: {user.id})")
        click.echo("SECURITY Password securely hashed with bcrypt")

    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
    except ValueError as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")


@users_group.command('list')
@click.option('--role', type=click.Choice(sorted(VALID_ROLES)), help='Filter by role')
@with_appcontext
def list_users_cli(role):
    """List staff users."""
    users = list_users(role)
    if not users:
        click.echo("No users found")
        return

    click.echo(f"\n{'ID':<5} {'Username':<20} {'Email':<35} {'Role':<10} {'Active':<6}")
    click.echo("-" * 80)
    for user in users:
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<35} {user.role:<10} {'yes' if user.is_active else 'no':<6}")


# =============================================================================
# CERTIFICATE MAINTENANCE COMMANDS
# =============================================================================

@click.group('certificates')
def certificates_group():
    """Certificate registry maintenance."""


@certificates_group.command('expire')
@with_appcontext
def expire_certificates_cli():
    """Mark active certificates whose expiry date has passed as expired."""
    expired = certificate_service.expire_overdue()
    for certificate in expired:
        click.echo(f"EXPIRED {certificate.certificate_number} (expired {to_utc_z(certificate.expires_at)})")
    click.echo(f"PASS {len(expired)} certificate(s) marked expired")


@certificates_group.command('list')
@click.option('--status', type=click.Choice(sorted(CERTIFICATE_STATUSES)), help='Filter by stored status')
@click.option('--limit', type=int, default=50, show_default=True)
@with_appcontext
def list_certificates_cli(status, limit):
    """List certificates, most recently issued first."""
    rows, total = certificate_service.list_certificates(status=status, limit=limit)
    if not rows:
        click.echo("No certificates found")
        return

    click.echo(f"\n{'Number':<16} {'Status':<8} {'Valid':<6} {'Expires':<22} Store")
    click.echo("-" * 80)
    for certificate in rows:
        click.echo(
            f"{certificate.certificate_number:<16} {certificate.status:<8} "
            f"{'yes' if certificate.is_valid() else 'no':<6} {to_utc_z(certificate.expires_at):<22} "
            f"{certificate.store.name}"
        )
    click.echo(f"\n{len(rows)} of {total} shown")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(certificates_group)
