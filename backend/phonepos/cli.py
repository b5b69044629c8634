# Overview: Flask CLI command groups for bootstrap and user inspection.

# backend/phonepos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and the bootstrap ADMIN from
#   BOOTSTRAP_ADMIN_NAME / BOOTSTRAP_ADMIN_PHONE / BOOTSTRAP_ADMIN_PASSWORD.
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with role and status.
# - python -m flask users create --name "Ko Aung" --phone 09412345678 --password secret1 --role SELLER
#   Create a user (prompts if options are omitted).

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .services.auth_service import create_user, ensure_admin
from .validation import ServiceError


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Create all tables and make sure an ADMIN account exists.

    SECURITY: Change the bootstrap password immediately in production!
    """
    click.echo("START Initializing PhonePOS...")

    db.create_all()
    click.echo("PASS Database tables ready")

    try:
        user, created = ensure_admin(
            name=current_app.config["BOOTSTRAP_ADMIN_NAME"],
            phone=current_app.config["BOOTSTRAP_ADMIN_PHONE"],
            password=current_app.config["BOOTSTRAP_ADMIN_PASSWORD"],
        )
    except ServiceError as e:
        raise click.ClickException(e.message)

    if created:
        click.echo(f"PASS Created admin user: {user.name} ({user.phone})")
    else:
        click.echo(f"WARN  User {user.phone} already exists, skipping...")

    click.echo("DONE System initialized")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--phone', prompt=True, help='Phone number (09...)')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(['ADMIN', 'SELLER'], case_sensitive=False), default='SELLER', prompt=True, help='Role')
@with_appcontext
def create_user_cli(name, phone, password, role):
    """Create a new user."""
    try:
        user = create_user(name=name, phone=phone, password=password, role=role)
    except ServiceError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created user: {user.name} ({user.phone}) with role '{user.role.value}'")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Name':<25} {'Phone':<15} {'Role':<8} {'Status':<10} {'Last login'}")
    click.echo("=" * 80)

    for user in users:
        last_login = user.last_login_at.strftime("%Y-%m-%d %H:%M") if user.last_login_at else "-"
        click.echo(
            f"{user.id:<5} {user.name:<25} {user.phone:<15} {user.role.value:<8} {user.status.value:<10} {last_login}"
        )

    click.echo("=" * 80)
    click.echo(f"Total: {len(users)} user(s)\n")


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
