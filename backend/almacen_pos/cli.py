# Overview: Flask CLI command groups for bootstrap, user sync and store inspection.

# backend/almacen_pos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system init-db
#   Create missing tables (local SQLite only; the hosted schema is managed there).
#
# Users:
# - python -m flask users list
#   List profiles with their roles.
# - python -m flask users sync
#   Create missing profiles and default roles for every hosted auth user.
# - python -m flask users repair <user_id> --email a@b.c [--name "Ana"]
#   Create the profile and default role of one user if missing.
# - python -m flask users assign-role <user_id> sales --store <store_id> [--store <store_id>]
#   Replace the user's roles (one sales row per store).
#
# Stores:
# - python -m flask stores list
# - python -m flask stores create "Sucursal Centro" [--address "Av. 1"]

import click
from flask.cli import with_appcontext

from . import notifications
from .extensions import db
from .services import role_service, store_service, user_service, user_sync_service
from .services.user_sync_service import UserSyncError


def _echo_notifications():
    for item in notifications.drain():
        line = item["title"]
        if item["description"]:
            line += f": {item['description']}"
        click.echo(f"[{item['level']}] {line}", err=item["level"] == "error")


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("OK Tables created")


@click.group('users')
def users_group():
    """Profile and role commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    """List all profiles with their roles."""
    users = user_service.fetch_users_with_roles()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<38} {'Email':<30} {'Name':<20} {'Roles'}")
    click.echo("="*100)

    for user in users:
        role_names = []
        for role in user["roles"]:
            if role.get("almacen_nombre"):
                role_names.append(f"{role['role']}@{role['almacen_nombre']}")
            else:
                role_names.append(role["role"])
        click.echo(
            f"{user['id']:<38} {user['email']:<30} {(user['full_name'] or '-'):<20} "
            f"{', '.join(role_names) or '-'}"
        )

    click.echo("="*100 + "\n")


@users_group.command('sync')
@with_appcontext
def sync_users():
    """Create missing profiles and default roles for every auth user."""
    try:
        summary = user_sync_service.sync_all_users()
    except UserSyncError as exc:
        raise click.ClickException(str(exc))

    click.echo(f"OK {summary['message']}")
    for profile in summary["orphaned_profile_details"]:
        click.echo(f"WARN Profile without auth user: {profile['id']} ({profile['email']})")


@users_group.command('repair')
@click.argument('user_id')
@click.option('--email', required=True, help='Email of the auth user')
@click.option('--name', default=None, help='Display name')
@with_appcontext
def repair_user(user_id, email, name):
    """Create the profile and default role of one user if missing."""
    auth_user = {"id": user_id, "email": email, "user_metadata": {"full_name": name} if name else {}}
    ok = user_sync_service.repair_user_sync(user_id, auth_user)
    _echo_notifications()
    if not ok:
        raise click.ClickException("Repair failed")


@users_group.command('assign-role')
@click.argument('user_id')
@click.argument('role', type=click.Choice(["admin", "manager", "sales", "viewer"]))
@click.option('--store', 'stores', multiple=True, help='Store ID (repeat for several; sales only)')
@with_appcontext
def assign_role(user_id, role, stores):
    """Replace every role of a user."""
    ok = role_service.replace_roles(user_id, role, list(stores))
    _echo_notifications()
    if not ok:
        raise click.ClickException("Role assignment failed")


@click.group('stores')
def stores_group():
    """Store commands."""


@stores_group.command('list')
@with_appcontext
def list_stores():
    """List all stores."""
    stores = store_service.list_stores()

    if not stores:
        click.echo("No stores found.")
        return

    for store in stores:
        click.echo(f"{store.id:<38} {store.nombre:<30} {store.direccion or '-'}")


@stores_group.command('create')
@click.argument('name')
@click.option('--address', default=None, help='Street address')
@with_appcontext
def create_store_cli(name, address):
    """Create a store."""
    try:
        store = store_service.create_store(name, address)
    except store_service.StoreError as exc:
        raise click.ClickException(str(exc))
    click.echo(f"OK Store created: {store.nombre} (ID: {store.id})")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(stores_group)
