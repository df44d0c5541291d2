# Overview: Flask CLI command groups for catalog inspection and admin credential tooling.

# backend/storefront/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Catalog:
# - python -m flask catalog check-connection
#   Report configured source and try one query against the remote catalog.
# - python -m flask catalog stats
#   Print catalog statistics from whichever source answers.
# - python -m flask catalog init-db --yes
#   DEV/TEST only: create catalog tables on the configured database.
#
# Admin users:
# - python -m flask users hash-password
#   Prompt for a password and print its bcrypt hash (strength rule applied).

import json

import click
from flask import current_app
from flask.cli import with_appcontext
from sqlalchemy.exc import SQLAlchemyError

from .extensions import db
from .services.auth_service import hash_password, PasswordValidationError
from .services.catalog_service import get_catalog


@click.group('catalog')
def catalog_group():
    """Catalog source inspection commands."""


@catalog_group.command('check-connection')
@with_appcontext
def check_connection():
    """Verify the remote catalog answers."""
    catalog = get_catalog()
    if catalog.remote is None:
        click.echo("Remote catalog not configured (need CATALOG_DATABASE_URL and a key); using static data.")
        return

    click.echo(f"Remote catalog configured (writable: {catalog.remote.writable})")
    try:
        count = catalog.remote.ping()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise click.ClickException(f"Remote catalog query failed: {e}")
    click.echo(f"OK: {count} product rows")


@catalog_group.command('stats')
@with_appcontext
def catalog_stats():
    """Print catalog statistics as JSON."""
    catalog = get_catalog()
    stats = catalog.get_product_stats()
    click.echo(json.dumps(stats, ensure_ascii=False, indent=2))
    click.echo(f"(served by: {catalog.health.last_served_by})")


@catalog_group.command('init-db')
@click.option('--yes', is_flag=True, help='Confirm table creation')
@with_appcontext
def init_db(yes):
    """DEV/TEST only: create catalog tables from the models."""
    catalog = get_catalog()
    if catalog.remote is None:
        raise click.ClickException("Remote catalog not configured")
    if not catalog.remote.writable:
        raise click.ClickException("Creating tables requires CATALOG_SERVICE_KEY")
    if not yes:
        click.echo("Refusing to create tables without --yes")
        return

    from . import models  # noqa: F401

    db.create_all()
    current_app.logger.info("Catalog tables created")
    click.echo("Catalog tables created")


@click.group('users')
def users_group():
    """Admin credential commands."""


@users_group.command('hash-password')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
def hash_password_cli(password):
    """Print a bcrypt hash for an admin password."""
    try:
        click.echo(hash_password(password))
    except PasswordValidationError as e:
        raise click.ClickException(str(e))


def register_commands(app):
    app.cli.add_command(catalog_group)
    app.cli.add_command(users_group)
