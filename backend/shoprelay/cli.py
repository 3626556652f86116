# Overview: Flask CLI command groups for inspecting and maintaining the sync document.

# backend/shoprelay/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Store:
# - python -m flask store init
#   Create the sync_documents table and the empty document (dev only; use migrations in prod).
# - python -m flask store show
#   Print the document version and per-collection row counts.
# - python -m flask store reset --yes
#   Replace the document with empty collections (deletes all synced data).
#
# Shops:
# - python -m flask shops merge OLD_SHOP_ID NEW_SHOP_ID
#   Redirect all future resolution of OLD_SHOP_ID to NEW_SHOP_ID.
# - python -m flask shops resolve SHOP_ID
#   Print the canonical shop id.
#
# Tokens:
# - python -m flask tokens issue --shop-id abc123 --role device --device-id ANDROID-1
#   Print a bearer token for manual testing against the sync API.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import shop_identity_service, store_service, token_service
from .services.token_service import TokenError
from .validation import ConflictError, ValidationError


@click.group('store')
def store_group():
    """Sync document inspection and maintenance."""


@store_group.command('init')
@with_appcontext
def init_store():
    """Create tables and the empty sync document."""
    db.create_all()
    store = store_service.load_store()
    db.session.commit()
    click.echo(f"PASS Sync document {store.row.name!r} ready (version {store.version})")


@store_group.command('show')
@with_appcontext
def show_store():
    """Print version and collection counts."""
    store = store_service.load_store()
    click.echo(f"Document: {store.row.name}  version: {store.version}")
    for name, count in store.counts().items():
        click.echo(f"  {name:<16} {count}")


@store_group.command('reset')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_store(yes):
    """Replace the document with empty collections."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        raise SystemExit(1)
    store = store_service.reset_store()
    click.echo(f"PASS Sync document reset (version {store.version})")


@click.group('shops')
def shops_group():
    """Shop identity commands."""


@shops_group.command('merge')
@click.argument('from_shop_id')
@click.argument('to_shop_id')
@with_appcontext
def merge_shops(from_shop_id, to_shop_id):
    """Redirect FROM_SHOP_ID to TO_SHOP_ID."""
    try:
        alias = shop_identity_service.merge_shops(from_shop_id, to_shop_id)
    except (ValidationError, ConflictError) as exc:
        click.echo(f"FAIL {exc}")
        raise SystemExit(1)
    click.echo(f"PASS {alias['from']} -> {alias['to']} (canonical {alias['canonical']})")


@shops_group.command('resolve')
@click.argument('shop_id')
@with_appcontext
def resolve_shop(shop_id):
    """Print the canonical id for SHOP_ID."""
    click.echo(shop_identity_service.canonical_shop_id(shop_id))


@click.group('tokens')
def tokens_group():
    """Bearer token helpers."""


@tokens_group.command('issue')
@click.option('--shop-id', required=True, help='Shop id to embed')
@click.option('--role', default=token_service.ROLE_DEVICE, type=click.Choice(sorted(token_service.VALID_ROLES)))
@click.option('--device-id', default='', help='Device id to embed')
@with_appcontext
def issue_token(shop_id, role, device_id):
    """Print a signed bearer token."""
    try:
        click.echo(token_service.issue_token(shop_id, role, device_id))
    except TokenError as exc:
        click.echo(f"FAIL {exc}")
        raise SystemExit(1)


def register_commands(app):
    app.cli.add_command(store_group)
    app.cli.add_command(shops_group)
    app.cli.add_command(tokens_group)
