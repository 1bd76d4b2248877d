"""
Database inspection CLI commands (keys, validate, info).

Look inside a single state.vscdb and report on the Cursor installation.
"""
import json
import sys

import click

from cursor_chat_manager.cli.common import db_path_argument, open_reader
from cursor_chat_manager.core.config import (
    get_cursor_workspace_storage_candidates,
    get_cursor_workspace_storage_path,
)
from cursor_chat_manager.core.db.decoding import is_compressed_key
from cursor_chat_manager.readers.workspace_reader import WorkspaceLocator
from cursor_chat_manager.transformers.classifier import validation_details


@click.command()
@db_path_argument
@click.option(
    '--pattern',
    help='List candidate chat keys, also matching keys that contain PATTERN'
)
@click.pass_context
def keys(ctx, db_path, pattern):
    """List the keys stored in one state.vscdb."""
    reader = open_reader(ctx, db_path)
    try:
        if pattern:
            found = [record["key"] for record in reader.find_candidate_records(pattern)]
        else:
            found = reader.get_all_keys()
    finally:
        reader.close_all()

    for key in found:
        suffix = " (compressed)" if is_compressed_key(key) else ""
        click.echo(f"{key}{suffix}")
    click.echo(f"\n{len(found)} keys", err=True)


@click.command()
@db_path_argument
@click.argument('key')
@click.pass_context
def validate(ctx, db_path, key):
    """Explain how the value stored under KEY is classified."""
    reader = open_reader(ctx, db_path)
    try:
        value = reader.get_value(key)
    finally:
        reader.close_all()

    if value is None:
        click.secho(f"Key not found: {key}", fg='red', err=True)
        raise click.Abort()

    details = validation_details(value, key)
    click.echo(json.dumps(details, indent=2, default=str))


@click.command()
@click.pass_context
def info(ctx):
    """Show Cursor storage locations and database counts."""
    click.echo("Workspace storage candidates:")
    for candidate in get_cursor_workspace_storage_candidates():
        marker = "found" if candidate.exists() else "missing"
        click.echo(f"  [{marker}] {candidate}")

    storage_path = get_cursor_workspace_storage_path()
    click.echo(f"\nCursor chat path: {storage_path}")
    click.echo(f"Python: {sys.version}")
    click.echo(f"Platform: {sys.platform}")

    if storage_path is not None:
        databases = WorkspaceLocator([storage_path]).list_workspace_databases()
        total_size = sum(db.size for db in databases)
        click.echo(f"\nWorkspace databases: {len(databases)}")
        click.echo(f"  Size: {total_size / 1024:.1f} KB")

    storage = ctx.obj.get_snapshot_storage()
    click.echo(f"\nSnapshot database: {storage.db_path}")
    saved_keys = storage.get_all_keys()
    click.echo(f"  Saved keys: {', '.join(saved_keys) if saved_keys else 'none'}")
