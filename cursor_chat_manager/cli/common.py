"""
Shared options and helpers for CLI commands.
"""
import traceback

import click

from cursor_chat_manager.core.db.store_reader import StoreReader
from cursor_chat_manager.core.errors import StoreUnavailable


storage_path_option = click.option(
    '--storage-path',
    type=click.Path(file_okay=False),
    envvar='CURSOR_STORAGE_PATH',
    help='Cursor workspaceStorage directory (default: detected for this OS)'
)

db_path_argument = click.argument(
    'db_path',
    type=click.Path(exists=True, dir_okay=False)
)


def fail(ctx, message: str, error: Exception) -> None:
    """Report an error, with a traceback in verbose mode, and abort."""
    click.secho(f"{message}: {error}", fg='red', err=True)
    if ctx.obj is not None and ctx.obj.verbose:
        click.echo(traceback.format_exc(), err=True)
    raise click.Abort()


def open_reader(ctx, db_path: str) -> StoreReader:
    """Open a single state.vscdb for inspection, aborting if it is unusable."""
    reader = StoreReader()
    try:
        reader.open(db_path)
    except StoreUnavailable as e:
        fail(ctx, "Cannot open database", e)
    return reader
