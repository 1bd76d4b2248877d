"""
Click-based command line interface.

Commands are defined in cli/commands/ and registered on the ``main`` group.
"""
from pathlib import Path
from typing import Optional

import click

from cursor_chat_manager.core.db.snapshot_storage import SnapshotStorage
from cursor_chat_manager.core.logging_config import setup_logging
from cursor_chat_manager.readers.workspace_reader import WorkspaceLocator
from cursor_chat_manager.services.aggregator import ChatAggregator


class CLIContext:
    """
    Shared state passed to every command through ``ctx.obj``.

    Attributes
    ----------
    verbose : bool
        Debug logging and tracebacks on errors
    snapshot_db : Path, optional
        Snapshot database path; None means the default location
    """

    def __init__(self, verbose: bool = False, snapshot_db: Optional[str] = None):
        self.verbose = verbose
        self.snapshot_db = Path(snapshot_db) if snapshot_db else None
        self._storage: Optional[SnapshotStorage] = None

    def get_snapshot_storage(self) -> SnapshotStorage:
        if self._storage is None:
            self._storage = SnapshotStorage(self.snapshot_db)
        return self._storage

    def create_aggregator(self, storage_path: Optional[str] = None) -> ChatAggregator:
        """
        Build an aggregator, optionally scanning a specific storage root.

        Parameters
        ----------
        storage_path : str, optional
            workspaceStorage directory to scan instead of the OS default
        """
        locator = WorkspaceLocator([Path(storage_path)]) if storage_path else WorkspaceLocator()
        return ChatAggregator(locator=locator, snapshot_storage=self.get_snapshot_storage())

    def close(self) -> None:
        if self._storage is not None:
            self._storage.close()
            self._storage = None


@click.group()
@click.option(
    '--verbose', '-v',
    is_flag=True,
    envvar='CURSOR_DEBUG',
    help='Enable debug logging (also CURSOR_DEBUG=1)'
)
@click.option(
    '--snapshot-db',
    type=click.Path(dir_okay=False),
    envvar='CURSOR_CHAT_MANAGER_DB',
    help='Path to the snapshot database (default: ~/.cursor-chat-manager/snapshots.db)'
)
@click.pass_context
def main(ctx, verbose, snapshot_db):
    """Recover Cursor chat history from workspace state databases."""
    setup_logging(debug=verbose)
    ctx.obj = CLIContext(verbose=verbose, snapshot_db=snapshot_db)
    ctx.call_on_close(ctx.obj.close)


from cursor_chat_manager.cli.commands.chats import scan, show  # noqa: E402
from cursor_chat_manager.cli.commands.database import info, keys, validate  # noqa: E402

main.add_command(scan)
main.add_command(show)
main.add_command(keys)
main.add_command(validate)
main.add_command(info)
