"""
Workspace locator for Cursor's per-workspace state databases.

Cursor keeps one state.vscdb per opened workspace under
<storage root>/workspaceStorage/<hash>/state.vscdb. This module finds the
storage root for the current OS and lists the databases worth scanning.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional

from pydantic import BaseModel

from cursor_chat_manager.core.config import (
    DB_FILE_NAME,
    MIN_DATABASE_SIZE_BYTES,
    get_cursor_workspace_storage_candidates,
)

logger = logging.getLogger(__name__)


class WorkspaceDatabase(BaseModel):
    """One workspace directory and its state database."""

    workspace_id: str
    folder_path: str
    db_path: str
    size: int


class WorkspaceLocator:
    """
    Enumerates workspace databases across known storage roots.

    Attributes
    ----------
    candidate_roots : List[Path]
        Ordered storage-root candidates; the first existing one is used
    min_db_size : int
        Databases at or below this many bytes are skipped

    Example
    -------
    >>> locator = WorkspaceLocator()
    >>> for db in locator.list_workspace_databases():
    ...     print(db.workspace_id, db.size)
    """

    def __init__(
        self,
        candidate_roots: Optional[Iterable[Path]] = None,
        min_db_size: int = MIN_DATABASE_SIZE_BYTES,
    ):
        if candidate_roots is None:
            candidate_roots = get_cursor_workspace_storage_candidates()
        self.candidate_roots = [Path(p) for p in candidate_roots]
        self.min_db_size = min_db_size

    def list_workspace_storage_roots(self) -> List[Path]:
        """
        Resolve the workspace storage root.

        Returns
        -------
        List[Path]
            The first existing candidate, or an empty list when Cursor's
            storage is not present
        """
        for candidate in self.candidate_roots:
            try:
                if candidate.is_dir():
                    logger.debug("Using workspace storage root: %s", candidate)
                    return [candidate]
            except OSError as e:
                logger.warning("Cannot access %s: %s", candidate, e)
        logger.info("No Cursor workspace storage found")
        return []

    def list_workspace_databases(self) -> List[WorkspaceDatabase]:
        """
        List workspace databases large enough to hold chat data.

        Filesystem errors are logged. An unreadable storage root or workspace
        folder is skipped and listing continues with the rest.

        Returns
        -------
        List[WorkspaceDatabase]
            Databases sorted by workspace directory name
        """
        databases: List[WorkspaceDatabase] = []
        skipped = 0
        for root in self.list_workspace_storage_roots():
            try:
                folders = sorted(root.iterdir())
            except OSError as e:
                logger.error("Error listing workspace storage %s: %s", root, e)
                continue

            for folder in folders:
                db_path = folder / DB_FILE_NAME
                try:
                    if not folder.is_dir() or not db_path.is_file():
                        continue
                    size = db_path.stat().st_size
                except OSError as e:
                    logger.warning("Skipping unreadable workspace folder %s: %s", folder, e)
                    continue
                if size <= self.min_db_size:
                    skipped += 1
                    logger.debug("Skipping small database (%d bytes): %s", size, db_path)
                    continue
                databases.append(
                    WorkspaceDatabase(
                        workspace_id=folder.name,
                        folder_path=str(folder),
                        db_path=str(db_path),
                        size=size,
                    )
                )

        logger.info(
            "Found %d workspace databases (%d skipped as too small)", len(databases), skipped
        )
        return databases
