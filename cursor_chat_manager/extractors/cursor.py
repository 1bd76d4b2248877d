"""
Cursor workspace extractor.

Opens one workspace state database through the store reader, fetches the
decoded candidate rows, and attaches the workspace context each row needs
downstream (display name, workspace tag, database and folder paths).
"""

import logging
from typing import Any, Dict, List, Optional

from cursor_chat_manager.core.config import WORKSPACE_NAME_KEYS
from cursor_chat_manager.core.db.store_reader import StoreReader
from cursor_chat_manager.core.models import CandidateRecord
from cursor_chat_manager.core.utils import is_hash_name, name_from_file_uri
from cursor_chat_manager.readers.workspace_reader import WorkspaceDatabase
from cursor_chat_manager.transformers.builder import workspace_tag

logger = logging.getLogger(__name__)


class CursorWorkspaceExtractor:
    """
    Extractor for chat candidates in one workspace database at a time.

    Attributes
    ----------
    reader : StoreReader
        Store reader holding the open connection
    stats : Dict[str, int]
        Running totals: 'extracted', 'errors'

    Methods
    -------
    open(database)
        Make a workspace database current
    extract_workspace_real_name()
        Display name recorded in the open database, if any
    extract(database)
        Candidate records with workspace context
    close()
        Release the current connection
    """

    def __init__(self, reader: StoreReader):
        self.reader = reader
        self.stats: Dict[str, int] = {"extracted": 0, "errors": 0}

    def open(self, database: WorkspaceDatabase) -> None:
        """
        Open a workspace database.

        Raises
        ------
        StoreUnavailable
            If the database is missing or is not SQLite
        """
        self.reader.open(database.db_path)

    def close(self) -> None:
        self.reader.close()

    def extract_workspace_real_name(self) -> Optional[str]:
        """
        Probe well-known metadata keys for the workspace's display name.

        Keys are tried in priority order. ``file://`` URIs are reduced to
        their last path segment; names that are 32-hex-character hashes
        are rejected.

        Returns
        -------
        str or None
            Display name, or None if no key yields a usable name
        """
        for key in WORKSPACE_NAME_KEYS:
            value = self.reader.get_value(key)
            if not isinstance(value, str) or not value:
                continue
            if value.startswith("file://"):
                name = name_from_file_uri(value)
                if name:
                    logger.debug("Workspace name %r from %s", name, key)
                    return name
            elif not is_hash_name(value):
                logger.debug("Workspace name %r from %s", value, key)
                return value
        return None

    def extract(self, database: WorkspaceDatabase) -> List[CandidateRecord]:
        """
        Fetch candidate records from the open database.

        Parameters
        ----------
        database : WorkspaceDatabase
            The database opened by open()

        Returns
        -------
        List[CandidateRecord]
            Decoded rows that passed the structural pre-check, in store order
        """
        real_name = self.extract_workspace_real_name()
        rows = self.reader.find_candidate_records()

        records = []
        for row in rows:
            try:
                records.append(self._to_record(row, database, real_name))
                self.stats["extracted"] += 1
            except (KeyError, TypeError, ValueError) as e:
                self.stats["errors"] += 1
                logger.error("Error extracting %s from %s: %s", row.get("key"), database.db_path, e)

        logger.info(
            "Extracted %d candidate records from workspace %s (display name: %s)",
            len(records),
            database.workspace_id,
            real_name or "none",
        )
        return records

    def _to_record(
        self,
        row: Dict[str, Any],
        database: WorkspaceDatabase,
        real_name: Optional[str],
    ) -> CandidateRecord:
        return CandidateRecord(
            key=row["key"],
            value=row["value"],
            size=row.get("size", 0),
            workspace=workspace_tag(database.folder_path, row["value"]),
            workspace_real_name=real_name,
            database_path=database.db_path,
            folder_path=database.folder_path,
        )
