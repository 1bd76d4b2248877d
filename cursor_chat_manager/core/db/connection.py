"""
Read-only connection to a Cursor state.vscdb file.

Provides a StoreConnection class that opens the database through SQLite's
URI read-only mode, verifies the file really is a SQLite database, and
supports use as a context manager.
"""

import logging
import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from cursor_chat_manager.core.errors import QueryFailed, StoreUnavailable

logger = logging.getLogger(__name__)


class StoreConnection:
    """
    Read-only SQLite connection to one workspace database.

    Cursor may hold the file open while we read it; opening with
    mode=ro guarantees we never write to host-managed state.
    """

    def __init__(self, db_path: str):
        """
        Open the database.

        Parameters
        ----------
        db_path : str
            Path to a state.vscdb file

        Raises
        ------
        StoreUnavailable
            If the file does not exist or is not a SQLite database
        """
        self.db_path = str(db_path)
        self._conn: Optional[sqlite3.Connection] = None
        self._connect()

    def _connect(self) -> None:
        path = Path(self.db_path)
        if not path.is_file():
            raise StoreUnavailable(
                f"Database file does not exist: {self.db_path}", path=self.db_path
            )

        uri = f"{path.resolve().as_uri()}?mode=ro"
        try:
            conn = sqlite3.connect(uri, uri=True, check_same_thread=False)
        except sqlite3.Error as e:
            raise StoreUnavailable(
                f"Failed to connect to database: {e}", path=self.db_path
            ) from e

        conn.row_factory = sqlite3.Row
        try:
            # Forces SQLite to read the header; fails on non-database files
            conn.execute("SELECT name FROM sqlite_master LIMIT 1").fetchall()
        except sqlite3.Error as e:
            conn.close()
            raise StoreUnavailable(
                f"Not a valid SQLite database: {e}", path=self.db_path
            ) from e

        self._conn = conn
        logger.debug("Store connection established: %s", self.db_path)

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def execute(self, query: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        """
        Run a read query and return rows as dictionaries.

        Raises
        ------
        QueryFailed
            If the connection is closed or SQLite rejects the query
        """
        if self._conn is None:
            raise QueryFailed("Database not connected", query=query)
        try:
            cursor = self._conn.execute(query, tuple(params))
            return [dict(row) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise QueryFailed(f"Query failed: {e}", query=query) from e

    def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.debug("Store connection closed: %s", self.db_path)

    def __enter__(self) -> "StoreConnection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
