"""
Snapshot storage for processed chat results.

Provides a SnapshotStorage class that manages a private SQLite database
(snapshots.db) holding the most recent processed Projects and Chats, so a
later run can show results without rescanning Cursor's workspace databases.

Design Patterns
---------------
Versioned key/value store. Every value is wrapped in an envelope
{version, data, timestamp}; envelopes written by older versions are
migrated when read.

Technical Decisions
-------------------
Failures are logged and reported through return values (False / default),
never raised, so persistence problems cannot abort a scan. A database that
cannot be opened is retried on the next call.
"""

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional

from pydantic import BaseModel, ValidationError

from cursor_chat_manager.core.config import get_default_snapshot_db_path

logger = logging.getLogger(__name__)

CURRENT_VERSION = "1.0.0"

SNAPSHOT_SCHEMA = """
CREATE TABLE IF NOT EXISTS snapshots (
    key TEXT PRIMARY KEY,
    envelope TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


class SnapshotEnvelope(BaseModel):
    """Stored wrapper around one snapshot value."""

    version: str
    data: Any = None
    timestamp: str


class SnapshotStorage:
    """
    Versioned key/value persistence for processed results.

    Attributes
    ----------
    db_path : Path
        Path to the snapshots.db file

    Methods
    -------
    save_data(key, value)
        Store a value under a key, replacing any previous value
    get_data(key, default)
        Stored value, or default when absent or unreadable
    remove_data(key)
        Delete a key
    get_all_keys()
        Keys holding a valid envelope

    Example
    -------
    >>> with SnapshotStorage() as storage:
    ...     storage.save_data("projects", [p.serialize() for p in projects])
    ...     saved = storage.get_data("projects", [])
    """

    def __init__(self, db_path: Optional[Path] = None):
        """
        Initialize snapshot storage.

        Parameters
        ----------
        db_path : Path, optional
            Path to the snapshot database. If None, uses
            ~/.cursor-chat-manager/snapshots.db
        """
        if db_path is None:
            db_path = get_default_snapshot_db_path()

        self.db_path = Path(db_path)
        self._conn: Optional[sqlite3.Connection] = None
        try:
            self._open()
        except (OSError, sqlite3.Error) as e:
            logger.error("Cannot open snapshot storage %s: %s", self.db_path, e)

    def _open(self) -> None:
        conn = self._connect()
        try:
            self._ensure_schema(conn)
        except sqlite3.Error:
            conn.close()
            raise
        self._conn = conn

    def _connect(self) -> sqlite3.Connection:
        """Establish database connection with WAL mode."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        try:
            cursor = conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.fetchone()
        except sqlite3.Error:
            conn.close()
            raise

        logger.debug("Snapshot storage connection established: %s", self.db_path)
        return conn

    def _ensure_schema(self, conn: sqlite3.Connection) -> None:
        cursor = conn.cursor()
        cursor.executescript(SNAPSHOT_SCHEMA)
        conn.commit()
        logger.debug("Snapshot storage schema ensured")

    @property
    def connection(self) -> sqlite3.Connection:
        """Get the underlying SQLite connection, reopening it when closed or never opened."""
        if self._conn is None:
            self._open()
        return self._conn

    def save_data(self, key: str, value: Any) -> bool:
        """
        Store a value under a key.

        Parameters
        ----------
        key : str
            Snapshot key, e.g. 'projects' or 'chats'
        value : Any
            JSON-serializable value

        Returns
        -------
        bool
            True on success, False if the value could not be stored
        """
        now = datetime.now(timezone.utc).isoformat()
        envelope = SnapshotEnvelope(version=CURRENT_VERSION, data=value, timestamp=now)
        try:
            payload = json.dumps(envelope.model_dump(), default=str)
            self.connection.execute(
                """
                INSERT INTO snapshots (key, envelope, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    envelope = excluded.envelope,
                    updated_at = excluded.updated_at
                """,
                (key, payload, now),
            )
            self.connection.commit()
        except (sqlite3.Error, OSError, TypeError, ValueError) as e:
            logger.error("Error saving data for key %s: %s", key, e)
            return False

        logger.debug("Saved snapshot %s (%d bytes)", key, len(payload))
        return True

    def get_data(self, key: str, default: Any = None) -> Any:
        """
        Fetch the value stored under a key.

        Returns
        -------
        Any
            Stored value, or default when the key is absent or its envelope
            cannot be read
        """
        try:
            row = self.connection.execute(
                "SELECT envelope FROM snapshots WHERE key = ?", (key,)
            ).fetchone()
        except (sqlite3.Error, OSError) as e:
            logger.error("Error retrieving data for key %s: %s", key, e)
            return default

        if row is None:
            return default

        try:
            envelope = SnapshotEnvelope.model_validate(json.loads(row["envelope"]))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.error("Corrupt snapshot envelope for key %s: %s", key, e)
            return default

        return self._migrate_if_needed(key, envelope).data

    def _migrate_if_needed(self, key: str, envelope: SnapshotEnvelope) -> SnapshotEnvelope:
        if envelope.version == CURRENT_VERSION:
            return envelope
        logger.info(
            "Migrating snapshot %s from version %s to %s",
            key,
            envelope.version,
            CURRENT_VERSION,
        )
        return envelope.model_copy(update={"version": CURRENT_VERSION})

    def remove_data(self, key: str) -> bool:
        """Delete a key. Removing an absent key succeeds."""
        try:
            self.connection.execute("DELETE FROM snapshots WHERE key = ?", (key,))
            self.connection.commit()
        except (sqlite3.Error, OSError) as e:
            logger.error("Error removing data for key %s: %s", key, e)
            return False
        return True

    def get_all_keys(self) -> List[str]:
        """Keys whose stored value is a well-formed envelope."""
        try:
            rows = self.connection.execute(
                "SELECT key, envelope FROM snapshots ORDER BY key"
            ).fetchall()
        except (sqlite3.Error, OSError) as e:
            logger.error("Error getting keys: %s", e)
            return []

        keys = []
        for row in rows:
            try:
                data = json.loads(row["envelope"])
            except json.JSONDecodeError:
                continue
            if isinstance(data, dict) and "version" in data:
                keys.append(row["key"])
        return keys

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
            logger.debug("Snapshot storage connection closed")

    def __enter__(self) -> "SnapshotStorage":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
