"""
Store reader for Cursor's ItemTable key-value databases.

The only component that touches the SQLite engine. Keeps a pool of
read-only connections keyed by path, runs targeted and bulk lookups,
decodes stored values, and caches candidate-record results.

Design Patterns
---------------
Connection pool plus an owned QueryCache. A path's cached results are
invalidated exactly when a new connection to that path is opened;
close_all() is the only bulk invalidation entry point.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from cursor_chat_manager.core.config import CURSOR_CHAT_KEYS, ITEM_TABLE
from cursor_chat_manager.core.db.connection import StoreConnection
from cursor_chat_manager.core.db.decoding import decode_value
from cursor_chat_manager.core.db.query_cache import QueryCache
from cursor_chat_manager.core.errors import DecodeFailed, QueryFailed, StoreUnavailable
from cursor_chat_manager.transformers.classifier import is_valid_chat_data

logger = logging.getLogger(__name__)


def escape_like(text: str) -> str:
    """Escape LIKE wildcards so text matches literally with ESCAPE '\\'."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class StoreReader:
    """
    Reads and decodes chat candidates from workspace state databases.

    Attributes
    ----------
    record_filter : Callable[[Any], bool]
        Structural pre-check applied to every decoded candidate value
    cache : QueryCache
        Bounded cache of find_candidate_records results

    Methods
    -------
    open(path)
        Open (or reuse) a read-only connection and make it current
    query(sql, params)
        Run a read query on the current connection
    find_candidate_records(extra_pattern)
        Decoded rows under known chat keys that pass the pre-check
    close()
        Close the current connection
    close_all()
        Close every pooled connection and clear the cache

    Example
    -------
    >>> with StoreReader() as reader:
    ...     reader.open("/path/to/state.vscdb")
    ...     records = reader.find_candidate_records()
    """

    def __init__(
        self,
        record_filter: Optional[Callable[[Any], bool]] = None,
        cache: Optional[QueryCache] = None,
    ):
        self.record_filter = record_filter or is_valid_chat_data
        self.cache = cache if cache is not None else QueryCache()
        self._pool: Dict[str, StoreConnection] = {}
        self._current: Optional[StoreConnection] = None
        self._current_path: str = ""

    @property
    def current_path(self) -> str:
        return self._current_path

    def open(self, path: str) -> None:
        """
        Make a database current, reusing a pooled handle when one exists.

        Parameters
        ----------
        path : str
            Path to a state.vscdb file

        Raises
        ------
        StoreUnavailable
            If the file is missing or is not a SQLite database
        """
        path = str(path)
        pooled = self._pool.get(path)
        if pooled is not None and pooled.is_open:
            self._current = pooled
            self._current_path = path
            logger.debug("Reusing existing connection to: %s", path)
            return

        connection = StoreConnection(path)
        self._pool[path] = connection
        self._current = connection
        self._current_path = path

        dropped = self.cache.invalidate_path(path)
        if dropped:
            logger.debug("Invalidated %d cached queries for %s", dropped, path)
        logger.info("Opened database connection to: %s", path)

    def query(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        """
        Execute a read query on the current database.

        Raises
        ------
        QueryFailed
            If no database is open or the query is malformed
        """
        if self._current is None:
            raise QueryFailed("Database not connected", query=sql)
        logger.debug("Executing query: %.100s", sql)
        rows = self._current.execute(sql, params)
        logger.debug("Query returned %d rows", len(rows))
        return rows

    def find_candidate_records(self, extra_pattern: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Fetch decoded rows stored under known chat keys.

        Rows are selected when the key starts with one of CURSOR_CHAT_KEYS or
        contains extra_pattern. Rows that fail decoding or the structural
        pre-check are dropped silently.

        Parameters
        ----------
        extra_pattern : str, optional
            Additional substring to match anywhere in the key; ``%`` and
            ``_`` match literally

        Returns
        -------
        List[Dict[str, Any]]
            Records with keys 'key', 'value' (decoded) and 'size' (raw length)
        """
        if self._current is None:
            logger.warning("find_candidate_records called with no open database")
            return []

        cache_pattern = extra_pattern or None
        cached = self.cache.get(cache_pattern, self._current_path)
        if cached is not None:
            return cached

        params = [f"{key}%" for key in CURSOR_CHAT_KEYS]
        clauses = ["key LIKE ?"] * len(params)
        if extra_pattern:
            params.append(f"%{escape_like(extra_pattern)}%")
            clauses.append("key LIKE ? ESCAPE '\\'")
        where = " OR ".join(clauses)
        sql = f"SELECT key, value FROM {ITEM_TABLE} WHERE {where}"

        try:
            rows = self.query(sql, params)
        except QueryFailed as e:
            logger.warning("Candidate query failed on %s: %s", self._current_path, e)
            return []

        results = []
        for row in rows:
            key = row["key"]
            raw = row["value"]
            if raw is None:
                continue
            try:
                value = decode_value(raw, key)
            except DecodeFailed as e:
                logger.debug("Dropping undecodable row %s: %s", key, e)
                continue
            if not self.record_filter(value):
                logger.debug("Dropping non-chat row %s", key)
                continue
            results.append({"key": key, "value": value, "size": len(raw)})

        self.cache.put(cache_pattern, self._current_path, results)
        logger.debug(
            "Found %d candidate records (of %d rows) in %s",
            len(results),
            len(rows),
            self._current_path,
        )
        return results

    def get_value(self, key: str) -> Any:
        """
        Fetch and decode one ItemTable value.

        Returns
        -------
        Any
            Decoded value, the raw text when it is not JSON, or None if the
            key is absent or the query fails
        """
        try:
            rows = self.query(f"SELECT value FROM {ITEM_TABLE} WHERE key = ?", (key,))
        except QueryFailed as e:
            logger.debug("Lookup of %s failed: %s", key, e)
            return None
        if not rows or rows[0]["value"] is None:
            return None

        raw = rows[0]["value"]
        try:
            return decode_value(raw, key)
        except DecodeFailed:
            # Plain strings such as file:// URIs are stored unquoted
            if isinstance(raw, bytes):
                return raw.decode("utf-8", errors="replace")
            return raw

    def get_all_keys(self) -> List[str]:
        """Distinct ItemTable keys of the current database, sorted."""
        try:
            rows = self.query(f"SELECT DISTINCT key FROM {ITEM_TABLE} ORDER BY key")
        except QueryFailed as e:
            logger.error("Failed to get keys: %s", e)
            return []
        return [row["key"] for row in rows]

    def close(self) -> None:
        """Close the current connection; no-op when nothing is open."""
        if self._current is None:
            logger.debug("No active connection to close")
            return
        try:
            self._current.close()
            logger.info("Closed database connection to %s", self._current_path)
        finally:
            self._pool.pop(self._current_path, None)
            self._current = None
            self._current_path = ""

    def close_all(self) -> None:
        """Close every pooled connection and clear all cached results."""
        logger.info("Closing %d database connections", len(self._pool))
        for path, connection in self._pool.items():
            try:
                connection.close()
            except Exception as e:
                logger.error("Error closing connection to %s: %s", path, e)
        self._pool.clear()
        self.cache.clear()
        self._current = None
        self._current_path = ""

    def get_database_info(self) -> Dict[str, Any]:
        return {
            "path": self._current_path or "Not connected",
            "is_connected": self._current is not None,
            "pool_size": len(self._pool),
            "cache_size": len(self.cache),
            "mode": "read-only",
        }

    def __enter__(self) -> "StoreReader":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close_all()


__all__ = ["StoreReader", "StoreUnavailable", "QueryFailed"]
