"""
Bounded result cache for the store reader.

Entries are keyed by (pattern, database path); the pattern is None for
the default candidate query. The cache evicts the oldest
entry once it grows past max_entries, and all entries for a path are
dropped whenever a new connection to that path is opened.
"""

import logging
from collections import OrderedDict
from typing import Any, List, Optional, Tuple

from cursor_chat_manager.core.config import QUERY_CACHE_MAX_ENTRIES

logger = logging.getLogger(__name__)

CacheKey = Tuple[Optional[str], str]


class QueryCache:
    """
    Insertion-ordered cache of candidate-record query results.

    Attributes
    ----------
    max_entries : int
        Entry count above which the oldest entry is evicted
    """

    def __init__(self, max_entries: int = QUERY_CACHE_MAX_ENTRIES):
        self.max_entries = max_entries
        self._entries: "OrderedDict[CacheKey, List[Any]]" = OrderedDict()

    def get(self, pattern: Optional[str], path: str) -> Optional[List[Any]]:
        return self._entries.get((pattern, path))

    def put(self, pattern: Optional[str], path: str, results: List[Any]) -> None:
        self._entries[(pattern, path)] = results
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Evicted cached query %s", evicted)

    def invalidate_path(self, path: str) -> int:
        """
        Drop every entry cached for one database path.

        Returns
        -------
        int
            Number of entries removed
        """
        stale = [key for key in self._entries if key[1] == path]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
