"""
Storage layer for Cursor chat discovery.

Read-only access to Cursor's state.vscdb key-value databases, plus the
private snapshot database that persists processed results.
"""

from .connection import StoreConnection
from .decoding import decode_value, is_compressed_key, maybe_decode
from .query_cache import QueryCache
from .snapshot_storage import CURRENT_VERSION, SnapshotStorage
from .store_reader import StoreReader

__all__ = [
    "CURRENT_VERSION",
    "QueryCache",
    "SnapshotStorage",
    "StoreConnection",
    "StoreReader",
    "decode_value",
    "is_compressed_key",
    "maybe_decode",
]
