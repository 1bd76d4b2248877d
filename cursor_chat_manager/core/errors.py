"""
Error types raised by the store layer.

Record-level rejections (classification misses, empty normalizations) are
ordinary return values, not exceptions.
"""

from typing import Optional


class ChatManagerError(Exception):
    """Base class for cursor_chat_manager errors."""


class StoreUnavailable(ChatManagerError):
    """Database file is missing or cannot be opened as SQLite."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class QueryFailed(ChatManagerError):
    """Query was malformed or issued against a closed handle."""

    def __init__(self, message: str, query: Optional[str] = None):
        super().__init__(message)
        self.query = query


class DecodeFailed(ChatManagerError):
    """Stored value is not JSON or its transport encoding is corrupt."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key
