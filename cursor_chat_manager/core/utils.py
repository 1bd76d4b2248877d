"""
Utility functions for chat processing.
"""
import re
import time
from datetime import datetime
from typing import Any, Optional
from urllib.parse import unquote

# Cursor names workspace folders by a 32-char MD5 hex digest
HASH_FOLDER_PATTERN = re.compile(r"^[a-f0-9]{32}$")
# Looser check used for workspace tags and UI-state names
WORKSPACE_HASH_PATTERN = re.compile(r"^[a-f0-9]{8,}$")
NUMERIC_KEY_PATTERN = re.compile(r"^\d+$")


def is_hash_name(name: str) -> bool:
    """
    Check whether a name is a 32-hex-character workspace hash.

    Parameters
    ----
    name : str
        Folder or display name

    Returns
    ----
    bool
        True if the name is a hash rather than a usable display name
    """
    return bool(name) and bool(HASH_FOLDER_PATTERN.match(name))


def is_hash_like(name: str) -> bool:
    """True for names made only of 8 or more lowercase hex characters."""
    return bool(name) and bool(WORKSPACE_HASH_PATTERN.match(name))


def project_id_for_name(name: str) -> str:
    """
    Derive the deterministic project id for a resolved project name.

    Parameters
    ----
    name : str
        Resolved project name

    Returns
    ----
    str
        "original-" followed by the lowercased name with whitespace runs
        replaced by hyphens
    """
    return "original-" + re.sub(r"\s+", "-", name).lower()


def now_millis() -> float:
    """Current wall-clock time in epoch milliseconds."""
    return time.time() * 1000


def millis_to_datetime(value: Any) -> datetime:
    """
    Convert an epoch-milliseconds value to a datetime.

    Falls back to the current time when the value is missing or out of range.
    """
    try:
        return datetime.fromtimestamp(float(value) / 1000)
    except (TypeError, ValueError, OverflowError, OSError):
        return datetime.now()


def format_chat_timestamp(moment: datetime) -> str:
    """Format a chat time for generated titles, e.g. 01/31/2024, 02:05:09 PM."""
    return moment.strftime("%m/%d/%Y, %I:%M:%S %p")


def name_from_file_uri(uri: str) -> Optional[str]:
    """
    Extract the trailing path segment of a file:// URI.

    Handles percent-encoding and Windows drive prefixes (/C:/...). Returns
    None when the segment is empty or is itself a workspace hash.
    """
    path = unquote(uri[len("file://"):])
    path = re.sub(r"^/([a-zA-Z]):", r"\1:", path)
    name = re.split(r"[/\\]", path)[-1]
    if name and not is_hash_name(name):
        return name
    return None


def as_number(value: Any) -> Optional[float]:
    """
    Coerce a JSON scalar to float.

    Returns None for booleans, non-numeric strings and other types.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None
