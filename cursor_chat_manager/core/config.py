"""
Configuration for Cursor chat discovery.

Holds storage locations, key allow-lists, and the empirically tuned
thresholds used by the classifier, store reader, and workspace locator.
The thresholds were tuned against real state.vscdb samples and may need
retuning as Cursor's storage evolves.
"""

import os
from pathlib import Path
from typing import List, Optional

# Database layout
DB_FILE_NAME = "state.vscdb"
ITEM_TABLE = "ItemTable"

# Databases at or below this size predate any chat activity
MIN_DATABASE_SIZE_BYTES = 10_000

# Minimum JSON length for a structurally chat-like object; excludes stubs
MIN_CHAT_JSON_LENGTH = 120

# Bare JSON strings shorter than this are UI state, not message content
MIN_BARE_STRING_LENGTH = 150

# Bound on the store reader's query cache
QUERY_CACHE_MAX_ENTRIES = 100

# Historical key prefixes under which Cursor stored chat data
CURSOR_CHAT_KEYS = (
    "workbench.panel.aichat.view.aichat.chatdata",
    "workbench.panel.aichat.view.aichat.chatData",
    "aiService.prompts",
    "cursorChat.conversations",
    "cursor.chatHistory",
    "composer.sessions",
    "aichat.messages",
)

# Metadata keys probed (in priority order) for a workspace display name
WORKSPACE_NAME_KEYS = (
    "workspace.rootUri",
    "workbench.workspace.folder",
    "workspace.name",
    "workspace.displayName",
)

# Prefix of keys holding rich (assistant-inclusive) chat data
RICH_CHAT_KEY_PREFIX = "workbench.panel.aichat"
PROMPTS_ONLY_KEY = "aiService.prompts"

# Directory names that carry no project meaning when walking up from a
# hashed workspace folder
NON_INFORMATIVE_FOLDER_NAMES = frozenset(
    {"Cursor", "User", "Code", "AppData", "Application Support", "workspaceStorage"}
)

DEFAULT_PROJECT_NAME = "Unknown Project"


def get_cursor_workspace_storage_candidates() -> List[Path]:
    """
    Ordered candidate locations of Cursor's workspaceStorage directory.

    Returns
    -------
    List[Path]
        Windows roaming paths first, then macOS, then Linux.
    """
    home = Path.home()
    candidates = []

    appdata = os.environ.get("APPDATA")
    if appdata:
        candidates.append(Path(appdata) / "Cursor" / "User" / "workspaceStorage")

    candidates.extend(
        [
            home / "AppData" / "Roaming" / "Cursor" / "User" / "workspaceStorage",
            home / "Library" / "Application Support" / "Cursor" / "User" / "workspaceStorage",
            home / ".config" / "Cursor" / "User" / "workspaceStorage",
        ]
    )
    return candidates


def get_cursor_workspace_storage_path() -> Optional[Path]:
    """
    First existing workspaceStorage directory, or None if Cursor is absent.
    """
    for candidate in get_cursor_workspace_storage_candidates():
        if candidate.exists():
            return candidate
    return None


def get_default_snapshot_db_path() -> Path:
    """
    Default location of the processed-results snapshot database.

    Returns
    -------
    Path
        ~/.cursor-chat-manager/snapshots.db
    """
    return Path.home() / ".cursor-chat-manager" / "snapshots.db"
