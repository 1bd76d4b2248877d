"""
Shared fixtures: temporary Cursor workspace storage with state.vscdb files.
"""
import json
import os
import shutil
import sqlite3
import tempfile
from pathlib import Path

import pytest

# Padding row that pushes a database past the 10 KB scan threshold
PADDING = "x" * 12000


def write_state_db(path, rows, pad=True):
    """
    Create a state.vscdb with an ItemTable holding ``rows``.

    Non-string, non-bytes values are JSON-encoded before insertion.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    # Small pages keep unpadded databases under the scan threshold
    conn.execute("PRAGMA page_size = 1024")
    conn.execute(
        "CREATE TABLE IF NOT EXISTS ItemTable (key TEXT UNIQUE ON CONFLICT REPLACE, value BLOB)"
    )
    for key, value in rows.items():
        if not isinstance(value, (str, bytes)):
            value = json.dumps(value)
        conn.execute("INSERT INTO ItemTable (key, value) VALUES (?, ?)", (key, value))
    if pad:
        conn.execute(
            "INSERT INTO ItemTable (key, value) VALUES (?, ?)", ("zz.padding.blob", PADDING)
        )
    conn.commit()
    conn.close()
    return path


@pytest.fixture
def storage_root():
    """Temporary .../User/workspaceStorage directory."""
    base = tempfile.mkdtemp()
    root = Path(base) / "Cursor" / "User" / "workspaceStorage"
    root.mkdir(parents=True)
    yield root
    shutil.rmtree(base, ignore_errors=True)


@pytest.fixture
def add_workspace(storage_root):
    """Factory creating <storage_root>/<folder>/state.vscdb from a row dict."""

    def _add(folder, rows, pad=True):
        return write_state_db(storage_root / folder / "state.vscdb", rows, pad=pad)

    return _add


@pytest.fixture
def state_db():
    """Factory creating a standalone state.vscdb in a temp directory."""
    created = []

    def _make(rows, pad=False):
        fd, path = tempfile.mkstemp(suffix='.vscdb')
        os.close(fd)
        os.unlink(path)
        created.append(path)
        return str(write_state_db(path, rows, pad=pad))

    yield _make
    for path in created:
        for suffix in ['', '-wal', '-shm', '-journal']:
            try:
                os.unlink(path + suffix)
            except FileNotFoundError:
                pass
