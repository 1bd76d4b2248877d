"""
Readers for locating Cursor's internal storage.
"""

from .workspace_reader import WorkspaceDatabase, WorkspaceLocator

__all__ = ["WorkspaceDatabase", "WorkspaceLocator"]
