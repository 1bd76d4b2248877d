"""
Extractors for pulling chat candidates out of Cursor workspace databases.
"""

from .cursor import CursorWorkspaceExtractor

__all__ = ["CursorWorkspaceExtractor"]
