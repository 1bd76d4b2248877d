"""
Source schema models for ingestion.

These Pydantic models represent the raw chat shapes found in Cursor's
storage before normalization into domain models.
"""

from .cursor import (
    AuthorKind,
    LegacyMessage,
    Prompt,
    RichMessage,
    WorkbenchEntry,
    WorkbenchMessage,
)

__all__ = [
    "AuthorKind",
    "LegacyMessage",
    "Prompt",
    "RichMessage",
    "WorkbenchEntry",
    "WorkbenchMessage",
]
