"""
Pydantic models for the chat shapes Cursor stores in ItemTable.

These models represent data as stored in Cursor's workspace state.vscdb
files, before normalization into domain models. Validation is lenient:
unknown fields are allowed, and callers fall back to plain dict access
when a record fails validation (schema drift).

Shapes:
- Prompt: a single user prompt ({"text": ..., "createdAt": ...})
- RichMessage: authorKind-tagged message with a parts array
- LegacyMessage: role/sender + content/text/message message
- WorkbenchMessage / WorkbenchEntry: workbench panel chat entries
"""

from enum import IntEnum
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AuthorKind(IntEnum):
    """Author of a rich-format message."""

    USER = 1
    ASSISTANT = 2
    SYSTEM = 3


class Prompt(BaseModel):
    """
    Single user prompt as stored under aiService.prompts.
    """

    model_config = ConfigDict(extra="allow")

    text: str = Field(..., description="Prompt text")
    commandType: Optional[int] = Field(None, description="Cursor command type")
    createdAt: Optional[float] = Field(None, description="Unix timestamp (ms)")

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("prompt text is empty")
        return v


class RichMessage(BaseModel):
    """
    Rich-format message from nested chatData.

    createTime and timestamp are in seconds.
    """

    model_config = ConfigDict(extra="allow")

    authorKind: Any = Field(..., description="1 = user, 2 = assistant, else system")
    parts: Optional[Union[List[Any], str]] = Field(None, description="Text parts")
    content: Optional[Any] = Field(None, description="May hold {'parts': [...]}")
    createTime: Optional[float] = Field(None, description="Unix timestamp (s)")
    timestamp: Optional[float] = Field(None, description="Unix timestamp (s)")


class LegacyMessage(BaseModel):
    """
    Role/content message used by older chat shapes.

    Timestamps are already in milliseconds.
    """

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    role: Optional[str] = None
    sender: Optional[str] = None
    isUser: Optional[bool] = None
    content: Optional[Any] = None
    text: Optional[Any] = None
    message: Optional[Any] = None
    timestamp: Optional[float] = None
    createdAt: Optional[float] = None


class WorkbenchMessage(BaseModel):
    """Message inside a workbench entry's conversation array."""

    model_config = ConfigDict(extra="allow")

    sender: str
    message: str
    id: Optional[str] = None
    timestamp: Optional[float] = None

    @field_validator("sender")
    @classmethod
    def known_sender(cls, v: str) -> str:
        if v not in ("user", "assistant", "system"):
            raise ValueError(f"Unknown sender: {v}")
        return v


class WorkbenchEntry(BaseModel):
    """One chat tab stored in a workbench entries container."""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    title: Optional[str] = None
    timestamp: Optional[float] = None
    conversation: Optional[List[Any]] = None
    messages: Optional[List[Any]] = None
