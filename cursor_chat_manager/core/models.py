"""
Domain models for recovered Cursor conversations.

These models represent the canonical Project -> Chat -> Dialogue hierarchy
independent of the shapes Cursor stores in its SQLite databases.

All models use Pydantic for validation, serialization, and type safety.
Serialized dictionaries use the camelCase keys of the persisted snapshot
format.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cursor_chat_manager.core.utils import millis_to_datetime


class MessageRole(str, Enum):
    """Message role types."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    return datetime.now()


class CanonicalMessage(BaseModel):
    """
    One normalized message.

    Every shape-specific parser converges on this representation before
    dialogues are built. Content is never blank.
    """

    role: MessageRole
    content: str
    timestamp_millis: float

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("message content is empty")
        return v

    @property
    def timestamp(self) -> datetime:
        """Message time as a datetime (local time), now if out of range."""
        return millis_to_datetime(self.timestamp_millis)


class Dialogue(BaseModel):
    """
    One turn in a chat.

    Owned by exactly one Chat; created by the aggregate builder from a
    CanonicalMessage.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str
    chat_id: str = ""
    content: str
    is_user: bool
    timestamp: datetime
    tags: List[str] = Field(default_factory=list)
    metadata: Optional[Dict[str, Any]] = None

    def add_tag(self, tag: str) -> None:
        if tag not in self.tags:
            self.tags.append(tag)

    def remove_tag(self, tag: str) -> bool:
        before = len(self.tags)
        self.tags = [t for t in self.tags if t != tag]
        return len(self.tags) != before

    def serialize(self) -> Dict[str, Any]:
        """
        Convert to the persisted snapshot format.

        Returns
        -------
        Dict[str, Any]
            camelCase dictionary with an ISO timestamp
        """
        return {
            "id": self.id,
            "chatId": self.chat_id,
            "content": self.content,
            "isUser": self.is_user,
            "timestamp": self.timestamp.isoformat(),
            "tags": list(self.tags),
            "metadata": self.metadata,
        }

    @classmethod
    def deserialize(cls, data: Dict[str, Any]) -> "Dialogue":
        return cls(
            id=data["id"],
            chat_id=data.get("chatId", ""),
            content=data.get("content", ""),
            is_user=bool(data.get("isUser")),
            timestamp=_parse_datetime(data.get("timestamp")),
            tags=data.get("tags") if isinstance(data.get("tags"), list) else [],
            metadata=data.get("metadata"),
        )


class Chat(BaseModel):
    """
    Represents a complete chat conversation.

    A chat without dialogues is never attached to a Project.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str
    title: str
    timestamp: datetime
    project_id: str = ""
    dialogues: List[Dialogue] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    metadata: Optional[Dict[str, Any]] = None

    def add_dialogue(self, dialogue: Dialogue) -> None:
        dialogue.chat_id = self.id
        self.dialogues.append(dialogue)

    def remove_dialogue(self, dialogue_id: str) -> bool:
        before = len(self.dialogues)
        self.dialogues = [d for d in self.dialogues if d.id != dialogue_id]
        return len(self.dialogues) != before

    def add_tag(self, tag: str) -> None:
        if tag not in self.tags:
            self.tags.append(tag)

    def remove_tag(self, tag: str) -> bool:
        before = len(self.tags)
        self.tags = [t for t in self.tags if t != tag]
        return len(self.tags) != before

    def serialize(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "timestamp": self.timestamp.isoformat(),
            "projectId": self.project_id,
            "dialogues": [d.serialize() for d in self.dialogues],
            "tags": list(self.tags),
            "metadata": self.metadata,
        }

    @classmethod
    def deserialize(cls, data: Dict[str, Any]) -> "Chat":
        dialogues = data.get("dialogues")
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            timestamp=_parse_datetime(data.get("timestamp")),
            project_id=data.get("projectId", ""),
            dialogues=[Dialogue.deserialize(d) for d in dialogues]
            if isinstance(dialogues, list)
            else [],
            tags=data.get("tags") if isinstance(data.get("tags"), list) else [],
            metadata=data.get("metadata"),
        )


class Project(BaseModel):
    """
    A group of chats that resolved to the same project name.

    The id is a deterministic slug of the name, so repeated scans over the
    same data converge on the same Project.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str
    name: str
    description: str = ""
    created: datetime = Field(default_factory=datetime.now)
    is_custom: bool = False
    chats: List[Chat] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    metadata: Optional[Dict[str, Any]] = None

    def add_chat(self, chat: Chat) -> bool:
        """Attach chat to this project; False when a chat with its id is already here."""
        if any(c.id == chat.id for c in self.chats):
            return False
        chat.project_id = self.id
        self.chats.append(chat)
        return True

    def remove_chat(self, chat_id: str) -> bool:
        before = len(self.chats)
        self.chats = [c for c in self.chats if c.id != chat_id]
        return len(self.chats) != before

    def update_metadata(self, metadata: Dict[str, Any]) -> None:
        self.metadata = {**(self.metadata or {}), **metadata}

    def serialize(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "created": self.created.isoformat(),
            "isCustom": self.is_custom,
            "chats": [c.serialize() for c in self.chats],
            "tags": list(self.tags),
            "metadata": self.metadata,
        }

    @classmethod
    def deserialize(cls, data: Dict[str, Any]) -> "Project":
        chats = data.get("chats")
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            description=data.get("description", ""),
            created=_parse_datetime(data.get("created")),
            is_custom=bool(data.get("isCustom")),
            chats=[Chat.deserialize(c) for c in chats] if isinstance(chats, list) else [],
            tags=data.get("tags") if isinstance(data.get("tags"), list) else [],
            metadata=data.get("metadata"),
        )


class CandidateRecord(BaseModel):
    """
    One decoded ItemTable row plus the workspace context it came from.

    Built by the workspace extractor; consumed by the classifier and the
    aggregate builder.
    """

    key: str
    value: Any
    size: int = 0
    workspace: str = ""
    workspace_real_name: Optional[str] = None
    database_path: str = ""
    folder_path: str = ""
    is_rich: bool = False


class ProcessingStats(BaseModel):
    """Per-run diagnostic counters. Never used for control flow."""

    total_records: int = 0
    valid_records: int = 0
    invalid_records: int = 0
    databases_scanned: int = 0
    databases_failed: int = 0
    chats: int = 0
    projects: int = 0


class ProcessingResult(BaseModel):
    """Output of one pipeline pass."""

    projects: List[Project] = Field(default_factory=list)
    chats: List[Chat] = Field(default_factory=list)
    stats: ProcessingStats = Field(default_factory=ProcessingStats)
