"""
Aggregate builder: turns classified records into Projects, Chats and Dialogues.

Resolves a deterministic Project identity for each conversation, suppresses
prompts-only duplicates of rich conversations, and attaches a Chat to its
Project only when it ends up with at least one Dialogue.
"""

import logging
import uuid
from collections import OrderedDict
from datetime import datetime
from pathlib import PurePath
from typing import Any, Dict, Iterator, List, Optional, Tuple

from pydantic import ValidationError

from cursor_chat_manager.core.config import (
    DEFAULT_PROJECT_NAME,
    NON_INFORMATIVE_FOLDER_NAMES,
    PROMPTS_ONLY_KEY,
    RICH_CHAT_KEY_PREFIX,
)
from cursor_chat_manager.core.models import CandidateRecord, Chat, Dialogue, MessageRole, Project
from cursor_chat_manager.core.source_schemas.cursor import WorkbenchEntry
from cursor_chat_manager.core.utils import (
    as_number,
    format_chat_timestamp,
    is_hash_like,
    is_hash_name,
    millis_to_datetime,
    project_id_for_name,
)
from cursor_chat_manager.transformers.classifier import Classification, ClassifiedRecord, is_chat_data
from cursor_chat_manager.transformers.normalizer import ShapeNormalizer

logger = logging.getLogger(__name__)

WORKSPACE_TAG_FIELDS = ("workspaceName", "projectName", "folderName", "name")


class ProjectRegistry:
    """
    Lazily-created Projects keyed by their deterministic id.

    Iteration order is creation order.
    """

    def __init__(self):
        self._projects: "OrderedDict[str, Project]" = OrderedDict()

    def get_or_create(self, name: str) -> Project:
        project_id = project_id_for_name(name)
        project = self._projects.get(project_id)
        if project is not None:
            logger.debug("Using existing project: %r (ID: %s)", name, project_id)
            return project

        project = Project(
            id=project_id,
            name=name,
            description=f"Original project from Cursor: {name}",
            is_custom=False,
        )
        self._projects[project_id] = project
        logger.info("Created new project: %r (ID: %s)", name, project_id)
        return project

    def get(self, project_id: str) -> Optional[Project]:
        return self._projects.get(project_id)

    def values(self) -> List[Project]:
        return list(self._projects.values())

    def __contains__(self, project_id: str) -> bool:
        return project_id in self._projects

    def __iter__(self) -> Iterator[Project]:
        return iter(self._projects.values())

    def __len__(self) -> int:
        return len(self._projects)


def is_rich_record(key: str, value: Any) -> bool:
    """Rich rows live under the aichat panel prefix and are chat-shaped."""
    return key.startswith(RICH_CHAT_KEY_PREFIX) and is_chat_data(value)


def companion_keys(key: str) -> Tuple[str, str]:
    """
    Prompts-only keys made redundant by a rich record.

    Parameters
    ----------
    key : str
        Key of a rich record, e.g. ``workbench.panel.aichat.view.aichat.chatdata``

    Returns
    -------
    Tuple[str, str]
        ``<key without .chatdata>.prompts`` and ``aiService.prompts``
    """
    base = key
    for suffix in (".chatdata", ".chatData"):
        if base.endswith(suffix):
            base = base[: -len(suffix)]
            break
    return f"{base}.prompts", PROMPTS_ONLY_KEY


def select_records(records: List[CandidateRecord]) -> List[CandidateRecord]:
    """
    Drop prompts-only records that duplicate a rich record.

    Works in two passes over one workspace's records, so the order the rows
    came out of the store does not matter.

    Parameters
    ----------
    records : List[CandidateRecord]
        Candidate records from a single database

    Returns
    -------
    List[CandidateRecord]
        Records to process, in their original order
    """
    skipped = set()
    for record in records:
        if record.is_rich or is_rich_record(record.key, record.value):
            record.is_rich = True
            skipped.update(companion_keys(record.key))

    selected = []
    for record in records:
        if not record.is_rich and record.key in skipped:
            logger.debug("Skipping %s: rich chat data supersedes it", record.key)
            continue
        selected.append(record)
    return selected


def workspace_tag(folder_path: str, value: Any) -> str:
    """
    Raw workspace tag for a record.

    Prefers a name field on the value itself, then the folder name unless
    it is hash-like, then ``"Project " + first 8 chars`` of the folder.
    """
    if isinstance(value, dict):
        for field in WORKSPACE_TAG_FIELDS:
            candidate = value.get(field)
            if isinstance(candidate, str) and len(candidate) > 1:
                return candidate

    folder_name = PurePath(folder_path).name if folder_path else ""
    if not is_hash_like(folder_name):
        return folder_name
    return f"Project {folder_name[:8]}"


def better_folder_name(folder_path: str) -> str:
    """
    Human-friendly name for a workspace folder.

    Hashed folders are named after their parent directory unless the parent
    is itself a hash or a generic system folder, in which case the result is
    ``"Workspace " + first 8 chars`` of the hash.
    """
    if not folder_path:
        return ""
    path = PurePath(folder_path)
    folder_name = path.name
    if not is_hash_name(folder_name):
        return folder_name

    parent_name = path.parent.name
    if (
        parent_name
        and not is_hash_name(parent_name)
        and parent_name not in NON_INFORMATIVE_FOLDER_NAMES
    ):
        return parent_name
    return f"Workspace {folder_name[:8]}"


class AggregateBuilder:
    """
    Builds Project/Chat/Dialogue aggregates from classified records.

    Attributes
    ----------
    normalizer : ShapeNormalizer
        Produces canonical messages for each conversation unit

    Example
    -------
    >>> builder = AggregateBuilder()
    >>> projects, chats = ProjectRegistry(), []
    >>> produced = builder.build(variant, record, projects, chats)
    """

    def __init__(self, normalizer: Optional[ShapeNormalizer] = None):
        self.normalizer = normalizer or ShapeNormalizer()

    def select_records(self, records: List[CandidateRecord]) -> List[CandidateRecord]:
        return select_records(records)

    def workspace_tag(self, folder_path: str, value: Any) -> str:
        return workspace_tag(folder_path, value)

    def resolve_project_name(
        self,
        payload: Any,
        source: CandidateRecord,
        ui_state_name: Optional[str] = None,
    ) -> str:
        """
        Resolve the project name for one conversation.

        First non-empty of: ``workspaceName`` on the payload, the workspace
        display name from the store, the better folder name, the UI-state
        name, the raw workspace tag, and ``"Unknown Project"``.
        """
        explicit = payload.get("workspaceName") if isinstance(payload, dict) else None
        candidates = (
            explicit,
            source.workspace_real_name,
            better_folder_name(source.folder_path),
            ui_state_name,
            source.workspace,
        )
        for candidate in candidates:
            if isinstance(candidate, str) and candidate.strip():
                return candidate
        return DEFAULT_PROJECT_NAME

    def build(
        self,
        variant: ClassifiedRecord,
        source: CandidateRecord,
        projects: ProjectRegistry,
        chats: List[Chat],
    ) -> int:
        """
        Build Chats for one classified record.

        Parameters
        ----------
        variant : ClassifiedRecord
            Classification of source.value
        source : CandidateRecord
            Record and workspace context
        projects : ProjectRegistry
            Registry the resolved Projects are taken from or added to
        chats : List[Chat]
            Running list of every Chat produced in this pass

        Returns
        -------
        int
            Number of Chats produced; 0 when nothing had content
        """
        units = self.normalizer.conversation_units(variant)
        if not units:
            logger.debug("(%s) nothing chat-like in %s", variant.kind.value, source.key)
            return 0

        logger.debug("Processing %d potential chat units from %s", len(units), source.key)
        from_workbench = variant.kind == Classification.WORKBENCH_ENTRIES
        produced = 0
        for index, unit in enumerate(units):
            try:
                chat = self._build_chat(unit, source, projects, from_workbench)
            except Exception as e:
                logger.error(
                    "Error processing unit %d of %s: %s", index, source.key, e, exc_info=True
                )
                continue
            if chat is not None:
                chat.metadata = {
                    "source_key": source.key,
                    "database_path": source.database_path,
                    "classification": variant.kind.value,
                }
                chats.append(chat)
                produced += 1
        return produced

    def _build_chat(
        self,
        unit: Any,
        source: CandidateRecord,
        projects: ProjectRegistry,
        from_workbench: bool,
    ) -> Optional[Chat]:
        payload, ui_state_name = self.normalizer.resolve_payload(unit)
        if payload is None:
            keys = ",".join(unit) if isinstance(unit, dict) else type(unit).__name__
            logger.debug("Skipping item - no chat data found. Keys: %s", keys)
            return None

        chat_id, title, timestamp = self._chat_fields(payload, from_workbench)
        default_millis = timestamp.timestamp() * 1000 if from_workbench else None
        messages = self.normalizer.normalize(payload, default_millis)
        if not messages:
            logger.debug("Skipping empty chat %r", title)
            return None

        project_name = self.resolve_project_name(payload, source, ui_state_name)
        project = projects.get_or_create(project_name)

        chat = Chat(id=chat_id, title=title, timestamp=timestamp)
        for message in messages:
            chat.add_dialogue(
                Dialogue(
                    id=str(uuid.uuid4()),
                    content=message.content,
                    is_user=message.role == MessageRole.USER,
                    timestamp=millis_to_datetime(message.timestamp_millis),
                )
            )
        if not project.add_chat(chat):
            logger.warning(
                "Chat id %s already used in project %r, assigning a new id", chat.id, project.name
            )
            chat.id = str(uuid.uuid4())
            for dialogue in chat.dialogues:
                dialogue.chat_id = chat.id
            project.add_chat(chat)
        logger.info(
            "Added chat %r with %d dialogues to project %r (now has %d chats)",
            title,
            len(chat.dialogues),
            project.name,
            len(project.chats),
        )
        return chat

    def _chat_fields(self, payload: Any, from_workbench: bool) -> Tuple[str, str, datetime]:
        fields: Dict[str, Any] = payload if isinstance(payload, dict) else {}

        raw_id, title, stamp = fields.get("id"), fields.get("title"), fields.get("timestamp")
        if from_workbench and fields:
            try:
                entry = WorkbenchEntry.model_validate(fields)
                raw_id, title, stamp = entry.id, entry.title, entry.timestamp
            except ValidationError as e:
                logger.debug("Workbench entry failed validation, using raw fields: %s", e.error_count())
        chat_id = str(raw_id) if raw_id not in (None, "") else str(uuid.uuid4())

        created = as_number(fields.get("createdAt"))
        if created is None and from_workbench:
            created = as_number(stamp)
        timestamp = millis_to_datetime(created) if created is not None else datetime.now()

        if not isinstance(title, str) or not title.strip():
            title = f"Chat from {format_chat_timestamp(timestamp)}"
        return chat_id, title, timestamp
