"""
Shape normalizer: converts classified chat values into CanonicalMessage lists.

Cursor stored conversations in several incompatible shapes over time. This
module splits a classified value into independent conversation units,
locates the chat payload inside each unit, and flattens the payload's
messages (rich authorKind format or legacy role/content format) into
CanonicalMessage objects. Messages with blank content are dropped.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from cursor_chat_manager.core.models import CanonicalMessage, MessageRole
from cursor_chat_manager.core.source_schemas.cursor import (
    AuthorKind,
    LegacyMessage,
    Prompt,
    RichMessage,
    WorkbenchMessage,
)
from cursor_chat_manager.core.utils import as_number, now_millis
from cursor_chat_manager.transformers.classifier import (
    Classification,
    ClassifiedRecord,
    is_numeric_key_object,
    is_rich_chat_data,
    is_single_prompt,
    looks_chat_like,
    looks_like_direct_chat_data,
)

logger = logging.getLogger(__name__)

# Fields searched, in order, for chat data nested inside UI-state objects
NESTED_CHAT_FIELDS = ("messages", "conversations", "entries", "chats", "dialogs", "history")

# Message array fields, in priority order
MESSAGE_ARRAY_FIELDS = ("messages", "chunks", "parts", "conversation")

# UI-state "name" strings this short are not useful project names
MIN_UI_STATE_NAME_LENGTH = 5


def text_from_parts(parts: Any) -> str:
    """
    Concatenate a rich message's parts.

    Each part is either a string or an object with a ``text`` field; parts
    are joined with no separator.
    """
    if isinstance(parts, str):
        return parts
    if not isinstance(parts, list):
        return ""
    pieces = []
    for part in parts:
        if isinstance(part, str):
            pieces.append(part)
        elif isinstance(part, dict) and isinstance(part.get("text"), str):
            pieces.append(part["text"])
    return "".join(pieces)


def _first_present(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def _role_from_text(role: Any) -> MessageRole:
    text = str(role).lower() if role is not None else ""
    if text == MessageRole.USER.value:
        return MessageRole.USER
    if text == MessageRole.SYSTEM.value:
        return MessageRole.SYSTEM
    return MessageRole.ASSISTANT


def _content_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return text_from_parts(content)
    if isinstance(content, dict):
        return text_from_parts(content.get("parts"))
    return ""


def _is_prompt_array(value: Any) -> bool:
    return isinstance(value, list) and bool(value) and all(is_single_prompt(v) for v in value)


def extract_nested_chat_data(data: Any) -> Optional[Dict[str, Any]]:
    """
    Search a UI-state object for embedded chat data.

    Parameters
    ----------
    data : Any
        Object that did not look like chat data on its own

    Returns
    -------
    Dict[str, Any] or None
        The object itself when it carries rich chatData, a ``{"messages":
        [...]}`` wrapper around the first array of message-like items, or
        None when nothing was found (a nested ``data`` object is searched
        recursively)
    """
    if not isinstance(data, dict):
        return None
    if is_rich_chat_data(data):
        return data

    for field in NESTED_CHAT_FIELDS:
        items = data.get(field)
        if not isinstance(items, list) or not items:
            continue
        has_messages = any(
            isinstance(item, dict)
            and (
                (item.get("role") and item.get("content"))
                or (item.get("sender") and item.get("message"))
                or isinstance(item.get("messages"), list)
            )
            for item in items
        )
        if not has_messages:
            continue
        if field == "entries":
            flattened: List[Any] = []
            for entry in items:
                if not isinstance(entry, dict):
                    continue
                if isinstance(entry.get("conversation"), list):
                    flattened.extend(entry["conversation"])
                if isinstance(entry.get("messages"), list):
                    flattened.extend(entry["messages"])
            if flattened:
                return {"messages": flattened}
        return {"messages": items}

    if isinstance(data.get("data"), dict):
        return extract_nested_chat_data(data["data"])
    return None


class ShapeNormalizer:
    """
    Normalizer for every chat shape the classifier accepts.

    Methods
    -------
    conversation_units(variant)
        Split a classified value into independent conversations
    resolve_payload(unit)
        Locate the chat payload (and any UI-state name) inside a unit
    normalize(payload, default_millis)
        Ordered CanonicalMessage list for a payload
    flatten_message(raw, default_millis)
        One raw message to a CanonicalMessage, or None if it is blank
    """

    def conversation_units(self, variant: ClassifiedRecord) -> List[Any]:
        """
        Split a classified value into conversation units.

        Each unit becomes at most one Chat.

        Parameters
        ----------
        variant : ClassifiedRecord
            Output of RecordClassifier.classify

        Returns
        -------
        List[Any]
            Units in source order; empty for Unrecognized values
        """
        if variant.kind == Classification.RICH_CHAT:
            return [variant.chat]
        if variant.kind == Classification.WORKBENCH_ENTRIES:
            return list(variant.entries)
        if variant.kind != Classification.PROMPTS_ONLY:
            return []

        data = variant.value
        if is_numeric_key_object(data) or _is_prompt_array(data) or is_single_prompt(data):
            return [data]

        if isinstance(data, list):
            units = list(data)
        elif isinstance(data.get("entries"), list):
            units = []
            for entry in data["entries"]:
                if not isinstance(entry, dict):
                    continue
                messages = _first_present(entry.get("conversation"), entry.get("messages"))
                if not isinstance(messages, list):
                    continue
                unit: Dict[str, Any] = {"messages": messages}
                for field in ("id", "title"):
                    if entry.get(field):
                        unit[field] = entry[field]
                units.append(unit)
        elif isinstance(data.get("conversations"), list):
            units = list(data["conversations"])
        else:
            units = [data]

        kept = [u for u in units if _is_prompt_array(u) or looks_chat_like(u)]
        if len(kept) < len(units):
            logger.debug(
                "Discarded %d of %d units from %s that do not look chat-like",
                len(units) - len(kept),
                len(units),
                variant.key,
            )
        return kept

    def resolve_payload(self, unit: Any) -> Tuple[Optional[Any], Optional[str]]:
        """
        Locate the chat payload inside a conversation unit.

        Parameters
        ----------
        unit : Any
            One element of conversation_units()

        Returns
        -------
        Tuple[Optional[Any], Optional[str]]
            (payload, ui_state_name). payload is None when the unit holds
            no chat data; ui_state_name is a ``name`` string found on a
            UI-state object
        """
        if _is_prompt_array(unit):
            return unit, None
        if not isinstance(unit, dict):
            return None, None
        if (
            is_single_prompt(unit)
            or is_numeric_key_object(unit)
            or looks_like_direct_chat_data(unit)
            or isinstance(unit.get("conversation"), list)
        ):
            return unit, None

        ui_state_name = None
        name = unit.get("name")
        if isinstance(name, str) and len(name) > MIN_UI_STATE_NAME_LENGTH:
            ui_state_name = name
            logger.debug("Extracted workspace name from UI state: %r", name)

        return extract_nested_chat_data(unit), ui_state_name

    def normalize(self, payload: Any, default_millis: Optional[float] = None) -> List[CanonicalMessage]:
        """
        Convert a chat payload into ordered canonical messages.

        Dispatch order (first match wins): nested chatData, single prompt
        (non-blank ``text``), numeric-keyed object, prompt array, message array field,
        flattened ``entries``, lone role/content message.

        Parameters
        ----------
        payload : Any
            Chat payload from resolve_payload()
        default_millis : float, optional
            Timestamp for messages that carry none; defaults to now

        Returns
        -------
        List[CanonicalMessage]
            Messages in source order, blanks dropped
        """
        if isinstance(payload, dict) and isinstance(payload.get("chatData"), dict):
            logger.debug("Detected nested chatData structure, extracting inner data")
            return self.normalize(payload["chatData"], default_millis)

        if is_single_prompt(payload):
            return self._prompt_messages([payload], default_millis)

        if is_numeric_key_object(payload):
            ordered = [payload[k] for k in sorted(payload, key=int)]
            return self._prompt_messages(ordered, default_millis)

        if _is_prompt_array(payload):
            return self._prompt_messages(payload, default_millis)

        raw_messages = self._message_array(payload)
        if not raw_messages:
            logger.debug("No messages found in chat data")
            return []

        messages = []
        for raw in raw_messages:
            message = self.flatten_message(raw, default_millis)
            if message is not None:
                messages.append(message)
        logger.debug("Normalized %d of %d messages", len(messages), len(raw_messages))
        return messages

    def _message_array(self, payload: Any) -> List[Any]:
        if isinstance(payload, list):
            return payload
        if not isinstance(payload, dict):
            return []

        for field in MESSAGE_ARRAY_FIELDS:
            if isinstance(payload.get(field), list):
                return payload[field]

        if isinstance(payload.get("entries"), list):
            messages: List[Any] = []
            for entry in payload["entries"]:
                if not isinstance(entry, dict):
                    continue
                if isinstance(entry.get("conversation"), list):
                    messages.extend(entry["conversation"])
                elif isinstance(entry.get("messages"), list):
                    messages.extend(entry["messages"])
            return messages

        if payload.get("role") and any(payload.get(f) for f in ("content", "text", "message")):
            return [payload]
        return []

    def _prompt_messages(self, prompts: List[Any], default_millis: Optional[float]) -> List[CanonicalMessage]:
        """Positional prompts are always user turns."""
        messages = []
        for raw in prompts:
            try:
                prompt = Prompt.model_validate(raw)
                content, created = prompt.text, prompt.createdAt
            except ValidationError:
                if isinstance(raw, str):
                    content, created = raw, None
                elif isinstance(raw, dict):
                    content = _content_text(_first_present(raw.get("text"), raw.get("content")))
                    created = as_number(raw.get("createdAt"))
                else:
                    continue
            if not content.strip():
                continue
            millis = _first_present(created, default_millis)
            messages.append(
                CanonicalMessage(
                    role=MessageRole.USER,
                    content=content,
                    timestamp_millis=millis if millis is not None else now_millis(),
                )
            )
        return messages

    def flatten_message(self, raw: Any, default_millis: Optional[float] = None) -> Optional[CanonicalMessage]:
        """
        Flatten one raw message.

        Rich messages (``authorKind`` present) map authorKind 1/2/other to
        user/assistant/system, join ``parts`` and convert ``createTime`` or
        ``timestamp`` from seconds to milliseconds. Legacy messages take
        role from ``role``, ``sender`` or ``isUser``, content from
        ``content``, ``text`` or ``message``, and a millisecond
        ``timestamp`` or ``createdAt``. Workbench messages (``sender`` and
        ``message``) are validated as such first and fall back to the legacy
        rules.

        Returns
        -------
        CanonicalMessage or None
            None for non-objects and blank content
        """
        if not isinstance(raw, dict):
            return None
        if "authorKind" in raw:
            role, content, millis = self._flatten_rich(raw)
        elif "sender" in raw and "message" in raw:
            role, content, millis = self._flatten_workbench(raw)
        else:
            role, content, millis = self._flatten_legacy(raw)

        if not content.strip():
            return None
        if millis is None:
            millis = default_millis if default_millis is not None else now_millis()
        return CanonicalMessage(role=role, content=content, timestamp_millis=millis)

    def _flatten_rich(self, raw: Dict[str, Any]) -> Tuple[MessageRole, str, Optional[float]]:
        try:
            message = RichMessage.model_validate(raw)
            author = message.authorKind
            parts = _first_present(message.parts, _nested_parts(message.content))
            seconds = _first_present(message.createTime, message.timestamp)
        except ValidationError as e:
            logger.debug("Rich message failed validation, using raw fields: %s", e.error_count())
            author = raw.get("authorKind")
            parts = _first_present(raw.get("parts"), _nested_parts(raw.get("content")))
            seconds = _first_present(as_number(raw.get("createTime")), as_number(raw.get("timestamp")))

        if author == AuthorKind.USER and not isinstance(author, bool):
            role = MessageRole.USER
        elif author == AuthorKind.ASSISTANT:
            role = MessageRole.ASSISTANT
        else:
            role = MessageRole.SYSTEM

        millis = seconds * 1000 if seconds is not None else None
        return role, text_from_parts(parts), millis

    def _flatten_workbench(self, raw: Dict[str, Any]) -> Tuple[MessageRole, str, Optional[float]]:
        try:
            message = WorkbenchMessage.model_validate(raw)
        except ValidationError as e:
            logger.debug("Workbench message failed validation, using legacy fields: %s", e.error_count())
            return self._flatten_legacy(raw)
        return _role_from_text(message.sender), message.message, message.timestamp

    def _flatten_legacy(self, raw: Dict[str, Any]) -> Tuple[MessageRole, str, Optional[float]]:
        try:
            message = LegacyMessage.model_validate(raw)
            role_text = message.role or message.sender
            is_user = message.isUser
            content = _first_present(message.content, message.text, message.message)
            millis = _first_present(message.timestamp, message.createdAt)
        except ValidationError as e:
            logger.debug("Legacy message failed validation, using raw fields: %s", e.error_count())
            role_text = raw.get("role") or raw.get("sender")
            is_user = raw.get("isUser")
            content = _first_present(raw.get("content"), raw.get("text"), raw.get("message"))
            millis = _first_present(as_number(raw.get("timestamp")), as_number(raw.get("createdAt")))

        if role_text:
            role = _role_from_text(role_text)
        else:
            role = MessageRole.USER if is_user else MessageRole.ASSISTANT
        return role, _content_text(content), millis


def _nested_parts(content: Any) -> Any:
    if isinstance(content, dict):
        return content.get("parts")
    return None
