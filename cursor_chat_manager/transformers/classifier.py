"""
Record classifier for decoded ItemTable values.

Two tiers: is_valid_chat_data() is a cheap structural pre-check applied by
the store reader to every candidate row, and RecordClassifier.classify()
assigns each surviving value exactly one Classification variant.

Thresholds lean permissive; only terminal-session keys are an outright
reject, and they win over every positive signal.
"""

import json
import logging
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Union

from pydantic import BaseModel, Field

from cursor_chat_manager.core.config import MIN_BARE_STRING_LENGTH, MIN_CHAT_JSON_LENGTH
from cursor_chat_manager.core.utils import NUMERIC_KEY_PATTERN

logger = logging.getLogger(__name__)

# Keys diagnostic of IDE terminal-session state
TERMINAL_INDICATORS = frozenset(
    {
        "pid",
        "ppid",
        "shellIntegrationNonce",
        "titleSource",
        "isOrphan",
        "environmentVariableCollections",
        "isFeatureTerminal",
        "hasChildProcesses",
        "shellPath",
        "shellType",
        "activePersistentProcessId",
    }
)

# Tier-1 structural keys, matched case-insensitively
STRUCTURAL_KEYS = frozenset({"messages", "history", "conversations", "prompts"})

# Array fields that make an object chat-shaped once it is big enough
CHAT_ARRAY_FIELDS = ("messages", "chunks", "parts", "conversations", "entries")

CHAT_SENDERS = ("user", "assistant", "system")


class Classification(str, Enum):
    """Shape tag of a decoded value."""

    RICH_CHAT = "rich_chat"
    PROMPTS_ONLY = "prompts_only"
    WORKBENCH_ENTRIES = "workbench_entries"
    UNRECOGNIZED = "unrecognized"


class RichChat(BaseModel):
    """Value carrying a nested chatData object with assistant turns."""

    kind: Literal[Classification.RICH_CHAT] = Classification.RICH_CHAT
    key: str = ""
    chat: Dict[str, Any]


class PromptsOnly(BaseModel):
    """
    Prompt-style value: a single prompt, prompt array, numeric-keyed object,
    or a container of message arrays.
    """

    kind: Literal[Classification.PROMPTS_ONLY] = Classification.PROMPTS_ONLY
    key: str = ""
    value: Union[Dict[str, Any], List[Any]]


class WorkbenchEntries(BaseModel):
    """Workbench panel container; each entry is one chat tab."""

    kind: Literal[Classification.WORKBENCH_ENTRIES] = Classification.WORKBENCH_ENTRIES
    key: str = ""
    container: Dict[str, Any]
    entries: List[Dict[str, Any]]


class Unrecognized(BaseModel):
    kind: Literal[Classification.UNRECOGNIZED] = Classification.UNRECOGNIZED
    key: str = ""
    reason: str


ClassifiedRecord = Annotated[
    Union[RichChat, PromptsOnly, WorkbenchEntries, Unrecognized],
    Field(discriminator="kind"),
]


def _json_length(value: Any) -> int:
    return len(json.dumps(value, separators=(",", ":"), ensure_ascii=False))


def is_valid_chat_data(value: Any) -> bool:
    """
    Tier-1 structural pre-check.

    Rejects only unambiguous non-chat shapes; arrays are always deferred to
    full classification.

    Parameters
    ----------
    value : Any
        Decoded JSON value

    Returns
    -------
    bool
        True if the value may hold chat data
    """
    if value is None:
        return False
    if isinstance(value, list):
        return True
    if isinstance(value, dict):
        if not value:
            return True
        return any(
            key.lower() in STRUCTURAL_KEYS or NUMERIC_KEY_PATTERN.match(key)
            for key in value
        )
    if isinstance(value, str):
        return len(value) > MIN_BARE_STRING_LENGTH
    return False


def has_terminal_indicators(value: Any) -> bool:
    return isinstance(value, dict) and not TERMINAL_INDICATORS.isdisjoint(value)


def is_numeric_key_object(value: Any) -> bool:
    """Object whose keys are all "0", "1", ... used as an ordered array."""
    return (
        isinstance(value, dict)
        and bool(value)
        and all(NUMERIC_KEY_PATTERN.match(key) for key in value)
    )


def is_single_prompt(value: Any) -> bool:
    """Object with a non-blank string ``text`` field."""
    return (
        isinstance(value, dict)
        and isinstance(value.get("text"), str)
        and bool(value["text"].strip())
    )


def is_rich_chat_data(value: Any) -> bool:
    """Object whose nested ``chatData`` holds a messages or chunks array."""
    if not isinstance(value, dict):
        return False
    nested = value.get("chatData")
    return isinstance(nested, dict) and (
        isinstance(nested.get("messages"), list) or isinstance(nested.get("chunks"), list)
    )


def is_chat_data(value: Any) -> bool:
    """
    Loose chat-shape check used for rich-key duplicate suppression.

    Follows a nested ``chatData`` object when present.
    """
    if not isinstance(value, dict):
        return False
    nested = value.get("chatData")
    if isinstance(nested, dict):
        return is_chat_data(nested)
    return any(
        isinstance(value.get(field), list)
        for field in ("messages", "chunks", "parts", "conversation", "entries", "conversations")
    )


def looks_like_ai_service_prompt(value: Any) -> bool:
    """
    Tier-2 check for prompt-style and generic chat objects.

    Terminal indicators reject first. Rich chat data, numeric-keyed objects
    and single prompts are accepted outright; anything else needs a chat
    array field and a JSON length above MIN_CHAT_JSON_LENGTH.
    """
    if not isinstance(value, dict):
        return False
    if has_terminal_indicators(value):
        logger.debug("Rejecting terminal/shell data with keys: %s", ", ".join(value))
        return False
    if is_rich_chat_data(value) or is_numeric_key_object(value) or is_single_prompt(value):
        return True
    if not any(isinstance(value.get(field), list) for field in CHAT_ARRAY_FIELDS):
        return False
    return _json_length(value) > MIN_CHAT_JSON_LENGTH


def _is_workbench_message(message: Any) -> bool:
    return (
        isinstance(message, dict)
        and isinstance(message.get("message"), str)
        and bool(message["message"].strip())
        and message.get("sender") in CHAT_SENDERS
    )


def looks_like_workbench_chat(value: Any) -> bool:
    """
    Workbench entries container with at least one real conversation.

    Requires an ``entries`` array in which some entry has a ``conversation``
    array holding a non-blank ``message`` from a user, assistant or system
    sender.
    """
    if not isinstance(value, dict) or not isinstance(value.get("entries"), list):
        return False
    for entry in value["entries"]:
        if not isinstance(entry, dict) or not isinstance(entry.get("conversation"), list):
            continue
        if any(_is_workbench_message(m) for m in entry["conversation"]):
            return True
    logger.debug("Rejecting workbench data - no valid conversations in entries")
    return False


def looks_like_direct_chat_data(value: Any) -> bool:
    """Object that can be normalized as-is, without searching nested fields."""
    if not isinstance(value, dict) or has_terminal_indicators(value):
        return False
    if is_rich_chat_data(value):
        return True
    for field in ("messages", "conversations"):
        items = value.get(field)
        if isinstance(items, list) and items:
            return True
    return value.get("role") in CHAT_SENDERS and bool(value.get("content"))


def looks_chat_like(value: Any) -> bool:
    """Whether one element of a candidate array is worth normalizing."""
    return (
        looks_like_ai_service_prompt(value)
        or looks_like_workbench_chat(value)
        or looks_like_direct_chat_data(value)
    )


class RecordClassifier:
    """
    Assigns every decoded value exactly one Classification variant.

    Attributes
    ----------
    counts : Dict[str, int]
        Number of values classified per Classification value

    Example
    -------
    >>> classifier = RecordClassifier()
    >>> classifier.classify("aiService.prompts", [{"text": "hi"}]).kind
    <Classification.PROMPTS_ONLY: 'prompts_only'>
    """

    def __init__(self):
        self.counts: Dict[str, int] = {c.value: 0 for c in Classification}

    def is_valid_chat_data(self, value: Any) -> bool:
        return is_valid_chat_data(value)

    def classify(self, key: str, value: Any) -> ClassifiedRecord:
        """
        Classify one decoded value.

        Parameters
        ----------
        key : str
            ItemTable key the value was stored under
        value : Any
            Decoded JSON value

        Returns
        -------
        ClassifiedRecord
            RichChat, WorkbenchEntries, PromptsOnly, or Unrecognized
        """
        variant = self._classify(key, value)
        self.counts[variant.kind.value] += 1
        if variant.kind == Classification.UNRECOGNIZED:
            logger.debug("Key %s unrecognized: %s", key, variant.reason)
        else:
            logger.debug("Key %s classified as %s", key, variant.kind.value)
        return variant

    def _classify(self, key: str, value: Any) -> ClassifiedRecord:
        if not isinstance(value, (dict, list)):
            return Unrecognized(key=key, reason=f"not an object or array ({type(value).__name__})")

        if has_terminal_indicators(value):
            return Unrecognized(key=key, reason="terminal session state")

        if is_rich_chat_data(value):
            return RichChat(key=key, chat=value)

        if looks_like_workbench_chat(value):
            entries = [e for e in value["entries"] if isinstance(e, dict)]
            return WorkbenchEntries(key=key, container=value, entries=entries)

        if isinstance(value, dict):
            if looks_like_ai_service_prompt(value):
                return PromptsOnly(key=key, value=value)
            return Unrecognized(key=key, reason="no chat structure")

        if any(looks_chat_like(item) for item in value):
            return PromptsOnly(key=key, value=value)
        return Unrecognized(key=key, reason="array has no chat-like elements")


def validation_details(value: Any, key: str = "") -> Dict[str, Any]:
    """
    Explain how a value is judged, for debugging classification misses.

    Parameters
    ----------
    value : Any
        Decoded JSON value
    key : str, optional
        ItemTable key, reported alongside the classification

    Returns
    -------
    Dict[str, Any]
        'valid', 'classification', 'reasons', 'keys' and shape-specific
        diagnostic fields
    """
    details: Dict[str, Any] = {
        "valid": False,
        "key": key,
        "data_type": type(value).__name__,
        "is_array": isinstance(value, list),
        "keys": list(value) if isinstance(value, dict) else [],
        "passes_prefilter": is_valid_chat_data(value),
        "reasons": [],
    }

    variant = RecordClassifier().classify(key, value)
    details["classification"] = variant.kind.value

    if not isinstance(value, (dict, list)):
        details["reasons"].append("Data is not an object or array")
        return details

    if isinstance(value, list):
        details["length"] = len(value)
        details["chat_like_elements"] = sum(1 for item in value if looks_chat_like(item))

    if has_terminal_indicators(value):
        details["terminal_keys"] = sorted(TERMINAL_INDICATORS.intersection(value))
        details["reasons"].append(
            "Rejected due to terminal keys: " + ", ".join(details["terminal_keys"])
        )
        return details

    if isinstance(value, dict):
        details["json_length"] = _json_length(value)
        messages = value.get("messages")
        if isinstance(messages, list) and messages:
            details["message_count"] = len(messages)
            first = messages[0]
            if isinstance(first, dict):
                details["first_message_keys"] = list(first)
                details["first_message_has_role"] = "role" in first
                details["first_message_has_content"] = "content" in first
        if is_rich_chat_data(value):
            details["reasons"].append("Nested chatData with messages or chunks")
        elif is_numeric_key_object(value):
            details["reasons"].append("Numeric-keyed positional object")
        elif is_single_prompt(value):
            details["reasons"].append("Single prompt with text")
        elif looks_like_workbench_chat(value):
            details["reasons"].append("Workbench entries with conversations")
        elif any(isinstance(value.get(f), list) for f in CHAT_ARRAY_FIELDS):
            if details["json_length"] > MIN_CHAT_JSON_LENGTH:
                details["reasons"].append("Chat array field above size threshold")
            else:
                details["reasons"].append(
                    f"Chat array field but JSON length {details['json_length']} "
                    f"<= {MIN_CHAT_JSON_LENGTH}"
                )

    if variant.kind != Classification.UNRECOGNIZED:
        details["valid"] = True
    elif not details["reasons"]:
        details["reasons"].append("No valid chat patterns found")
    return details
