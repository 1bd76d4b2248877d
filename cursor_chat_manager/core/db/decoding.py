"""
Transport decoding for ItemTable values.

Most values are plain JSON text, but some Cursor records are stored as raw
bytes, gzip blobs, or base64 text (optionally wrapping gzip). Values are
unwrapped here before JSON decoding.
"""

import base64
import binascii
import gzip
import json
import logging
import re
import zlib
from typing import Any, Optional, Union

from cursor_chat_manager.core.errors import DecodeFailed

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"
BASE64_PATTERN = re.compile(r"^[A-Za-z0-9+/]+=*$")

RawValue = Union[bytes, bytearray, memoryview, str]


def _looks_like_json_container(text: str) -> bool:
    stripped = text.strip()
    return bool(stripped) and stripped[0] in "{[" and stripped[-1] in "}]"


def _gunzip(data: bytes, key: Optional[str]) -> str:
    try:
        return gzip.decompress(data).decode("utf-8")
    except (OSError, EOFError, zlib.error, UnicodeDecodeError) as e:
        raise DecodeFailed(f"Corrupt gzip payload: {e}", key=key) from e


def _try_base64(text: str, key: Optional[str]) -> Optional[str]:
    if len(text) % 4 != 0 or not BASE64_PATTERN.match(text):
        return None
    try:
        raw = base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError):
        return None

    if raw[:2] == GZIP_MAGIC:
        logger.debug("Decoded base64-wrapped gzip value for %s", key)
        return _gunzip(raw, key)

    try:
        decoded = raw.decode("utf-8")
    except UnicodeDecodeError:
        return None
    return decoded if _looks_like_json_container(decoded) else None


def maybe_decode(value: RawValue, key: Optional[str] = None) -> str:
    """
    Undo any transport encoding on a stored value.

    Parameters
    ----------
    value : bytes or str
        Raw column value from ItemTable
    key : str, optional
        Row key, used for error context only

    Returns
    -------
    str
        Decoded text, or the original text when no encoding was detected

    Raises
    ------
    DecodeFailed
        If a gzip payload is corrupt or bytes are not valid UTF-8
    """
    if isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
        if raw[:2] == GZIP_MAGIC:
            logger.debug("Decompressing gzip value for %s", key)
            return _gunzip(raw, key)
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeFailed(f"Value is not UTF-8: {e}", key=key) from e
    elif isinstance(value, str):
        text = value
    else:
        raise DecodeFailed(f"Unsupported value type: {type(value).__name__}", key=key)

    if _looks_like_json_container(text):
        return text

    decoded = _try_base64(text.strip(), key)
    return decoded if decoded is not None else text


def decode_value(value: RawValue, key: Optional[str] = None) -> Any:
    """
    Transport-decode then JSON-decode a stored value.

    Raises
    ------
    DecodeFailed
        If the value cannot be unwrapped or is not valid JSON
    """
    text = maybe_decode(value, key)
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise DecodeFailed(f"Value is not JSON: {e}", key=key) from e


def is_compressed_key(key: str) -> bool:
    """Whether a key name suggests a compressed value."""
    return (
        key.endswith(":compressed")
        or ".compressed." in key
        or "_gzip" in key
        or "_compressed" in key
    )
