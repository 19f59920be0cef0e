from __future__ import annotations

import os
from typing import Any

from .constants import MAX_NAME_BYTES, PUBLIC_KEY_HEX_LEN, PUBLIC_KEY_SIZE


def expand_path(p: str) -> str:
    return os.path.expanduser(os.path.expandvars(p))


def truncate_utf8(value: str, max_bytes: int) -> str:
    """Cut `value` to at most `max_bytes` UTF-8 bytes without splitting a character."""
    if max_bytes <= 0:
        return value
    raw = value.encode("utf-8", "replace")
    if len(raw) <= max_bytes:
        return value
    return raw[:max_bytes].decode("utf-8", "ignore")


def clean_name(value: Any, max_bytes: int = MAX_NAME_BYTES) -> str:
    """Make a peer-supplied name safe to store and display.

    Newlines, tabs and other control characters become spaces; NUL is dropped.
    """
    if isinstance(value, (bytes, bytearray)):
        value = bytes(value).decode("utf-8", "replace")
    if not isinstance(value, str):
        return ""

    s = value.replace("\x00", "")
    s = "".join(" " if (ch < " " or ch == "\x7f") else ch for ch in s)
    return truncate_utf8(s, max_bytes)


def parse_public_key_hex(text: Any) -> bytes | None:
    """Parse an exact-length hex public key. Returns None for anything else."""
    if not isinstance(text, str):
        return None
    if len(text) != PUBLIC_KEY_HEX_LEN:
        return None
    try:
        key = bytes.fromhex(text)
    except ValueError:
        return None
    if len(key) != PUBLIC_KEY_SIZE:
        return None
    return key


def parse_chat_id(value: Any) -> bytes | None:
    if isinstance(value, (bytes, bytearray)):
        b = bytes(value)
        return b if len(b) == PUBLIC_KEY_SIZE else None
    return parse_public_key_hex(value)


def fmt_key(key: Any, *, prefix: int = 12) -> str:
    if isinstance(key, (bytes, bytearray)) and key:
        s = bytes(key).hex()
        return s if prefix <= 0 else s[: min(prefix, len(s))]
    return "-"
