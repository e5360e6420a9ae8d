"""Stable ids for memory entries.

An id is ``id__`` followed by six base58 symbols taken from the SHA-256 of
``"<title>:<timestamp_ms>"``. Base58 drops ``0``, ``O``, ``I`` and ``l`` so ids
stay readable in filenames and links.
"""

from __future__ import annotations

import hashlib
import re

BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
ID_PREFIX = "id__"
ID_LENGTH = 6

ID_BODY = rf"{re.escape(ID_PREFIX)}[{BASE58_ALPHABET}]{{{ID_LENGTH}}}"
ID_PATTERN = re.compile(rf"^{ID_BODY}$")

# Well-known id of the index note, overwritten in place on every defrag run.
INDEX_NOTE_ID = "id__indexx"


def to_base58(data: bytes) -> str:
    num = int.from_bytes(data, "big")
    out = []
    while num > 0:
        num, rem = divmod(num, 58)
        out.append(BASE58_ALPHABET[rem])
    return "".join(reversed(out))


def is_valid_id(value: str) -> bool:
    return bool(ID_PATTERN.match(value))


def generate_id(title: str, timestamp_ms: int) -> str:
    """Derive the id for a note titled ``title`` created at ``timestamp_ms``."""
    digest = hashlib.sha256(f"{title}:{timestamp_ms}".encode("utf-8")).digest()
    return f"{ID_PREFIX}{to_base58(digest)[:ID_LENGTH]}"
