"""
Utility functions for RelayGate.

Provides canonical JSON serialization, hashing, encoding, and time utilities.
"""

import base64
import hashlib
import json
import time
from typing import Any, Union


def canonicalize(obj: Any) -> bytes:
    """
    Convert object to canonical JSON bytes.

    Canonical JSON:
    - Lexicographically sorted keys
    - No whitespace
    - UTF-8 encoded
    """
    s = json.dumps(obj, sort_keys=True, separators=(',', ':'), ensure_ascii=False)
    return s.encode('utf-8')


def sha256_hex(data: Union[bytes, str]) -> str:
    """Compute SHA-256 hash and return as hex string."""
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).hexdigest()


def now_epoch() -> int:
    """Get current Unix timestamp as integer."""
    return int(time.time())


def b64e(b: bytes) -> str:
    """Base64 encode bytes to string."""
    return base64.b64encode(b).decode('ascii')


def b64d(s: str) -> bytes:
    """Base64 decode string to bytes."""
    return base64.b64decode(s.encode('ascii'))


def bytes_to_hex(b: bytes) -> str:
    """Encode bytes as a 0x-prefixed lowercase hex string."""
    return "0x" + b.hex()


def hex_to_bytes(s: str) -> bytes:
    """
    Decode a hex string (with or without 0x prefix) to bytes.

    Raises ValueError on odd length or non-hex characters.
    """
    if s[:2] in ("0x", "0X"):
        s = s[2:]
    return bytes.fromhex(s)
