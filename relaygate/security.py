"""
Security module for RelayGate.

Provides input validation and request-identity helpers for the HTTP host.
The relay core trusts the identities it is handed; everything arriving
over the wire passes through here first.
"""

import re
import uuid
from typing import Any, Dict, Optional


# ============================================================
# Input Validation
# ============================================================

HEX_PATTERN = re.compile(r'^[a-fA-F0-9]*$')
IDENTITY_PATTERN = re.compile(r'^0x[a-f0-9]{40}$')
REQUEST_ID_PATTERN = re.compile(r'^[a-zA-Z0-9_-]{1,64}$')

MAX_MESSAGE_TYPE = 2 ** 256 - 1

CALLER_HEADER = "x-caller-identity"
REQUEST_ID_HEADER = "x-request-id"


class ValidationError(Exception):
    """Raised when input validation fails."""
    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


def validate_hex_payload(value: str, field_name: str = "data") -> str:
    """
    Validate a 0x-prefixed hex payload.

    An empty payload (``"0x"``) is accepted; the relay does not bound or
    interpret payload contents.

    Args:
        value: The string to validate
        field_name: Name of the field (for error messages)

    Returns:
        The validated (lowercased) hex string, 0x-prefixed

    Raises:
        ValidationError: If validation fails
    """
    if not isinstance(value, str):
        raise ValidationError(field_name, "must be a string")

    value = value.strip().lower()

    if not value.startswith("0x"):
        raise ValidationError(field_name, "must be 0x-prefixed hexadecimal")

    digits = value[2:]
    if not HEX_PATTERN.match(digits):
        raise ValidationError(field_name, "must be valid hexadecimal")

    if len(digits) % 2:
        raise ValidationError(field_name, "must contain whole bytes")

    return value


def validate_message_type(value: Any, field_name: str = "message_type") -> int:
    """
    Validate an unsigned 256-bit message type tag.

    Accepts an int or a decimal string (large tags do not survive JSON
    number precision in most clients).
    """
    if isinstance(value, bool):
        raise ValidationError(field_name, "must be an integer")

    try:
        int_value = int(value)
    except (TypeError, ValueError):
        raise ValidationError(field_name, "must be an integer")

    if isinstance(value, float) and value != int_value:
        raise ValidationError(field_name, "must be an integer")

    if int_value < 0:
        raise ValidationError(field_name, "must not be negative")

    if int_value > MAX_MESSAGE_TYPE:
        raise ValidationError(field_name, "must fit in 256 bits")

    return int_value


# ============================================================
# Request Identity
# ============================================================

def caller_from_headers(headers: Dict[str, str]) -> Optional[str]:
    """
    Extract the raw caller identity set by the authenticating gateway.

    Returns None when the header is absent; parsing is left to
    ``identity.parse_identity``.
    """
    value = headers.get(CALLER_HEADER, "")
    return value.strip() or None


def request_id_from_headers(headers: Dict[str, str]) -> str:
    """Reuse a well-formed inbound request ID, otherwise mint a new one."""
    inbound = headers.get(REQUEST_ID_HEADER, "")
    if inbound and REQUEST_ID_PATTERN.match(inbound):
        return inbound
    return str(uuid.uuid4())


def extract_client_id(caller: str) -> str:
    """
    Derive a rate-limit key for a request.

    Only requests that carried a parsed caller identity reach the limiter,
    so the identity alone keys the window.
    """
    return f"caller:{caller}"
