"""
Caller and recipient identities.

An identity is a 20-byte account identifier written as a 0x-prefixed,
lowercase, 40-hex-digit string. The all-zero identity is the null identity
and can never own the relay.
"""

from typing import Optional

from .security import IDENTITY_PATTERN, ValidationError

Identity = str

ZERO_IDENTITY: Identity = "0x" + "0" * 40


def parse_identity(value, field_name: str = "identity") -> Identity:
    """
    Normalize and validate an identity string.

    Args:
        value: Raw identity, any hex case, 0x prefix required
        field_name: Name of the field (for error messages)

    Returns:
        The lowercased identity

    Raises:
        ValidationError: If the value is not a well-formed identity
    """
    if not isinstance(value, str):
        raise ValidationError(field_name, "must be a string")

    normalized = value.strip().lower()
    if not IDENTITY_PATTERN.match(normalized):
        raise ValidationError(field_name, "must be a 0x-prefixed 20-byte hex identity")

    return normalized


def is_zero_identity(value: Optional[Identity]) -> bool:
    """True for the null identity, including a missing or empty value."""
    return not value or value.lower() == ZERO_IDENTITY


def same_identity(a: Optional[Identity], b: Optional[Identity]) -> bool:
    """Compare two identities ignoring hex case. Missing values never match."""
    if not a or not b:
        return False
    return a.lower() == b.lower()
