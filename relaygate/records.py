"""
Audit records emitted by the relay.

Records are immutable once built. They are handed to the event log and
never stored by the relay itself.

Wire form (``to_dict``):
    - identities as 0x-prefixed hex strings
    - ``data`` as 0x-prefixed hex
    - ``message_type`` as a decimal string, since 256-bit tags exceed
      JSON number precision
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Union

from .identity import Identity
from .util import bytes_to_hex, hex_to_bytes


class RecordType(str, Enum):
    """Record discriminator stored alongside every log entry."""
    TRANSFER = "Transfer"
    OWNERSHIP_TRANSFERRED = "OwnershipTransferred"
    PAUSE_STATE_CHANGED = "PauseStateChanged"


@dataclass(frozen=True)
class TransferRecord:
    """An opaque payload relayed from ``sender`` to ``to``."""
    sender: Identity
    to: Identity
    message_type: int
    data: bytes

    record_type = RecordType.TRANSFER

    def to_dict(self) -> Dict[str, Any]:
        return {
            "record_type": self.record_type.value,
            "from": self.sender,
            "to": self.to,
            "message_type": str(self.message_type),
            "data": bytes_to_hex(self.data),
        }


@dataclass(frozen=True)
class OwnershipChangeRecord:
    """Ownership moved from ``previous_owner`` to ``new_owner``."""
    previous_owner: Identity
    new_owner: Identity

    record_type = RecordType.OWNERSHIP_TRANSFERRED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "record_type": self.record_type.value,
            "previous_owner": self.previous_owner,
            "new_owner": self.new_owner,
        }


@dataclass(frozen=True)
class PauseStateRecord:
    """Circuit breaker state after a toggle."""
    is_paused: bool

    record_type = RecordType.PAUSE_STATE_CHANGED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "record_type": self.record_type.value,
            "is_paused": self.is_paused,
        }


Record = Union[TransferRecord, OwnershipChangeRecord, PauseStateRecord]


def record_from_dict(d: Dict[str, Any]) -> Record:
    """
    Rebuild a record from its ``to_dict`` form.

    Raises:
        ValueError: If the record type is unknown or a field is malformed
    """
    try:
        record_type = RecordType(d.get("record_type"))
    except ValueError:
        raise ValueError(f"unknown record type: {d.get('record_type')!r}")

    try:
        if record_type is RecordType.TRANSFER:
            return TransferRecord(
                sender=d["from"],
                to=d["to"],
                message_type=int(d["message_type"]),
                data=hex_to_bytes(d["data"]),
            )
        if record_type is RecordType.OWNERSHIP_TRANSFERRED:
            return OwnershipChangeRecord(
                previous_owner=d["previous_owner"],
                new_owner=d["new_owner"],
            )
        return PauseStateRecord(is_paused=bool(d["is_paused"]))
    except KeyError as e:
        raise ValueError(f"{record_type.value} record missing field {e.args[0]!r}") from e
