"""
RelayGate access-controlled relay.

The relay owns a single ``RelayState`` (owner identity, pause flag) and
exposes three operations:

    relay(caller, to, message_type, data)   -> TransferRecord
    transfer_ownership(caller, new_owner)   -> OwnershipChangeRecord
    toggle_pause(caller)                    -> PauseStateRecord

Each operation checks its preconditions, appends exactly one record to the
injected event log, and only then commits any state change. A rejected call
or a failing append leaves the state untouched and the log unchanged.

The relay does no locking of its own. The host must serialize calls against
an instance (see ``relaygate.main``).
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from .errors import CircuitOpenError, InvalidOwnerError, LogIntegrityError, NotOwnerError
from .event_log import EventLog
from .identity import Identity, is_zero_identity, same_identity
from .logging_config import audit_log
from .records import (
    OwnershipChangeRecord,
    PauseStateRecord,
    Record,
    TransferRecord,
)

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    """Pause flag as a two-state machine."""
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"


@dataclass
class RelayState:
    """Authorization state for one relay instance."""
    owner: Identity
    paused: bool = False

    @property
    def circuit(self) -> CircuitState:
        return CircuitState.SUSPENDED if self.paused else CircuitState.ACTIVE

    def to_dict(self):
        return {"owner": self.owner, "paused": self.paused, "circuit": self.circuit.value}


class AccessControlledRelay:
    """
    Ownership- and pause-gated relay.

    Identities are compared ignoring hex case, so callers that skip
    ``parse_identity`` still match the stored owner.

    Args:
        initializer: Identity of the constructing caller; becomes the owner
        event_log: Append-only log receiving every emitted record
    """

    def __init__(self, initializer: Identity, event_log: EventLog):
        self._state = RelayState(owner=initializer)
        self._log = event_log

    # ------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------

    @property
    def owner(self) -> Identity:
        return self._state.owner

    @property
    def paused(self) -> bool:
        return self._state.paused

    @property
    def event_log(self) -> EventLog:
        return self._log

    def state(self) -> RelayState:
        """Snapshot of the current state."""
        return RelayState(owner=self._state.owner, paused=self._state.paused)

    # ------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------

    def relay(self, caller: Identity, to: Identity, message_type: int, data: bytes) -> TransferRecord:
        """
        Emit a transfer record for an opaque payload.

        Any caller may relay; the only gate is the circuit breaker. ``to``
        is not checked against any registry.

        Raises:
            CircuitOpenError: If the relay is paused
        """
        if self._state.paused:
            audit_log.relay_rejected(caller=caller, to=to, reason=CircuitOpenError.code)
            raise CircuitOpenError()

        record = TransferRecord(sender=caller, to=to, message_type=message_type, data=bytes(data))
        self._log.append(record)

        audit_log.relay_emitted(caller=caller, to=to, message_type=message_type, data=record.data)
        return record

    def transfer_ownership(self, caller: Identity, new_owner: Identity) -> OwnershipChangeRecord:
        """
        Hand ownership to ``new_owner``.

        The record captures the outgoing owner before the state changes.
        Transferring to the current owner is allowed and still emits.

        Raises:
            NotOwnerError: If ``caller`` is not the owner
            InvalidOwnerError: If ``new_owner`` is missing or the zero identity
        """
        self._only_owner(caller, "transfer_ownership")
        if is_zero_identity(new_owner):
            raise InvalidOwnerError()

        record = OwnershipChangeRecord(previous_owner=self._state.owner, new_owner=new_owner)
        self._log.append(record)
        self._state.owner = new_owner

        audit_log.ownership_transferred(previous_owner=record.previous_owner, new_owner=new_owner)
        return record

    def toggle_pause(self, caller: Identity) -> PauseStateRecord:
        """
        Flip the circuit breaker.

        The record reports the value after the flip.

        Raises:
            NotOwnerError: If ``caller`` is not the owner
        """
        self._only_owner(caller, "toggle_pause")

        record = PauseStateRecord(is_paused=not self._state.paused)
        self._log.append(record)
        self._state.paused = record.is_paused

        audit_log.pause_toggled(caller=caller, is_paused=record.is_paused)
        return record

    def _only_owner(self, caller: Identity, operation: str) -> None:
        if not same_identity(caller, self._state.owner):
            audit_log.authorization_denied(caller=caller, operation=operation)
            raise NotOwnerError()


# ============================================================
# State Restoration
# ============================================================

def restore_relay(
    initial_owner: Identity,
    records: Iterable[Record],
    event_log: EventLog,
) -> AccessControlledRelay:
    """
    Rebuild a relay from the records already in its log.

    Ownership and pause records are replayed onto a fresh state without being
    re-emitted. Transfer records carry no state and are skipped.

    Args:
        initial_owner: Identity that originally constructed the relay
        records: Logged records in log order
        event_log: Log the restored relay keeps appending to

    Returns:
        Relay whose state matches the end of the log

    Raises:
        LogIntegrityError: If a record contradicts the replayed state
    """
    relay = AccessControlledRelay(initial_owner, event_log)
    state = relay._state
    replayed = 0

    for seq, record in enumerate(records, start=1):
        if isinstance(record, OwnershipChangeRecord):
            if not same_identity(record.previous_owner, state.owner):
                raise LogIntegrityError(seq, f"previous owner {record.previous_owner} does not match {state.owner}")
            if is_zero_identity(record.new_owner):
                raise LogIntegrityError(seq, "ownership transferred to the zero identity")
            state.owner = record.new_owner
        elif isinstance(record, PauseStateRecord):
            if record.is_paused == state.paused:
                raise LogIntegrityError(seq, f"pause record {record.is_paused} does not flip the flag")
            state.paused = record.is_paused
        replayed += 1

    logger.info("Restored relay from %d records: owner=%s paused=%s", replayed, state.owner, state.paused)
    return relay
