"""
RelayGate

Version: 1.0.0

An authorization-gated relay for opaque payloads.

RelayGate accepts a payload plus routing metadata from a caller, checks a
global circuit breaker, and records the transfer as an auditable event.
It never stores, routes or interprets the payload.

Three operations, one record each:
    relay(caller, to, message_type, data)   any caller, blocked while paused
    transfer_ownership(caller, new_owner)   owner only, non-zero target
    toggle_pause(caller)                    owner only

Usage:
    from relaygate import AccessControlledRelay, InMemoryEventLog

    log = InMemoryEventLog()
    relay = AccessControlledRelay(owner, log)

    relay.relay(owner, recipient, 1, b"\\xde\\xad")
    relay.toggle_pause(owner)

    try:
        relay.relay(owner, recipient, 1, b"\\xde\\xad")
    except CircuitOpenError as e:
        print(e.reason)  # contract is paused
"""

__version__ = "1.0.0"
__license__ = "Apache-2.0"

# Core
from .relay import (
    AccessControlledRelay,
    RelayState,
    CircuitState,
    restore_relay,
)

# Errors
from .errors import (
    RelayError,
    NotOwnerError,
    InvalidOwnerError,
    CircuitOpenError,
    LogIntegrityError,
)

# Identities and records
from .identity import Identity, ZERO_IDENTITY, parse_identity, is_zero_identity, same_identity
from .records import (
    Record,
    RecordType,
    TransferRecord,
    OwnershipChangeRecord,
    PauseStateRecord,
    record_from_dict,
)

# Event logs
from .event_log import (
    EventLog,
    InMemoryEventLog,
    SqliteHashChainLog,
    S3ObjectLockLog,
    get_event_log,
)

# Verification
from .verifier import VerificationResult, verify_event_log


__all__ = [
    "__version__",

    # Core
    "AccessControlledRelay",
    "RelayState",
    "CircuitState",
    "restore_relay",

    # Errors
    "RelayError",
    "NotOwnerError",
    "InvalidOwnerError",
    "CircuitOpenError",
    "LogIntegrityError",

    # Identities and records
    "Identity",
    "ZERO_IDENTITY",
    "parse_identity",
    "is_zero_identity",
    "same_identity",
    "Record",
    "RecordType",
    "TransferRecord",
    "OwnershipChangeRecord",
    "PauseStateRecord",
    "record_from_dict",

    # Event logs
    "EventLog",
    "InMemoryEventLog",
    "SqliteHashChainLog",
    "S3ObjectLockLog",
    "get_event_log",

    # Verification
    "VerificationResult",
    "verify_event_log",
]
