"""
Relay error taxonomy.

Every error is raised synchronously before any record is emitted or any
state is mutated. Each carries a stable ``code`` for machine consumers and
a fixed human-readable ``reason``.
"""


class RelayError(Exception):
    """Base class for rejected relay operations."""

    code = "RELAY_ERROR"
    reason = "relay operation rejected"

    def __init__(self, reason: str = None):
        if reason is not None:
            self.reason = reason
        super().__init__(self.reason)

    def to_dict(self):
        return {"error": self.code, "reason": self.reason}


class NotOwnerError(RelayError):
    """Caller is not the current owner."""

    code = "NOT_OWNER"
    reason = "caller is not the owner"


class InvalidOwnerError(RelayError):
    """Ownership transfer targets the zero identity."""

    code = "INVALID_OWNER"
    reason = "new owner is the zero address"


class CircuitOpenError(RelayError):
    """Relay attempted while the circuit breaker is engaged."""

    code = "CIRCUIT_OPEN"
    reason = "contract is paused"


class LogIntegrityError(Exception):
    """Raised when an event log cannot be replayed into a consistent state."""

    def __init__(self, seq: int, message: str):
        self.seq = seq
        self.message = message
        super().__init__(f"entry {seq}: {message}")
