"""
Logging configuration for RelayGate.

Provides structured JSON logging for audit trails and debugging.
Payload bytes never reach the logs; only their length and SHA-256.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Optional

from .util import sha256_hex

# Context variable for request ID tracking
request_id_var: ContextVar[str] = ContextVar('request_id', default='')


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs logs in a consistent JSON format suitable for
    log aggregation systems like ELK, Splunk, or CloudWatch.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        return json.dumps(log_data)


class AuditLogger:
    """
    Specialized logger for audit events.

    One method per relay outcome, so every admitted and rejected call
    leaves a correlated trace next to the durable event log.
    """

    def __init__(self, name: str = "relaygate.audit"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        """Internal logging method with extra fields."""
        if not self._logger.isEnabledFor(level):
            return

        extra = {
            "event_type": event_type,
            "request_id": request_id_var.get(),
            **kwargs
        }

        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "",
            0,
            f"{event_type}: {kwargs.get('message', '')}",
            (),
            None
        )
        record.extra_fields = extra
        self._logger.handle(record)

    def relay_emitted(self, caller: str, to: str, message_type: int, data: bytes) -> None:
        """Log an admitted relay."""
        self._log(
            logging.INFO,
            "RELAY_EMITTED",
            caller=caller,
            to=to,
            message_type=str(message_type),
            data_length=len(data),
            data_hash=sha256_hex(data),
            message=f"Relay from {caller} to {to}"
        )

    def relay_rejected(self, caller: str, to: str, reason: str) -> None:
        """Log a relay refused by the circuit breaker."""
        self._log(
            logging.WARNING,
            "RELAY_REJECTED",
            caller=caller,
            to=to,
            reason=reason,
            message=f"Relay rejected: {reason}"
        )

    def ownership_transferred(self, previous_owner: str, new_owner: str) -> None:
        """Log an ownership change."""
        self._log(
            logging.WARNING,
            "OWNERSHIP_TRANSFERRED",
            previous_owner=previous_owner,
            new_owner=new_owner,
            message=f"Ownership transferred to {new_owner}"
        )

    def pause_toggled(self, caller: str, is_paused: bool) -> None:
        """Log a circuit breaker flip."""
        self._log(
            logging.WARNING,
            "PAUSE_TOGGLED",
            caller=caller,
            is_paused=is_paused,
            message="Relay paused" if is_paused else "Relay resumed"
        )

    def authorization_denied(self, caller: str, operation: str) -> None:
        """Log an owner-only call by a non-owner."""
        self._log(
            logging.WARNING,
            "AUTHORIZATION_DENIED",
            caller=caller,
            operation=operation,
            message=f"{caller} is not the owner for {operation}"
        )

    def rate_limit_exceeded(self, client_id: str, endpoint: str) -> None:
        """Log rate limit exceeded."""
        self._log(
            logging.WARNING,
            "RATE_LIMIT_EXCEEDED",
            client_id=client_id,
            endpoint=endpoint,
            message=f"Rate limit exceeded for {client_id} on {endpoint}"
        )


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting (recommended for production)
        log_file: Optional file path for log output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Set the request ID for the current context.

    Args:
        request_id: Request ID to set, or None to generate one

    Returns:
        The request ID that was set
    """
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


# Global audit logger instance
audit_log = AuditLogger()
