"""
Configuration module for RelayGate.

Centralizes all configuration with environment variable support
and validation. Settings are read once per call to ``load_settings``
so tests can point the app at a temporary database by patching the
environment.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional

from .identity import is_zero_identity, parse_identity
from .security import ValidationError

# ============================================================
# Defaults
# ============================================================

DEFAULT_DB_PATH = "data/relaygate.db"
DEFAULT_SIGNING_KEY_PATH = "secrets/relaygate_signing_key.json"
DEFAULT_TRUST_STORE_PATH = "trust/trust_store.json"

LOG_BACKENDS = ("memory", "sqlite_hash_chain", "s3_object_lock")
DURABLE_LOG_BACKENDS = ("sqlite_hash_chain", "s3_object_lock")
SIGNER_TYPES = ("file", "ephemeral")


@dataclass(frozen=True)
class Settings:
    env: str = "dev"  # dev|stage|prod
    initial_owner: Optional[str] = None

    # Event log
    event_log_backend: str = "sqlite_hash_chain"
    db_path: str = DEFAULT_DB_PATH
    s3_bucket: str = ""
    s3_prefix: str = "relaygate/event-log/"
    s3_retention_days: int = 365
    s3_legal_hold: str = "OFF"

    # Signing configuration
    signer: str = "file"
    signing_key_path: str = DEFAULT_SIGNING_KEY_PATH
    trust_store_path: str = DEFAULT_TRUST_STORE_PATH

    # Rate limits (requests per minute, per caller)
    relay_rpm: int = 600

    # Logging
    log_level: str = "INFO"
    log_json: bool = True
    debug: bool = False


def _flag(value: str) -> bool:
    return value.lower() in ("1", "true", "yes")


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from the environment (or an explicit mapping)."""
    env = os.environ if environ is None else environ

    return Settings(
        env=env.get("RELAYGATE_ENV", "dev"),
        initial_owner=env.get("RELAYGATE_INITIAL_OWNER") or None,
        event_log_backend=env.get("EVENT_LOG_BACKEND", "sqlite_hash_chain"),
        db_path=env.get("RELAYGATE_DB_PATH", DEFAULT_DB_PATH),
        s3_bucket=env.get("S3_BUCKET", ""),
        s3_prefix=env.get("S3_PREFIX", "relaygate/event-log/"),
        s3_retention_days=int(env.get("S3_RETENTION_DAYS", "365")),
        s3_legal_hold=env.get("S3_LEGAL_HOLD", "OFF"),
        signer=env.get("RELAYGATE_SIGNER", "file"),
        signing_key_path=env.get("SIGNING_KEY_PATH", DEFAULT_SIGNING_KEY_PATH),
        trust_store_path=env.get("TRUST_STORE_PATH", DEFAULT_TRUST_STORE_PATH),
        relay_rpm=int(env.get("RELAY_RPM", "600")),
        log_level=env.get("LOG_LEVEL", "INFO"),
        log_json=_flag(env.get("LOG_JSON", "true")),
        debug=_flag(env.get("RELAYGATE_DEBUG", "")),
    )


# ============================================================
# Validation
# ============================================================

def validate_settings(settings: Settings) -> List[str]:
    """
    Check settings for problems that would stop the relay from starting.

    Returns:
        List of human-readable problems; empty when the settings are usable
    """
    problems = []

    if not settings.initial_owner:
        problems.append("RELAYGATE_INITIAL_OWNER is required")
    else:
        try:
            owner = parse_identity(settings.initial_owner, "RELAYGATE_INITIAL_OWNER")
        except ValidationError as e:
            problems.append(str(e))
        else:
            if is_zero_identity(owner):
                problems.append("RELAYGATE_INITIAL_OWNER must not be the zero identity")

    if settings.event_log_backend not in LOG_BACKENDS:
        problems.append(f"EVENT_LOG_BACKEND must be one of {', '.join(LOG_BACKENDS)}")

    if settings.event_log_backend == "s3_object_lock" and not settings.s3_bucket:
        problems.append("S3_BUCKET is required for the s3_object_lock backend")

    if settings.signer not in SIGNER_TYPES:
        problems.append(f"RELAYGATE_SIGNER must be one of {', '.join(SIGNER_TYPES)}")

    if settings.signer == "file" and not Path(settings.signing_key_path).exists():
        problems.append(f"signing key not found at {settings.signing_key_path}")

    # An ephemeral key dies with the process; a durable log outlives it.
    if settings.signer == "ephemeral" and settings.event_log_backend in DURABLE_LOG_BACKENDS:
        problems.append("the ephemeral signer cannot sign a durable event log")

    if settings.relay_rpm < 1:
        problems.append("RELAY_RPM must be positive")

    if is_production(settings):
        if settings.signer == "ephemeral":
            problems.append("the ephemeral signer is not allowed in prod")
        if settings.event_log_backend == "memory":
            problems.append("the memory event log is not allowed in prod")

    return problems


# ============================================================
# Feature Flags
# ============================================================

def is_production(settings: Settings) -> bool:
    """Check if running in production mode."""
    return settings.env == "prod"


def effective_log_level(settings: Settings) -> str:
    """Debug mode forces DEBUG logging regardless of LOG_LEVEL."""
    return "DEBUG" if settings.debug else settings.log_level
