"""
Event log backends for RelayGate.

The relay only needs ``append(record)``. Durable backends chain every
entry to its predecessor and sign it, so an exported log is tamper-evident:

    payload_hash = sha256(canonical({"record": ..., "recorded_at": ...}))
    entry_hash   = sha256(prev_entry_hash || payload_hash)
    sig_b64      = ed25519(canonical(entry without record_json/sig_b64))

An append that raises must leave the log unchanged.
"""

import json
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .keys import KeyProvider
from .records import Record, record_from_dict
from .util import canonicalize, now_epoch, sha256_hex

logger = logging.getLogger(__name__)


# ============================================================
# Hash Chain
# ============================================================

SIGNED_FIELDS = ("seq", "record_type", "recorded_at", "payload_hash", "prev_entry_hash", "entry_hash", "kid")


def chain_entry_hash(prev_entry_hash: Optional[str], payload_hash: str) -> str:
    """
    Compute the hash chain entry hash.

    Args:
        prev_entry_hash: Hash of the previous entry (or None for first)
        payload_hash: Hash of the current payload

    Returns:
        SHA-256 hash of the concatenated hashes
    """
    data = (prev_entry_hash or "").encode("utf-8") + payload_hash.encode("utf-8")
    return sha256_hex(data)


def entry_payload(record_dict: Dict[str, Any], recorded_at: int) -> bytes:
    return canonicalize({"record": record_dict, "recorded_at": recorded_at})


def entry_signing_payload(entry: Dict[str, Any]) -> bytes:
    """Canonical bytes covered by an entry signature."""
    return canonicalize({k: entry.get(k) for k in SIGNED_FIELDS})


def build_entry(
    seq: int,
    prev_entry_hash: Optional[str],
    record: Record,
    recorded_at: int,
    keys: KeyProvider
) -> Dict[str, Any]:
    """Build a signed, chained log entry for ``record``."""
    record_dict = record.to_dict()
    payload_hash = sha256_hex(entry_payload(record_dict, recorded_at))

    entry = {
        "seq": seq,
        "record_type": record.record_type.value,
        "recorded_at": recorded_at,
        "payload_hash": payload_hash,
        "prev_entry_hash": prev_entry_hash,
        "entry_hash": chain_entry_hash(prev_entry_hash, payload_hash),
        "kid": keys.get_kid(),
    }
    _, sig_b64 = keys.sign_entry(entry_signing_payload(entry))
    entry["sig_b64"] = sig_b64
    entry["record_json"] = json.dumps(record_dict, sort_keys=True)
    return entry


# ============================================================
# Backends
# ============================================================

class EventLog(ABC):
    """Append-only, totally ordered sink for relay records."""

    name = "abstract"

    @abstractmethod
    def append(self, record: Record) -> None:
        """Durably append ``record``. Raises if the record was not stored."""
        pass

    def records(self) -> List[Record]:
        """All records in log order."""
        raise NotImplementedError(f"{self.name} log cannot be read back")

    def export(self) -> List[Dict[str, Any]]:
        """JSON-ready entries in log order."""
        return [
            {"seq": seq, "record": record.to_dict()}
            for seq, record in enumerate(self.records(), start=1)
        ]

    def proof(self) -> Dict[str, Any]:
        entries = self.export()
        head = entries[-1].get("entry_hash") if entries else None
        return {"entries": len(entries), "head_entry_hash": head}


class InMemoryEventLog(EventLog):
    """
    In-memory event log for development/testing.

    WARNING: Not suitable for production.
    - Not persistent
    - Not tamper-evident
    """

    name = "memory"

    def __init__(self):
        self._records: List[Record] = []
        self._lock = threading.Lock()

    def append(self, record: Record) -> None:
        with self._lock:
            self._records.append(record)

    def records(self) -> List[Record]:
        with self._lock:
            return list(self._records)

    def __len__(self) -> int:
        return len(self._records)


class SqliteHashChainLog(EventLog):
    """SQLite-backed event log with a signed hash chain."""

    name = "sqlite_hash_chain"

    def __init__(self, db_path: str, keys: KeyProvider):
        self._db_path = Path(db_path)
        self._keys = keys
        self._lock = threading.RLock()
        self._conn: Optional[sqlite3.Connection] = None
        self.init_db()

    def _get_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=FULL;")
            conn.row_factory = sqlite3.Row
            self._conn = conn
        return self._conn

    @contextmanager
    def _transaction(self):
        """
        Context manager for database transactions.
        Automatically commits on success, rolls back on failure.
        """
        with self._lock:
            conn = self._get_connection()
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    def init_db(self) -> None:
        """
        Initialize database schema.
        Safe to call multiple times (uses IF NOT EXISTS).
        """
        with self._transaction() as conn:
            conn.execute("""
            CREATE TABLE IF NOT EXISTS event_log (
                seq INTEGER PRIMARY KEY,
                record_type TEXT NOT NULL,
                recorded_at INTEGER NOT NULL,
                payload_hash TEXT NOT NULL,
                prev_entry_hash TEXT,
                entry_hash TEXT NOT NULL,
                kid TEXT NOT NULL,
                sig_b64 TEXT NOT NULL,
                record_json TEXT NOT NULL
            );""")
            conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_event_log_type
            ON event_log(record_type);""")

    def append(self, record: Record) -> None:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT seq, entry_hash FROM event_log ORDER BY seq DESC LIMIT 1"
            ).fetchone()
            seq = (row["seq"] + 1) if row else 1
            prev = row["entry_hash"] if row else None

            entry = build_entry(seq, prev, record, now_epoch(), self._keys)
            conn.execute(
                "INSERT INTO event_log(seq, record_type, recorded_at, payload_hash, "
                "prev_entry_hash, entry_hash, kid, sig_b64, record_json) VALUES(?,?,?,?,?,?,?,?,?)",
                (entry["seq"], entry["record_type"], entry["recorded_at"], entry["payload_hash"],
                 entry["prev_entry_hash"], entry["entry_hash"], entry["kid"], entry["sig_b64"],
                 entry["record_json"])
            )

    def export(self) -> List[Dict[str, Any]]:
        """Export the complete event log."""
        with self._lock:
            cur = self._get_connection().execute(
                "SELECT seq, record_type, recorded_at, payload_hash, prev_entry_hash, "
                "entry_hash, kid, sig_b64, record_json FROM event_log ORDER BY seq ASC"
            )
            return [dict(row) for row in cur.fetchall()]

    def records(self) -> List[Record]:
        return [record_from_dict(json.loads(e["record_json"])) for e in self.export()]

    def reset(self) -> None:
        """Clear all entries (test isolation only)."""
        with self._transaction() as conn:
            conn.execute("DELETE FROM event_log")

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None


class S3ObjectLockLog(EventLog):
    """Writes each entry as a separate immutable object to an S3 bucket with Object Lock.
    Requires bucket with Object Lock enabled.
    Docs: https://docs.aws.amazon.com/AmazonS3/latest/userguide/object-lock.html
    """

    name = "s3_object_lock"

    def __init__(self, bucket: str, prefix: str, retention_days: int, keys: KeyProvider,
                 legal_hold: str = "OFF", client=None):
        self.bucket = bucket
        self.prefix = prefix.rstrip("/") + "/"
        self.retention_days = retention_days
        self.legal_hold = legal_hold
        self._keys = keys
        self._client = client
        self._lock = threading.Lock()
        self._head: Optional[Dict[str, Any]] = None
        self._loaded = False

    def _get_client(self):
        """Lazy-load boto3 client."""
        if self._client is None:
            try:
                import boto3
            except ImportError as e:
                raise RuntimeError("boto3 required for S3 Object Lock logging. Install with: pip install boto3") from e
            self._client = boto3.client("s3")
        return self._client

    def _object_keys(self) -> List[str]:
        paginator = self._get_client().get_paginator("list_objects_v2")
        keys = []
        for page in paginator.paginate(Bucket=self.bucket, Prefix=self.prefix):
            keys.extend(obj["Key"] for obj in page.get("Contents", []))
        # zero-padded sequence numbers sort lexicographically
        return sorted(keys)

    def _get_entry(self, key: str) -> Dict[str, Any]:
        obj = self._get_client().get_object(Bucket=self.bucket, Key=key)
        return json.loads(obj["Body"].read().decode("utf-8"))

    def append(self, record: Record) -> None:
        with self._lock:
            if not self._loaded:
                keys = self._object_keys()
                self._head = self._get_entry(keys[-1]) if keys else None
                self._loaded = True
                logger.info("Resuming S3 event log s3://%s/%s after %d entries", self.bucket, self.prefix, len(keys))

            seq = (self._head["seq"] + 1) if self._head else 1
            prev = self._head["entry_hash"] if self._head else None
            entry = build_entry(seq, prev, record, now_epoch(), self._keys)

            key = f"{self.prefix}{seq:012d}-{entry['record_type']}.json"
            retain_until = datetime.now(timezone.utc) + timedelta(days=int(self.retention_days))
            self._get_client().put_object(
                Bucket=self.bucket,
                Key=key,
                Body=json.dumps(entry, sort_keys=True).encode("utf-8"),
                ContentType="application/json",
                ObjectLockMode="COMPLIANCE",
                ObjectLockRetainUntilDate=retain_until,
                ObjectLockLegalHoldStatus=self.legal_hold
            )
            self._head = entry

    def export(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [self._get_entry(key) for key in self._object_keys()]

    def records(self) -> List[Record]:
        return [record_from_dict(json.loads(e["record_json"])) for e in self.export()]


def get_event_log(settings, keys: KeyProvider) -> EventLog:
    """Select the event log backend named in ``settings``."""
    backend = settings.event_log_backend
    if backend == "s3_object_lock":
        return S3ObjectLockLog(
            bucket=settings.s3_bucket,
            prefix=settings.s3_prefix,
            retention_days=settings.s3_retention_days,
            keys=keys,
            legal_hold=settings.s3_legal_hold
        )
    if backend == "memory":
        return InMemoryEventLog()
    if backend == "sqlite_hash_chain":
        return SqliteHashChainLog(settings.db_path, keys)
    raise ValueError(f"unknown event log backend: {backend}")
