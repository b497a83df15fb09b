"""
RelayGate Offline Log Verifier

Verifies an exported event log without network access: every payload
hash, every chain link and every entry signature. Suitable for auditors
reconstructing ownership and pause history from a log dump.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .event_log import chain_entry_hash, entry_payload, entry_signing_payload
from .keys import TRUST_STORE_KEYS_FIELD, verify_ed25519
from .util import sha256_hex


@dataclass
class VerificationResult:
    """Outcome of verifying an exported log."""
    valid: bool
    entries: int
    reason: Optional[str] = None
    seq: Optional[int] = None
    head_entry_hash: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "entries": self.entries,
            "reason": self.reason,
            "seq": self.seq,
            "head_entry_hash": self.head_entry_hash,
        }


def verify_event_log(entries: List[Dict[str, Any]], trust_store: Dict[str, Any]) -> VerificationResult:
    """
    Verify a signed hash-chain export (``GET /event_log``).

    Args:
        entries: Exported entries in log order
        trust_store: Trust store holding ``relay_log_keys``

    Returns:
        VerificationResult; on failure ``seq`` names the first bad entry
    """
    keys = trust_store.get(TRUST_STORE_KEYS_FIELD, {})
    prev = None
    expected_seq = 1

    for entry in entries:
        seq = entry.get("seq")

        def fail(reason: str) -> VerificationResult:
            return VerificationResult(valid=False, entries=len(entries), reason=reason, seq=seq)

        if seq != expected_seq:
            return fail(f"sequence gap: expected {expected_seq}")

        try:
            record_dict = json.loads(entry["record_json"])
        except (KeyError, TypeError, ValueError):
            return fail("unreadable record_json")

        if record_dict.get("record_type") != entry.get("record_type"):
            return fail("record_type does not match record body")

        payload_hash = sha256_hex(entry_payload(record_dict, entry.get("recorded_at")))
        if payload_hash != entry.get("payload_hash"):
            return fail("payload hash mismatch")

        if entry.get("prev_entry_hash") != prev:
            return fail("previous entry hash mismatch")

        if chain_entry_hash(prev, payload_hash) != entry.get("entry_hash"):
            return fail("chain mismatch")

        pub = keys.get(entry.get("kid"))
        if not pub:
            return fail(f"unknown key ID: {entry.get('kid')}")

        if not verify_ed25519(entry.get("sig_b64", ""), entry_signing_payload(entry), pub):
            return fail("invalid signature")

        prev = entry["entry_hash"]
        expected_seq += 1

    return VerificationResult(valid=True, entries=len(entries), head_entry_hash=prev)
