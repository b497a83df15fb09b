"""
Key management module for RelayGate.

Provides Ed25519 key providers for signing event log entries, so an
exported log can be checked offline against a trust store.
"""

import json
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

from .util import b64d, b64e

TRUST_STORE_KEYS_FIELD = "relay_log_keys"


class KeyProvider(ABC):
    """Abstract interface for log entry signing and trust store retrieval."""

    @abstractmethod
    def sign_entry(self, payload: bytes) -> Tuple[str, str]:
        """
        Sign a payload and return (kid, signature_b64).

        Args:
            payload: The canonical JSON bytes to sign

        Returns:
            Tuple of (key_id, base64_encoded_signature)
        """
        pass

    @abstractmethod
    def get_trust_store(self) -> Dict[str, Any]:
        """
        Get the trust store containing public keys.

        Returns:
            Dict containing relay_log_keys (kid -> public key b64)
        """
        pass

    @abstractmethod
    def get_kid(self) -> str:
        """Get the key ID used for signing."""
        pass


class FileKeyProvider(KeyProvider):
    """
    File-based key provider using an Ed25519 key stored in a JSON file.

    Thread-safe with cached trust store loading.
    """

    def __init__(self, signing_key_path: str, trust_store_path: str):
        self._signing_key_path = signing_key_path
        self._trust_store_path = trust_store_path
        self._lock = threading.RLock()
        self._trust_store_cache: Optional[Dict[str, Any]] = None
        self._trust_store_mtime: float = 0

        with open(self._signing_key_path, "r", encoding="utf-8") as f:
            raw = json.load(f)

        self._kid = raw["kid"]
        self._sk = SigningKey(b64d(raw["private_key_b64"]))

    def sign_entry(self, payload: bytes) -> Tuple[str, str]:
        sig = self._sk.sign(payload).signature
        return self._kid, b64e(sig)

    def get_trust_store(self) -> Dict[str, Any]:
        """
        Get trust store with file modification time caching.
        Reloads if file has been modified.
        """
        with self._lock:
            try:
                mtime = os.path.getmtime(self._trust_store_path)
                if self._trust_store_cache is None or mtime > self._trust_store_mtime:
                    with open(self._trust_store_path, "r", encoding="utf-8") as f:
                        self._trust_store_cache = json.load(f)
                    self._trust_store_mtime = mtime
            except FileNotFoundError:
                if self._trust_store_cache is None:
                    raise

            return self._trust_store_cache

    def get_kid(self) -> str:
        return self._kid


class EphemeralKeyProvider(KeyProvider):
    """
    In-memory key provider for development/testing.

    WARNING: Not suitable for production. The key disappears with the
    process, so signatures written by one run cannot be verified by the
    next unless the trust store is exported.
    """

    def __init__(self, kid: str = "relaygate-ephemeral"):
        self._kid = kid
        self._sk = SigningKey.generate()

    def sign_entry(self, payload: bytes) -> Tuple[str, str]:
        sig = self._sk.sign(payload).signature
        return self._kid, b64e(sig)

    def get_trust_store(self) -> Dict[str, Any]:
        return {
            "trust_store_id": "relaygate-ephemeral",
            TRUST_STORE_KEYS_FIELD: {self._kid: b64e(bytes(self._sk.verify_key))},
        }

    def get_kid(self) -> str:
        return self._kid


def verify_ed25519(signature_b64: str, payload: bytes, public_key_b64: str) -> bool:
    """
    Verify an Ed25519 signature.

    Args:
        signature_b64: Base64-encoded signature
        payload: The signed data
        public_key_b64: Base64-encoded public key

    Returns:
        True if signature is valid, False otherwise
    """
    try:
        vk = VerifyKey(b64d(public_key_b64))
        vk.verify(payload, b64d(signature_b64))
        return True
    except (BadSignatureError, ValueError, TypeError):
        return False


def generate_key_files(
    signing_key_path: str,
    trust_store_path: str,
    kid: str = "relaygate-log-01"
) -> Dict[str, Any]:
    """
    Generate a signing key file and the matching trust store.

    Returns:
        The trust store that was written
    """
    sk = SigningKey.generate()

    Path(signing_key_path).parent.mkdir(parents=True, exist_ok=True)
    Path(trust_store_path).parent.mkdir(parents=True, exist_ok=True)

    with open(signing_key_path, "w", encoding="utf-8") as f:
        json.dump({"kid": kid, "private_key_b64": b64e(bytes(sk))}, f, indent=2)

    trust = {
        "trust_store_id": "relaygate-trust-store",
        "trust_store_version": "1",
        TRUST_STORE_KEYS_FIELD: {kid: b64e(bytes(sk.verify_key))},
    }
    with open(trust_store_path, "w", encoding="utf-8") as f:
        json.dump(trust, f, indent=2)

    return trust


def get_key_provider(
    signer_type: str = "file",
    signing_key_path: str = "secrets/relaygate_signing_key.json",
    trust_store_path: str = "trust/trust_store.json",
) -> KeyProvider:
    """
    Factory function to create the appropriate key provider.

    Args:
        signer_type: "file" or "ephemeral"
        signing_key_path: Path to signing key JSON (for file provider)
        trust_store_path: Path to trust store JSON (for file provider)

    Returns:
        Configured KeyProvider instance
    """
    if signer_type == "file":
        return FileKeyProvider(
            signing_key_path=signing_key_path,
            trust_store_path=trust_store_path
        )
    if signer_type == "ephemeral":
        return EphemeralKeyProvider()
    raise ValueError(f"unknown signer type: {signer_type}")
