"""
Keyed-Hash Signature
====================
Message integrity scheme mandated by the settlement network.

This is NOT HMAC. The network computes:

    1. canonical JSON of the payload
    2. reverse payload bytes, reverse secret bytes
    3. concatenate reversed payload + reversed secret
    4. base64 encode
    5. SHA-512 of the base64 text, lowercase hex
    6. every 8th hex character from index 0 through 120 (16 chars)
    7. uppercase

The result is deterministic and salt-free: identical payload and secret
always give the identical signature, so the signature on its own offers no
replay protection.
"""

import base64
import hashlib
import hmac
import json
from typing import Any, Union

import structlog

from gateway_core.errors import ConfigurationError

logger = structlog.get_logger(__name__)

SIGNATURE_LENGTH = 16
SAMPLE_STEP = 8
SAMPLE_END = 120

Payload = Union[str, bytes, dict, list]


def canonical_bytes(payload: Any) -> bytes:
    """
    Serialize a payload exactly as the network's reference client does.

    Compact separators, key insertion order preserved, non-ASCII kept
    literal, UTF-8 encoded. Strings and bytes are taken as already
    serialized.
    """
    if isinstance(payload, bytes):
        return payload
    if isinstance(payload, str):
        return payload.encode("utf-8")
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def compute_signature(payload: Any, secret: str) -> str:
    """
    Compute the 16-character keyed-hash signature.

    Args:
        payload: JSON-serializable payload (or pre-serialized str/bytes)
        secret: Pre-shared key

    Returns:
        Uppercase 16-character signature
    """
    reversed_payload = canonical_bytes(payload)[::-1]
    reversed_secret = secret.encode("utf-8")[::-1]

    encoded = base64.b64encode(reversed_payload + reversed_secret)
    digest = hashlib.sha512(encoded).hexdigest()

    return digest[0:SAMPLE_END + 1:SAMPLE_STEP].upper()


def verify_signature(payload: Any, provided_signature: str, secret: str) -> bool:
    """
    Verify a keyed-hash signature using constant-time comparison.

    The provided signature is compared case-insensitively.
    """
    if not isinstance(provided_signature, str) or not provided_signature:
        return False
    expected = compute_signature(payload, secret)
    return hmac.compare_digest(
        expected.encode("ascii"),
        provided_signature.strip().upper().encode("utf-8"),
    )


class KeyedHashSigner:
    """
    Signer bound to one pre-shared key.

    A missing key is a startup error; sign/verify never raise for valid
    payloads.
    """

    def __init__(self, secret: str):
        if not secret:
            raise ConfigurationError("Settlement pre-shared key is not configured")
        self._secret = secret

    def sign(self, payload: Any) -> str:
        return compute_signature(payload, self._secret)

    def verify(self, payload: Any, signature: str) -> bool:
        return verify_signature(payload, signature, self._secret)
