"""
Webhook Signing
===============
Standard HMAC-SHA256 signing for partner callbacks.

This is separate from the settlement network's keyed-hash scheme: partners
verify ``X-Webhook-Signature`` with any stock HMAC library.
"""

import hashlib
import hmac
import json
from typing import Any, Union

SIGNATURE_HEADER = "X-Webhook-Signature"


def canonical_body(payload: Any) -> bytes:
    """Compact JSON body, exactly the bytes that are sent and signed."""
    if isinstance(payload, bytes):
        return payload
    if isinstance(payload, str):
        return payload.encode("utf-8")
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str).encode("utf-8")


def sign_body(body: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of ``body``."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_webhook_signature(payload: Union[bytes, str, dict], signature: str, secret: str) -> bool:
    """
    Verify a received webhook signature using constant-time comparison.

    Args:
        payload: Raw request body (preferred) or the decoded payload
        signature: Value of the X-Webhook-Signature header
        secret: Shared webhook secret

    Returns:
        True if the signature matches
    """
    if not signature or not secret:
        return False
    expected = sign_body(canonical_body(payload), secret)
    return hmac.compare_digest(expected, signature.strip().lower())
