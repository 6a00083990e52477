"""
Settlement Network Integrity
============================
Keyed-hash signing for messages exchanged with the settlement network.
"""

from .signature import (
    KeyedHashSigner,
    canonical_bytes,
    compute_signature,
    verify_signature,
    SIGNATURE_LENGTH,
)
from .envelope import SignedEnvelope, seal, open_envelope, MODE_SHA
from .middleware import SettlementSignatureMiddleware, read_body, replay_receive
from .client import SettlementClient
from .exceptions import (
    SettlementError,
    SettlementUnavailableError,
    SettlementTimeoutError,
    SettlementRejectedError,
    SettlementAuthError,
)

__all__ = [
    # Signature
    "KeyedHashSigner",
    "canonical_bytes",
    "compute_signature",
    "verify_signature",
    "SIGNATURE_LENGTH",
    # Envelope
    "SignedEnvelope",
    "seal",
    "open_envelope",
    "MODE_SHA",
    # Middleware
    "SettlementSignatureMiddleware",
    "read_body",
    "replay_receive",
    # Client
    "SettlementClient",
    # Exceptions
    "SettlementError",
    "SettlementUnavailableError",
    "SettlementTimeoutError",
    "SettlementRejectedError",
    "SettlementAuthError",
]
