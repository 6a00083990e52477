"""
Signed Envelope
===============
Wire unit exchanged with the settlement network:

    {"MAC": "<16-char signature>", "Arguments": <payload>, "Mode": "SH"}
"""

from dataclasses import dataclass
from typing import Any, Dict

import structlog

from gateway_core.errors import SignatureVerificationFailure

from .signature import KeyedHashSigner

logger = structlog.get_logger(__name__)

MODE_SHA = "SH"


@dataclass(frozen=True)
class SignedEnvelope:
    """A payload plus its keyed-hash signature."""
    arguments: Any
    mac: str
    mode: str = MODE_SHA

    def to_wire(self) -> Dict[str, Any]:
        return {"MAC": self.mac, "Arguments": self.arguments, "Mode": self.mode}


def seal(arguments: Any, signer: KeyedHashSigner) -> SignedEnvelope:
    """Wrap a payload for sending to the settlement network."""
    envelope = SignedEnvelope(arguments=arguments, mac=signer.sign(arguments))
    logger.debug(
        "settlement_envelope_sealed",
        function=arguments.get("Function") if isinstance(arguments, dict) else None,
        partner_reference=arguments.get("PartnerReference") if isinstance(arguments, dict) else None,
    )
    return envelope


def open_envelope(body: Any, signer: KeyedHashSigner) -> Any:
    """
    Validate an inbound envelope and return its ``Arguments``.

    The signature is recomputed over ``Arguments`` and compared with ``MAC``.
    Nothing inside ``Arguments`` is looked at before that check passes.

    Raises:
        SignatureVerificationFailure: On missing fields, a Mode other than
            "SH", or a MAC mismatch. ``reason`` carries the internal cause.
    """
    if not isinstance(body, dict):
        raise SignatureVerificationFailure("Envelope is not a JSON object", reason="malformed_envelope")

    mac = body.get("MAC")
    arguments = body.get("Arguments")
    mode = body.get("Mode")

    if not mac or arguments is None:
        raise SignatureVerificationFailure("Missing MAC or Arguments", reason="missing_fields")

    if mode != MODE_SHA:
        raise SignatureVerificationFailure(f"Invalid Mode {mode!r}", reason="invalid_mode")

    if not signer.verify(arguments, mac):
        raise SignatureVerificationFailure("MAC mismatch", reason="invalid_mac")

    return arguments
