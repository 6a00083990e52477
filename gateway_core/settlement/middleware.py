"""
Settlement Signature Middleware
===============================
Validates MAC-signed POSTs from the settlement network before any handler
sees their payload.

Usage:
    app.add_middleware(
        SettlementSignatureMiddleware,
        signer=KeyedHashSigner(settings.settlement_preshared_key),
        path_prefixes=("/api/icecash/",),
    )

    @app.post("/api/icecash/callback")
    async def callback(request: Request):
        arguments = request.state.settlement_arguments
"""

import json
from typing import Iterable, Tuple

import structlog

from gateway_core.errors import SignatureVerificationFailure, auth_failed_response

from .envelope import open_envelope
from .signature import KeyedHashSigner

logger = structlog.get_logger(__name__)

DEFAULT_PATH_PREFIXES: Tuple[str, ...] = ("/api/icecash/",)


async def read_body(receive) -> bytes:
    """Drain the ASGI request body."""
    chunks = []
    more_body = True
    while more_body:
        message = await receive()
        if message["type"] != "http.request":
            break
        chunks.append(message.get("body", b""))
        more_body = message.get("more_body", False)
    return b"".join(chunks)


def replay_receive(body: bytes, receive):
    """Build a receive callable that hands the already-read body downstream."""
    delivered = False

    async def _receive():
        nonlocal delivered
        if not delivered:
            delivered = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return _receive


class SettlementSignatureMiddleware:
    """
    ASGI middleware for inbound settlement-network requests.

    Only POSTs under the configured path prefixes are checked; health
    endpoints are always skipped. Rejections use the uniform 401 body.
    """

    def __init__(
        self,
        app,
        signer: KeyedHashSigner,
        path_prefixes: Iterable[str] = DEFAULT_PATH_PREFIXES,
    ):
        self.app = app
        self.signer = signer
        self.path_prefixes = tuple(path_prefixes)

    def _applies(self, scope) -> bool:
        path = scope.get("path", "")
        if scope.get("method") != "POST" or "/health" in path:
            return False
        return any(path.startswith(prefix) for prefix in self.path_prefixes)

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http" or not self._applies(scope):
            await self.app(scope, receive, send)
            return

        body = await read_body(receive)
        state = scope.setdefault("state", {})
        request_id = state.get("request_id")

        try:
            try:
                payload = json.loads(body or b"null")
            except ValueError:
                raise SignatureVerificationFailure("Body is not JSON", reason="malformed_envelope")
            arguments = open_envelope(payload, self.signer)
        except SignatureVerificationFailure as e:
            logger.warning(
                "settlement_signature_rejected",
                reason=e.reason,
                detail=e.message,
                path=scope.get("path"),
            )
            response = auth_failed_response(request_id)
            await response(scope, receive, send)
            return

        state["settlement_arguments"] = arguments
        state["settlement_verified"] = True
        logger.info(
            "settlement_signature_verified",
            path=scope.get("path"),
            partner_reference=arguments.get("PartnerReference") if isinstance(arguments, dict) else None,
        )
        await self.app(scope, replay_receive(body, receive), send)
