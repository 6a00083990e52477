"""
Idempotency Middleware
======================
Applies the IdempotencyGuard to POST requests carrying ``Idempotency-Key``.

Usage:
    guard = IdempotencyGuard(InMemoryIdempotencyStore(), ttl=3600)
    app.add_middleware(IdempotencyMiddleware, guard=guard)

Install it inside the partner authentication middleware so keys are scoped
per partner.
"""

from typing import Iterable, List

from starlette.datastructures import Headers
import structlog

from .guard import IdempotencyGuard
from .models import StoredResponse

logger = structlog.get_logger(__name__)

IDEMPOTENCY_HEADER = "Idempotency-Key"
REPLAYED_HEADER = "Idempotent-Replayed"

# Recomputed when the stored response is sent.
_SKIPPED_HEADERS = {b"content-length"}


class IdempotencyMiddleware:
    """ASGI middleware that captures first responses and replays them."""

    def __init__(
        self,
        app,
        guard: IdempotencyGuard,
        header_name: str = IDEMPOTENCY_HEADER,
        methods: Iterable[str] = ("POST",),
    ):
        self.app = app
        self.guard = guard
        self.header_name = header_name
        self.methods = {m.upper() for m in methods}

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http" or scope.get("method") not in self.methods:
            await self.app(scope, receive, send)
            return

        client_key = Headers(scope=scope).get(self.header_name)
        if not client_key or not client_key.strip():
            await self.app(scope, receive, send)
            return

        client_key = client_key.strip()
        principal = scope.get("state", {}).get("principal")
        if principal is not None:
            client_key = f"{principal.partner_code}:{client_key}"
        route_key = f"{scope['method']} {scope['path']}"

        async def handler() -> StoredResponse:
            return await self._capture(scope, receive)

        response = await self.guard.guard(route_key, client_key, handler)
        await self._send(response, send)

    async def _capture(self, scope, receive) -> StoredResponse:
        status_code = 500
        raw_headers: List = []
        chunks: List[bytes] = []

        async def capture_send(message):
            nonlocal status_code, raw_headers
            if message["type"] == "http.response.start":
                status_code = message["status"]
                raw_headers = list(message.get("headers", []))
            elif message["type"] == "http.response.body":
                chunks.append(message.get("body", b""))

        await self.app(scope, receive, capture_send)

        headers = Headers(raw=raw_headers)
        return StoredResponse(
            status_code=status_code,
            body=b"".join(chunks),
            media_type=headers.get("content-type", "application/json"),
            headers=tuple(
                (name.decode("latin-1"), value.decode("latin-1"))
                for name, value in raw_headers
                if name.lower() not in _SKIPPED_HEADERS
            ),
        )

    async def _send(self, response: StoredResponse, send) -> None:
        headers = [
            (name.encode("latin-1"), value.encode("latin-1"))
            for name, value in response.headers
        ]
        if not any(name.lower() == b"content-type" for name, _ in headers):
            headers.append((b"content-type", response.media_type.encode("latin-1")))
        headers.append((b"content-length", str(len(response.body)).encode("latin-1")))
        if response.replayed:
            headers.append((REPLAYED_HEADER.lower().encode("latin-1"), b"true"))

        await send({"type": "http.response.start", "status": response.status_code, "headers": headers})
        await send({"type": "http.response.body", "body": response.body, "more_body": False})
