"""
Request Context Middleware
==========================
Binds a request id to every log line emitted while a request is handled.
"""

import secrets
import time

import structlog

from .setup import request_id_var

logger = structlog.get_logger("http")

REQUEST_ID_HEADER = "X-Request-ID"


def generate_request_id() -> str:
    """Generate a request id of the form ``GW-<epoch ms>-<hex>``."""
    return f"GW-{int(time.time() * 1000)}-{secrets.token_hex(3).upper()}"


class RequestContextMiddleware:
    """
    ASGI middleware for request id propagation and access logging.

    Uses the incoming ``X-Request-ID`` when present, otherwise generates one.
    The id is stored on ``request.state.request_id``, bound to structlog
    contextvars and echoed back on the response.
    """

    def __init__(self, app, header_name: str = REQUEST_ID_HEADER):
        self.app = app
        self.header_name = header_name
        self._header_key = header_name.lower().encode("latin-1")

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        request_id = headers.get(self._header_key, b"").decode("latin-1").strip()
        if not request_id:
            request_id = generate_request_id()

        method = scope.get("method", "")
        path = scope.get("path", "")

        scope.setdefault("state", {})["request_id"] = request_id
        token = request_id_var.set(request_id)
        structlog.contextvars.bind_contextvars(
            request_id=request_id, method=method, path=path
        )

        start_time = time.time()
        status_code = 500

        async def send_wrapper(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 500)
                response_headers = list(message.get("headers", []))
                if not any(k.lower() == self._header_key for k, _ in response_headers):
                    response_headers.append(
                        (self._header_key, request_id.encode("latin-1"))
                    )
                message["headers"] = response_headers
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            duration_ms = int((time.time() - start_time) * 1000)
            log = logger.info if status_code < 400 else logger.warning if status_code < 500 else logger.error
            log("request_completed", status_code=status_code, duration_ms=duration_ms)
            structlog.contextvars.unbind_contextvars("request_id", "method", "path")
            request_id_var.reset(token)
