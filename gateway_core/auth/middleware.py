"""
Partner Authentication Middleware for FastAPI Services

Runs the RequestAuthenticator for every non-public request and stores the
resulting Principal on ``request.state.principal``.

Usage:
    from gateway_core.auth import PartnerAuthMiddleware, get_principal

    app.add_middleware(PartnerAuthMiddleware, authenticator=authenticator)

    @app.get("/api/v1/policies")
    async def list_policies(principal: Principal = Depends(get_principal)):
        ...
"""

from typing import Iterable, Optional, Set

import structlog
from fastapi import Depends, HTTPException, Request
from starlette.middleware.base import BaseHTTPMiddleware

from gateway_core.credentials import Principal
from gateway_core.errors import AUTH_FAILED_CODE, AUTH_FAILED_MESSAGE, auth_failed_response

from .authenticator import RequestAuthenticator

logger = structlog.get_logger(__name__)


class PartnerAuthMiddleware(BaseHTTPMiddleware):
    """
    Middleware that authenticates partner requests.

    Every rejection returns the same 401 body; the specific reason is
    only logged.
    """

    # Paths that bypass authentication (health checks, token endpoints, etc.)
    DEFAULT_PUBLIC_PATHS: Set[str] = {
        "/health",
        "/ready",
        "/docs",
        "/redoc",
        "/openapi.json",
        "/auth/token",
        "/auth/refresh",
    }

    def __init__(
        self,
        app,
        authenticator: RequestAuthenticator,
        public_paths: Optional[Iterable[str]] = None,
        skip_prefixes: Iterable[str] = (),
    ):
        super().__init__(app)
        self.authenticator = authenticator
        self.public_paths = set(public_paths) if public_paths is not None else set(self.DEFAULT_PUBLIC_PATHS)
        self.skip_prefixes = tuple(skip_prefixes)

    def _is_public_path(self, path: str) -> bool:
        """Check if path is public (bypasses auth)."""
        path_normalized = path.rstrip("/") or "/"
        if path_normalized in self.public_paths:
            return True
        if any(path_normalized.startswith(p.rstrip("/") + "/") for p in self.public_paths if p != "/"):
            return True
        return any(path.startswith(p) for p in self.skip_prefixes)

    def _get_client_ip(self, request: Request) -> str:
        """Extract real client IP from headers."""
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
        if request.client:
            return request.client.host
        return "unknown"

    async def dispatch(self, request: Request, call_next):
        path = request.url.path

        if self._is_public_path(path) or request.method == "OPTIONS":
            return await call_next(request)

        principal, error = await self.authenticator.authenticate(request.headers)

        if error is not None:
            logger.warning(
                "auth_rejected",
                internal_code=error.code,
                reason=error.message,
                path=path,
                method=request.method,
                client_ip=self._get_client_ip(request),
            )
            return auth_failed_response(getattr(request.state, "request_id", None))

        request.state.principal = principal
        structlog.contextvars.bind_contextvars(partner_code=principal.partner_code)
        logger.info(
            "auth_succeeded",
            partner_code=principal.partner_code,
            auth_method=principal.auth_method.value,
            path=path,
        )
        return await call_next(request)


def get_principal(request: Request) -> Principal:
    """
    Dependency returning the authenticated principal.

    Usage:
        @app.get("/v1/resource")
        async def get_resource(principal: Principal = Depends(get_principal)):
            print(principal.partner_code)
    """
    principal = getattr(request.state, "principal", None)
    if principal is None:
        raise HTTPException(
            status_code=401,
            detail={"error": AUTH_FAILED_MESSAGE, "code": AUTH_FAILED_CODE},
        )
    return principal


def require_roles(*roles: str):
    """
    Dependency factory requiring at least one of ``roles``.

    Usage:
        @app.post("/admin/partners", dependencies=[Depends(require_roles("admin"))])
    """
    def dependency(principal: Principal = Depends(get_principal)) -> Principal:
        if not principal.has_any_role(*roles):
            logger.warning(
                "insufficient_scope",
                partner_code=principal.partner_code,
                required=sorted(roles),
                granted=sorted(principal.roles),
            )
            raise HTTPException(
                status_code=403,
                detail={"error": "Insufficient permissions", "code": "INSUFFICIENT_SCOPE"},
            )
        return principal

    return dependency
