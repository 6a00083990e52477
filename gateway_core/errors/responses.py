"""
Partner-Facing Error Responses
==============================
Standardized error bodies that show a generic message to partners while
logging the technical detail for debugging.

CRITICAL: Never tell a caller *why* authentication failed.
"""

from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
import structlog

from .exceptions import AuthError, GatewayError, SignatureVerificationFailure

logger = structlog.get_logger(__name__)


AUTH_FAILED_MESSAGE = "Authentication failed"
AUTH_FAILED_CODE = "AUTH_FAILED"
INTERNAL_ERROR_MESSAGE = "Internal server error"


def error_body(
    message: str,
    code: str,
    request_id: Optional[str] = None,
) -> dict:
    """Build the ``{success, error, code}`` body used for every failure."""
    body = {"success": False, "error": message, "code": code}
    if request_id:
        body["request_id"] = request_id
    return body


def error_response(
    status_code: int,
    message: str,
    code: str,
    request_id: Optional[str] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_body(message, code, request_id),
    )


def auth_failed_response(request_id: Optional[str] = None) -> JSONResponse:
    """
    Uniform 401 for every authentication branch.

    Bearer failures, shared-key failures and settlement MAC failures all
    produce byte-identical bodies so a caller cannot tell them apart.
    """
    return error_response(401, AUTH_FAILED_MESSAGE, AUTH_FAILED_CODE, request_id)


def gateway_error_response(
    exc: GatewayError,
    request_id: Optional[str] = None,
) -> JSONResponse:
    """Map a GatewayError to its partner-facing response."""
    if isinstance(exc, (AuthError, SignatureVerificationFailure)):
        return auth_failed_response(request_id)
    if exc.status_code >= 500:
        return error_response(exc.status_code, INTERNAL_ERROR_MESSAGE, "INTERNAL_ERROR", request_id)
    return error_response(exc.status_code, exc.message, exc.code, request_id)


def install_error_handlers(app: FastAPI) -> None:
    """
    Register exception handlers on a FastAPI application.

    - GatewayError -> mapped status with generic body
    - HTTPException -> status preserved, body normalized
    - anything else -> 500 INTERNAL_ERROR, detail only in logs
    """

    @app.exception_handler(GatewayError)
    async def _handle_gateway_error(request: Request, exc: GatewayError):
        request_id = getattr(request.state, "request_id", None)
        logger.warning(
            "gateway_error",
            internal_code=exc.code,
            detail=exc.message,
            path=request.url.path,
        )
        return gateway_error_response(exc, request_id)

    @app.exception_handler(HTTPException)
    async def _handle_http_exception(request: Request, exc: HTTPException):
        request_id = getattr(request.state, "request_id", None)
        if isinstance(exc.detail, dict):
            message = exc.detail.get("error", "Request failed")
            code = exc.detail.get("code", "HTTP_ERROR")
        else:
            message = str(exc.detail)
            code = "HTTP_ERROR"
        return error_response(exc.status_code, message, code, request_id)

    @app.exception_handler(Exception)
    async def _handle_unexpected(request: Request, exc: Exception):
        request_id = getattr(request.state, "request_id", None)
        logger.exception(
            "unhandled_exception",
            error=str(exc),
            path=request.url.path,
            method=request.method,
        )
        return error_response(500, INTERNAL_ERROR_MESSAGE, "INTERNAL_ERROR", request_id)
