"""
Token Endpoints
===============
Login with partner code + shared key, and refresh of access credentials.
"""

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field
import structlog

from gateway_core.credentials import CredentialCodec
from gateway_core.errors import auth_failed_response

from .store import PrincipalStore

logger = structlog.get_logger(__name__)


class TokenRequest(BaseModel):
    partner_code: str = Field(..., min_length=1)
    api_key: str = Field(..., min_length=1)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


def create_auth_router(
    codec: CredentialCodec,
    store: PrincipalStore,
    prefix: str = "/auth",
) -> APIRouter:
    """
    Build the token router.

    POST {prefix}/token    -> access + refresh credentials
    POST {prefix}/refresh  -> new access credential for a valid refresh credential
    """
    router = APIRouter(prefix=prefix, tags=["auth"])

    @router.post("/token")
    async def issue_token(body: TokenRequest, request: Request):
        request_id = getattr(request.state, "request_id", None)
        record = await store.find_by_api_key(body.api_key)

        if record is None or not record.active or record.partner_code != body.partner_code:
            logger.warning(
                "token_request_rejected",
                partner_code=body.partner_code,
                reason="unknown_key" if record is None else (
                    "inactive" if not record.active else "partner_code_mismatch"
                ),
            )
            return auth_failed_response(request_id)

        pair = codec.issue_pair(record.to_principal())
        logger.info("token_issued", partner_code=record.partner_code)
        return {"success": True, "data": pair.to_dict()}

    @router.post("/refresh")
    async def refresh_token(body: RefreshRequest, request: Request):
        request_id = getattr(request.state, "request_id", None)
        pair, error = codec.refresh(body.refresh_token)

        if error is not None:
            logger.warning("token_refresh_rejected", internal_code=error.code, reason=error.message)
            return auth_failed_response(request_id)

        data = pair.to_dict()
        data.pop("refresh_token")
        logger.info("token_refreshed", partner_code=pair.principal.partner_code)
        return {"success": True, "data": data}

    return router
