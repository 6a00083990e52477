"""
Request Authenticator
=====================
Decides who is calling, terminal in every branch:

    Authorization: Bearer <token>  -> verify with the credential codec
    X-API-Key: <key> (no bearer)   -> look the key up in the principal store
    neither                        -> missing credentials

A Bearer-scheme header is never retried as a shared key. Other
Authorization schemes are ignored and fall through to the shared key.
"""

from typing import FrozenSet, Iterable, Mapping, Optional

import structlog

from gateway_core.credentials import AuthResult, CredentialCodec, Principal
from gateway_core.errors import (
    AuthError,
    InsufficientRoleError,
    InvalidSharedKeyError,
    MalformedCredentialError,
    MissingCredentialsError,
)

from .store import PrincipalStore

logger = structlog.get_logger(__name__)

AUTHORIZATION_HEADER = "Authorization"
API_KEY_HEADER = "X-API-Key"
BEARER_SCHEME = "bearer"
ACCEPTED_ROLES: FrozenSet[str] = frozenset({"partner", "admin"})


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    value = headers.get(name)
    if value is None:
        lowered = name.lower()
        for key, candidate in headers.items():
            if key.lower() == lowered:
                value = candidate
                break
    if value is None:
        return None
    return value.strip() or None


def _is_bearer(authorization: str) -> bool:
    scheme = authorization.split(None, 1)[0]
    return scheme.lower() == BEARER_SCHEME


class RequestAuthenticator:
    """
    Produces a Principal or a typed AuthError for a set of request headers.

    Holds no mutable state; safe to share across concurrent requests.

    Example:
        authenticator = RequestAuthenticator(codec, store)
        principal, error = await authenticator.authenticate(request.headers)
    """

    def __init__(
        self,
        codec: CredentialCodec,
        store: PrincipalStore,
        accepted_roles: Iterable[str] = ACCEPTED_ROLES,
        api_key_header: str = API_KEY_HEADER,
    ):
        self.codec = codec
        self.store = store
        self.accepted_roles = frozenset(accepted_roles)
        self.api_key_header = api_key_header

    async def authenticate(self, headers: Mapping[str, str]) -> AuthResult[Principal]:
        """
        Authenticate a request from its headers.

        Args:
            headers: Request headers (Starlette Headers or a plain mapping)

        Returns:
            AuthResult with the Principal, or the AuthError explaining the
            rejection (for logs only; partners see a uniform body)
        """
        authorization = _header(headers, AUTHORIZATION_HEADER)
        if authorization is not None and _is_bearer(authorization):
            return self._authenticate_bearer(authorization)

        api_key = _header(headers, self.api_key_header)
        if api_key is not None:
            return await self._authenticate_shared_key(api_key)

        return AuthResult.fail(MissingCredentialsError("No bearer token or API key provided"))

    def _authenticate_bearer(self, authorization: str) -> AuthResult[Principal]:
        token = authorization[len(BEARER_SCHEME):].strip()
        if not token:
            return AuthResult.fail(MalformedCredentialError("Empty bearer token"))

        result = self.codec.verify(token)
        if not result.is_ok:
            return result

        principal = result.value
        if not principal.has_any_role(*self.accepted_roles):
            return AuthResult.fail(
                InsufficientRoleError(f"Roles {sorted(principal.roles)} not accepted")
            )
        return AuthResult.ok(principal)

    async def _authenticate_shared_key(self, api_key: str) -> AuthResult[Principal]:
        try:
            record = await self.store.find_by_api_key(api_key)
        except Exception as e:
            # Fail closed; the uniform 401 hides the store outage from callers.
            logger.error("principal_store_error", error=str(e))
            return AuthResult.fail(AuthError("Principal store unavailable"))

        if record is None:
            return AuthResult.fail(InvalidSharedKeyError("Unknown API key"))
        if not record.active:
            return AuthResult.fail(InvalidSharedKeyError(f"Partner {record.partner_code} is inactive"))

        return AuthResult.ok(record.to_principal())
