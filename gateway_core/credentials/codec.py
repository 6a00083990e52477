"""
Credential Codec
================
Issues and verifies HS256-signed bearer credentials.

Access and refresh credentials are signed with different secrets, and the
refresh discriminator keeps one from ever being accepted as the other.
"""

import time
import uuid
from datetime import timedelta
from typing import Any, Callable, Dict, Optional, Union

import jwt
import structlog

from gateway_core.config import GatewaySettings
from gateway_core.errors import (
    ConfigurationError,
    CredentialTypeMismatchError,
    ExpiredCredentialError,
    MalformedCredentialError,
    SignatureMismatchError,
    WrongAudienceOrIssuerError,
)
from gateway_core.logging import mask_secret

from .models import (
    REFRESH_DISCRIMINATOR,
    AccessCredential,
    AuthMethod,
    AuthResult,
    Principal,
    RefreshCredential,
    TokenPair,
)

logger = structlog.get_logger(__name__)

ALGORITHM = "HS256"
DISCRIMINATOR_CLAIM = "type"

Lifetime = Union[int, float, timedelta]


def _seconds(ttl: Lifetime) -> int:
    seconds = int(ttl.total_seconds()) if isinstance(ttl, timedelta) else int(ttl)
    if seconds <= 0:
        raise ValueError("Credential lifetime must be positive")
    return seconds


class CredentialCodec:
    """
    Stateless encoder/decoder for access and refresh credentials.

    Safe to share between concurrent requests; the only state is the
    immutable configuration.

    Example:
        codec = CredentialCodec.from_settings(settings)
        pair = codec.issue_pair(principal)
        principal, error = codec.verify(pair.access.token)
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        issuer: str,
        audience: str,
        access_ttl: Lifetime = 24 * 60 * 60,
        refresh_ttl: Lifetime = 7 * 24 * 60 * 60,
        clock: Callable[[], float] = time.time,
    ):
        if not access_secret or not refresh_secret:
            raise ConfigurationError("Access and refresh signing secrets are required")
        if access_secret == refresh_secret:
            raise ConfigurationError("Access and refresh secrets must differ")
        self._access_secret = access_secret
        self._refresh_secret = refresh_secret
        self.issuer = issuer
        self.audience = audience
        self.access_ttl = _seconds(access_ttl)
        self.refresh_ttl = _seconds(refresh_ttl)
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: GatewaySettings,
        clock: Callable[[], float] = time.time,
    ) -> "CredentialCodec":
        return cls(
            access_secret=settings.jwt_secret,
            refresh_secret=settings.jwt_refresh_secret,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            access_ttl=settings.access_token_ttl,
            refresh_ttl=settings.refresh_token_ttl,
            clock=clock,
        )

    # =========================================================================
    # Issuance
    # =========================================================================

    def _claims(self, principal: Principal, ttl: int) -> Dict[str, Any]:
        now = int(self._clock())
        return {
            "sub": principal.partner_code,
            "iss": self.issuer,
            "aud": self.audience,
            "iat": now,
            "exp": now + ttl,
            "roles": sorted(principal.roles),
            "jti": str(uuid.uuid4()),
            "partner_id": principal.partner_id,
            "partner_name": principal.name,
            "integration_type": principal.integration_type,
        }

    def issue_access(self, principal: Principal, ttl: Optional[Lifetime] = None) -> AccessCredential:
        """
        Issue a signed access credential.

        Args:
            principal: Identity the credential asserts
            ttl: Lifetime (seconds or timedelta), defaults to the configured one

        Returns:
            AccessCredential with the compact token attached
        """
        seconds = self.access_ttl if ttl is None else _seconds(ttl)
        claims = self._claims(principal, seconds)
        token = jwt.encode(claims, self._access_secret, algorithm=ALGORITHM)

        logger.info(
            "access_credential_issued",
            partner_code=principal.partner_code,
            expires_in=seconds,
            jti=claims["jti"],
        )
        return AccessCredential(**self._credential_fields(claims, token))

    def issue_refresh(self, principal: Principal, ttl: Optional[Lifetime] = None) -> RefreshCredential:
        """Issue a refresh credential signed with the refresh secret."""
        seconds = self.refresh_ttl if ttl is None else _seconds(ttl)
        claims = self._claims(principal, seconds)
        claims[DISCRIMINATOR_CLAIM] = REFRESH_DISCRIMINATOR
        token = jwt.encode(claims, self._refresh_secret, algorithm=ALGORITHM)

        logger.info(
            "refresh_credential_issued",
            partner_code=principal.partner_code,
            expires_in=seconds,
            jti=claims["jti"],
        )
        return RefreshCredential(**self._credential_fields(claims, token))

    def issue_pair(self, principal: Principal) -> TokenPair:
        """Issue an access and a refresh credential at login."""
        return TokenPair(
            access=self.issue_access(principal),
            refresh=self.issue_refresh(principal),
            principal=principal,
        )

    # =========================================================================
    # Verification
    # =========================================================================

    def verify(self, token: str) -> AuthResult[Principal]:
        """
        Verify an access credential.

        Returns:
            AuthResult carrying the Principal, or one of
            MalformedCredentialError, ExpiredCredentialError,
            SignatureMismatchError, WrongAudienceOrIssuerError,
            CredentialTypeMismatchError
        """
        result = self._decode(token, self._access_secret, expect_refresh=False)
        if not result.is_ok:
            return result
        return AuthResult.ok(self._principal(result.value))

    def verify_refresh(self, token: str) -> AuthResult[Principal]:
        """Verify a refresh credential; access credentials are rejected."""
        result = self._decode(token, self._refresh_secret, expect_refresh=True)
        if not result.is_ok:
            return result
        return AuthResult.ok(self._principal(result.value))

    def refresh(self, refresh_token: str) -> AuthResult[TokenPair]:
        """
        Mint a brand-new access credential from a refresh credential.

        The refresh credential is returned unchanged; it stays valid until
        its own expiry and is re-verified on each use.
        """
        result = self._decode(refresh_token, self._refresh_secret, expect_refresh=True)
        if not result.is_ok:
            return AuthResult.fail(result.error)

        claims = result.value
        principal = self._principal(claims)
        pair = TokenPair(
            access=self.issue_access(principal),
            refresh=RefreshCredential(**self._credential_fields(claims, refresh_token)),
            principal=principal,
        )
        return AuthResult.ok(pair)

    def _decode(self, token: str, secret: str, expect_refresh: bool) -> AuthResult[Dict[str, Any]]:
        if not token or not isinstance(token, str):
            return AuthResult.fail(MalformedCredentialError("Token is required"))

        try:
            claims = jwt.decode(
                token,
                secret,
                algorithms=[ALGORITHM],
                audience=self.audience,
                issuer=self.issuer,
                options={
                    "require": ["sub", "iat", "exp", "iss", "aud"],
                    # Time checks run against the injected clock below.
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                },
            )
        except jwt.InvalidSignatureError:
            return AuthResult.fail(self._signature_failure(token, expect_refresh))
        except (jwt.InvalidAudienceError, jwt.InvalidIssuerError) as e:
            return AuthResult.fail(WrongAudienceOrIssuerError(str(e)))
        except jwt.InvalidTokenError as e:
            logger.debug("credential_malformed", error=str(e), token=mask_secret(token))
            return AuthResult.fail(MalformedCredentialError(str(e)))

        is_refresh = claims.get(DISCRIMINATOR_CLAIM) == REFRESH_DISCRIMINATOR
        if is_refresh != expect_refresh:
            return AuthResult.fail(self._type_mismatch(expect_refresh))

        now = int(self._clock())
        try:
            expires_at = int(claims["exp"])
            issued_at = int(claims["iat"])
        except (TypeError, ValueError):
            return AuthResult.fail(MalformedCredentialError("Invalid iat/exp claims"))
        if expires_at <= issued_at:
            return AuthResult.fail(MalformedCredentialError("Expiry precedes issue time"))
        if expires_at <= now:
            return AuthResult.fail(
                ExpiredCredentialError(f"Token expired {now - expires_at} seconds ago")
            )

        roles = claims.get("roles")
        if not isinstance(roles, list) or not all(isinstance(r, str) for r in roles):
            return AuthResult.fail(MalformedCredentialError("Missing or invalid roles claim"))

        return AuthResult.ok(claims)

    def _signature_failure(self, token: str, expect_refresh: bool):
        # Rejected either way; the unverified discriminator only picks the error.
        try:
            unverified = jwt.decode(token, options={"verify_signature": False})
        except jwt.InvalidTokenError:
            return SignatureMismatchError("Signature verification failed")
        is_refresh = unverified.get(DISCRIMINATOR_CLAIM) == REFRESH_DISCRIMINATOR
        if is_refresh != expect_refresh:
            return self._type_mismatch(expect_refresh)
        return SignatureMismatchError("Signature verification failed")

    @staticmethod
    def _type_mismatch(expect_refresh: bool) -> CredentialTypeMismatchError:
        if expect_refresh:
            return CredentialTypeMismatchError("Access token presented as refresh token")
        return CredentialTypeMismatchError("Refresh token presented as access token")

    @staticmethod
    def _credential_fields(claims: Dict[str, Any], token: str) -> Dict[str, Any]:
        return {
            "subject": claims["sub"],
            "issuer": claims["iss"],
            "audience": claims["aud"],
            "issued_at": int(claims["iat"]),
            "expires_at": int(claims["exp"]),
            "roles": frozenset(claims.get("roles") or ()),
            "jti": claims.get("jti", ""),
            "token": token,
        }

    @staticmethod
    def _principal(claims: Dict[str, Any]) -> Principal:
        return Principal(
            partner_id=str(claims.get("partner_id") or claims["sub"]),
            partner_code=claims["sub"],
            name=claims.get("partner_name") or f"{claims['sub']} Partner",
            integration_type=claims.get("integration_type") or "api",
            roles=frozenset(claims.get("roles") or ()),
            auth_method=AuthMethod.TOKEN,
        )
