"""
Gateway Exceptions
==================
Error taxonomy for the trust and integrity layer.

Every error carries an internal ``code`` (for logs) and the HTTP
``status_code`` it maps to. Partner-facing bodies never include the
specific code of an authentication failure.
"""

from typing import Optional


class GatewayError(Exception):
    """Base exception for all gateway errors."""

    code = "GATEWAY_ERROR"
    status_code = 500

    def __init__(self, message: str = "", code: Optional[str] = None):
        self.message = message or self.__class__.__doc__ or self.code
        if code:
            self.code = code
        super().__init__(self.message)


class ConfigurationError(GatewayError):
    """Required configuration is missing or invalid."""

    code = "CONFIG_ERROR"
    status_code = 500


# =============================================================================
# Authentication
# =============================================================================

class AuthError(GatewayError):
    """Authentication failed."""

    code = "AUTH_FAILED"
    status_code = 401


class MissingCredentialsError(AuthError):
    """No bearer token and no shared key were supplied."""

    code = "AUTH_MISSING_CREDENTIALS"


class MalformedCredentialError(AuthError):
    """Credential could not be parsed."""

    code = "AUTH_MALFORMED"


class CredentialTypeMismatchError(MalformedCredentialError):
    """Refresh credential presented where an access credential is expected, or vice versa."""

    code = "AUTH_WRONG_TOKEN_TYPE"


class ExpiredCredentialError(AuthError):
    """Credential has expired."""

    code = "AUTH_EXPIRED"


class SignatureMismatchError(AuthError):
    """Credential signature does not verify against the current key."""

    code = "AUTH_SIGNATURE_MISMATCH"


class WrongAudienceOrIssuerError(AuthError):
    """Credential was issued by or for someone else."""

    code = "AUTH_WRONG_AUDIENCE"


class InvalidSharedKeyError(AuthError):
    """Shared key is unknown or belongs to an inactive partner."""

    code = "AUTH_INVALID_KEY"


class InsufficientRoleError(AuthError):
    """Credential is valid but carries none of the accepted roles."""

    code = "AUTH_INSUFFICIENT_ROLE"


class SignatureVerificationFailure(GatewayError):
    """Inbound settlement-network message failed MAC validation."""

    code = "SETTLEMENT_SIGNATURE_INVALID"
    status_code = 401

    def __init__(self, message: str = "", reason: str = "invalid_mac"):
        super().__init__(message)
        self.reason = reason


# =============================================================================
# Idempotency / Delivery
# =============================================================================

class IdempotencyStoreError(GatewayError):
    """The idempotency store could not be read or written."""

    code = "IDEMPOTENCY_STORE_ERROR"
    status_code = 500


class DeliveryExhaustedError(GatewayError):
    """Webhook delivery failed after the whole retry budget was spent."""

    code = "DELIVERY_EXHAUSTED"
    status_code = 500

    def __init__(
        self,
        message: str = "",
        attempts: int = 0,
        last_error: Optional[str] = None,
        last_status: Optional[int] = None,
    ):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error
        self.last_status = last_status
