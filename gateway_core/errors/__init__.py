"""
Gateway Errors
==============
Exception taxonomy and partner-facing error responses.
"""

from .exceptions import (
    GatewayError,
    ConfigurationError,
    AuthError,
    MissingCredentialsError,
    MalformedCredentialError,
    CredentialTypeMismatchError,
    ExpiredCredentialError,
    SignatureMismatchError,
    WrongAudienceOrIssuerError,
    InvalidSharedKeyError,
    InsufficientRoleError,
    SignatureVerificationFailure,
    IdempotencyStoreError,
    DeliveryExhaustedError,
)
from .responses import (
    AUTH_FAILED_CODE,
    AUTH_FAILED_MESSAGE,
    error_body,
    error_response,
    auth_failed_response,
    gateway_error_response,
    install_error_handlers,
)

__all__ = [
    # Exceptions
    "GatewayError",
    "ConfigurationError",
    "AuthError",
    "MissingCredentialsError",
    "MalformedCredentialError",
    "CredentialTypeMismatchError",
    "ExpiredCredentialError",
    "SignatureMismatchError",
    "WrongAudienceOrIssuerError",
    "InvalidSharedKeyError",
    "InsufficientRoleError",
    "SignatureVerificationFailure",
    "IdempotencyStoreError",
    "DeliveryExhaustedError",
    # Responses
    "AUTH_FAILED_CODE",
    "AUTH_FAILED_MESSAGE",
    "error_body",
    "error_response",
    "auth_failed_response",
    "gateway_error_response",
    "install_error_handlers",
]
