"""
Gateway Core
============
Trust and integrity layer for the partner-integration API gateway.
"""

__version__ = "1.0.0"

# Configuration
from gateway_core.config import GatewaySettings, parse_duration

# Errors
from gateway_core.errors import (
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
    install_error_handlers,
)

# Logging
from gateway_core.logging import setup_logging, RequestContextMiddleware

# Credentials
from gateway_core.credentials import (
    CredentialCodec,
    Principal,
    AccessCredential,
    RefreshCredential,
    TokenPair,
    AuthResult,
    AuthMethod,
)

# Settlement
from gateway_core.settlement import (
    KeyedHashSigner,
    SignedEnvelope,
    SettlementClient,
    SettlementSignatureMiddleware,
)

# Auth
from gateway_core.auth import (
    RequestAuthenticator,
    PrincipalStore,
    InMemoryPrincipalStore,
    PartnerAuthMiddleware,
    get_principal,
    require_roles,
    create_auth_router,
)

# Idempotency
from gateway_core.idempotency import (
    IdempotencyGuard,
    IdempotencyMiddleware,
    InMemoryIdempotencyStore,
    RedisIdempotencyStore,
)

# Webhooks
from gateway_core.webhooks import (
    NotificationDispatcher,
    PaymentEvent,
    QuoteEvent,
    ReversalEvent,
    Delivered,
    Exhausted,
    verify_webhook_signature,
)

# Wiring
from gateway_core.app import setup_trust_layer, TrustLayer

__all__ = [
    # Configuration
    "GatewaySettings",
    "parse_duration",
    # Errors
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
    "install_error_handlers",
    # Logging
    "setup_logging",
    "RequestContextMiddleware",
    # Credentials
    "CredentialCodec",
    "Principal",
    "AccessCredential",
    "RefreshCredential",
    "TokenPair",
    "AuthResult",
    "AuthMethod",
    # Settlement
    "KeyedHashSigner",
    "SignedEnvelope",
    "SettlementClient",
    "SettlementSignatureMiddleware",
    # Auth
    "RequestAuthenticator",
    "PrincipalStore",
    "InMemoryPrincipalStore",
    "PartnerAuthMiddleware",
    "get_principal",
    "require_roles",
    "create_auth_router",
    # Idempotency
    "IdempotencyGuard",
    "IdempotencyMiddleware",
    "InMemoryIdempotencyStore",
    "RedisIdempotencyStore",
    # Webhooks
    "NotificationDispatcher",
    "PaymentEvent",
    "QuoteEvent",
    "ReversalEvent",
    "Delivered",
    "Exhausted",
    "verify_webhook_signature",
    # Wiring
    "setup_trust_layer",
    "TrustLayer",
]
