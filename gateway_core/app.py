"""
Trust Layer Wiring
==================
Installs authentication, settlement signature checks, idempotency and
request logging on a FastAPI application.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from fastapi import FastAPI
from redis.asyncio import Redis
import structlog

from gateway_core.auth import PartnerAuthMiddleware, PrincipalStore, RequestAuthenticator, create_auth_router
from gateway_core.config import GatewaySettings
from gateway_core.credentials import CredentialCodec
from gateway_core.errors import install_error_handlers
from gateway_core.idempotency import (
    IdempotencyGuard,
    IdempotencyMiddleware,
    IdempotencyStore,
    InMemoryIdempotencyStore,
    RedisIdempotencyStore,
)
from gateway_core.logging import RequestContextMiddleware, setup_logging
from gateway_core.settlement import KeyedHashSigner, SettlementSignatureMiddleware
from gateway_core.settlement.middleware import DEFAULT_PATH_PREFIXES

logger = structlog.get_logger(__name__)


@dataclass
class TrustLayer:
    """Components installed on the application, for use by handlers."""
    settings: GatewaySettings
    codec: CredentialCodec
    authenticator: RequestAuthenticator
    signer: KeyedHashSigner
    guard: IdempotencyGuard
    principal_store: PrincipalStore


def _idempotency_store(settings: GatewaySettings) -> IdempotencyStore:
    if settings.redis_url:
        return RedisIdempotencyStore(Redis.from_url(settings.redis_url))
    return InMemoryIdempotencyStore()


def setup_trust_layer(
    app: FastAPI,
    settings: GatewaySettings,
    principal_store: PrincipalStore,
    idempotency_store: Optional[IdempotencyStore] = None,
    settlement_prefixes: Iterable[str] = DEFAULT_PATH_PREFIXES,
    public_paths: Optional[Iterable[str]] = None,
    configure_logging: bool = True,
) -> TrustLayer:
    """
    Configure the trust and integrity layer on ``app``.

    Request order, outermost first: request context/logging, partner
    authentication, idempotency, settlement signature check. Settlement
    paths skip partner authentication; they carry their own MAC.

    Args:
        app: FastAPI application instance
        settings: Loaded GatewaySettings
        principal_store: Partner lookup for shared keys and login
        idempotency_store: Defaults to Redis when REDIS_URL is set, else in-memory
        settlement_prefixes: Paths whose POSTs must carry a settlement MAC
        public_paths: Paths that bypass partner authentication
        configure_logging: Call setup_logging from settings

    Example:
        app = FastAPI()
        layer = setup_trust_layer(app, GatewaySettings.from_env(), store)
    """
    if configure_logging:
        setup_logging(settings.service_name, level=settings.log_level, json_output=settings.log_json)

    settlement_prefixes = tuple(settlement_prefixes)
    codec = CredentialCodec.from_settings(settings)
    authenticator = RequestAuthenticator(codec, principal_store)
    signer = KeyedHashSigner(settings.settlement_preshared_key)
    guard = IdempotencyGuard(idempotency_store or _idempotency_store(settings), ttl=settings.idempotency_ttl)

    # Starlette wraps in reverse order: last added runs first.
    app.add_middleware(SettlementSignatureMiddleware, signer=signer, path_prefixes=settlement_prefixes)
    app.add_middleware(IdempotencyMiddleware, guard=guard)
    app.add_middleware(
        PartnerAuthMiddleware,
        authenticator=authenticator,
        public_paths=public_paths,
        skip_prefixes=settlement_prefixes,
    )
    app.add_middleware(RequestContextMiddleware)

    app.include_router(create_auth_router(codec, principal_store))
    install_error_handlers(app)

    layer = TrustLayer(
        settings=settings,
        codec=codec,
        authenticator=authenticator,
        signer=signer,
        guard=guard,
        principal_store=principal_store,
    )
    app.state.trust_layer = layer

    logger.info(
        "trust_layer_installed",
        service=settings.service_name,
        idempotency_store=type(guard.store).__name__,
        settlement_prefixes=list(settlement_prefixes),
    )
    return layer
