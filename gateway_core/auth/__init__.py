"""
Partner Authentication
======================
Bearer-token or shared-key authentication of inbound partner requests.
"""

from .store import (
    PrincipalStore,
    PrincipalRecord,
    InMemoryPrincipalStore,
    hash_api_key,
    generate_api_key,
)
from .authenticator import (
    RequestAuthenticator,
    ACCEPTED_ROLES,
    API_KEY_HEADER,
    AUTHORIZATION_HEADER,
)
from .middleware import PartnerAuthMiddleware, get_principal, require_roles
from .router import create_auth_router, TokenRequest, RefreshRequest

__all__ = [
    # Store
    "PrincipalStore",
    "PrincipalRecord",
    "InMemoryPrincipalStore",
    "hash_api_key",
    "generate_api_key",
    # Authenticator
    "RequestAuthenticator",
    "ACCEPTED_ROLES",
    "API_KEY_HEADER",
    "AUTHORIZATION_HEADER",
    # Middleware
    "PartnerAuthMiddleware",
    "get_principal",
    "require_roles",
    # Router
    "create_auth_router",
    "TokenRequest",
    "RefreshRequest",
]
