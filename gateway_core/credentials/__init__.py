"""
Credential Codec
================
Signed bearer credentials (access + refresh) for partner authentication.
"""

from .models import (
    AuthMethod,
    AuthDecision,
    AuthResult,
    Principal,
    AccessCredential,
    RefreshCredential,
    TokenPair,
    REFRESH_DISCRIMINATOR,
    TOKEN_TYPE,
)
from .codec import CredentialCodec, ALGORITHM, DISCRIMINATOR_CLAIM

__all__ = [
    # Models
    "AuthMethod",
    "AuthDecision",
    "AuthResult",
    "Principal",
    "AccessCredential",
    "RefreshCredential",
    "TokenPair",
    "REFRESH_DISCRIMINATOR",
    "TOKEN_TYPE",
    # Codec
    "CredentialCodec",
    "ALGORITHM",
    "DISCRIMINATOR_CLAIM",
]
