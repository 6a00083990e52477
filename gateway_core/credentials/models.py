"""
Credential Models
=================
Principals, signed credentials and the result type returned by every
verification step.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Generic, Iterator, Optional, Tuple, TypeVar

from gateway_core.errors import AuthError

T = TypeVar("T")

REFRESH_DISCRIMINATOR = "refresh"
TOKEN_TYPE = "Bearer"


class AuthMethod(str, Enum):
    """How a principal proved its identity."""
    TOKEN = "token"
    SHARED_KEY = "shared_key"


class AuthDecision(str, Enum):
    """Outcome of an authentication check."""
    ALLOW = "ALLOW"
    BLOCK = "BLOCK"


@dataclass(frozen=True)
class Principal:
    """The authenticated identity behind a request. Never persisted."""
    partner_id: str
    partner_code: str
    name: str
    integration_type: str
    roles: FrozenSet[str]
    auth_method: AuthMethod

    @property
    def subject(self) -> str:
        """Token subject; partners are addressed by their partner code."""
        return self.partner_code

    def has_any_role(self, *roles: str) -> bool:
        return bool(self.roles.intersection(roles))


@dataclass(frozen=True)
class _SignedCredential:
    subject: str
    issuer: str
    audience: str
    issued_at: int
    expires_at: int
    roles: FrozenSet[str]
    jti: str
    token: str = field(repr=False)

    def __post_init__(self):
        if self.expires_at <= self.issued_at:
            raise ValueError("expires_at must be strictly after issued_at")

    @property
    def signature(self) -> str:
        """The signature segment of the compact token."""
        return self.token.rsplit(".", 1)[-1]

    @property
    def lifetime(self) -> int:
        return self.expires_at - self.issued_at


@dataclass(frozen=True)
class AccessCredential(_SignedCredential):
    """Short-lived bearer credential accepted on protected routes."""


@dataclass(frozen=True)
class RefreshCredential(_SignedCredential):
    """Long-lived credential that can only mint new access credentials."""
    discriminator: str = REFRESH_DISCRIMINATOR


@dataclass(frozen=True)
class TokenPair:
    """Access and refresh credentials issued together at login."""
    access: AccessCredential
    refresh: RefreshCredential
    principal: Principal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access.token,
            "refresh_token": self.refresh.token,
            "token_type": TOKEN_TYPE,
            "expires_in": self.access.lifetime,
            "partner": {
                "code": self.principal.partner_code,
                "name": self.principal.name,
                "type": self.principal.integration_type,
            },
        }


@dataclass(frozen=True)
class AuthResult(Generic[T]):
    """
    Result of a verification step: a value or an AuthError, never both.

    Expected failures are returned, not raised. Supports unpacking:

        principal, error = await authenticator.authenticate(headers)
    """
    value: Optional[T] = None
    error: Optional[AuthError] = None

    @classmethod
    def ok(cls, value: T) -> "AuthResult[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, error: AuthError) -> "AuthResult[T]":
        return cls(error=error)

    @property
    def is_ok(self) -> bool:
        return self.error is None

    @property
    def decision(self) -> AuthDecision:
        return AuthDecision.ALLOW if self.is_ok else AuthDecision.BLOCK

    @property
    def reason_code(self) -> Optional[str]:
        return self.error.code if self.error else None

    def unwrap(self) -> T:
        """Return the value or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.value

    def __iter__(self) -> Iterator[Any]:
        return iter(self._as_tuple())

    def _as_tuple(self) -> Tuple[Optional[T], Optional[AuthError]]:
        return (self.value, self.error)
