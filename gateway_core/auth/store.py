"""
Principal Store
===============
Lookup interface for partners authenticating with a shared key.

The backing store (relational, cache, in-memory) is a collaborator; the
authenticator only depends on the interface below.
"""

import hashlib
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

from gateway_core.credentials import AuthMethod, Principal

DEFAULT_ROLES: FrozenSet[str] = frozenset({"partner"})


def hash_api_key(key: str) -> str:
    """
    Hash a shared key using SHA-256.

    Args:
        key: The full shared key

    Returns:
        SHA-256 hex digest
    """
    return hashlib.sha256(key.encode()).hexdigest()


def generate_api_key(prefix: str = "pk_live") -> Tuple[str, str]:
    """
    Generate a new shared key.

    Returns:
        Tuple of (full_key, key_hash). Show full_key to the partner once.
    """
    full_key = f"{prefix}_{secrets.token_hex(32)}"
    return full_key, hash_api_key(full_key)


@dataclass(frozen=True)
class PrincipalRecord:
    """A partner as the store knows it (never includes the raw key)."""
    partner_id: str
    partner_code: str
    name: str
    api_key_hash: str = field(repr=False)
    integration_type: str = "api"
    roles: FrozenSet[str] = DEFAULT_ROLES
    signing_secret: Optional[str] = field(default=None, repr=False)
    active: bool = True

    def to_principal(self, auth_method: AuthMethod = AuthMethod.SHARED_KEY) -> Principal:
        return Principal(
            partner_id=self.partner_id,
            partner_code=self.partner_code,
            name=self.name,
            integration_type=self.integration_type,
            roles=frozenset(self.roles),
            auth_method=auth_method,
        )


class PrincipalStore(ABC):
    """Abstract partner lookup used by the authenticator and token endpoint."""

    @abstractmethod
    async def find_by_api_key(self, api_key: str) -> Optional[PrincipalRecord]:
        """Return the record owning ``api_key``, active or not, or None."""

    @abstractmethod
    async def get_signing_secret(self, partner_code: str) -> Optional[str]:
        """Return the partner's settlement signing secret, or None."""


class InMemoryPrincipalStore(PrincipalStore):
    """
    Dict-backed store for tests and single-process deployments.

    Only SHA-256 hashes of keys are held; lookups compare hashes in
    constant time.
    """

    def __init__(self, records: Iterable[PrincipalRecord] = ()):
        self._by_code: Dict[str, PrincipalRecord] = {}
        for record in records:
            self.add(record)

    def add(self, record: PrincipalRecord) -> None:
        self._by_code[record.partner_code] = record

    def register(
        self,
        partner_code: str,
        api_key: str,
        name: Optional[str] = None,
        partner_id: Optional[str] = None,
        integration_type: str = "api",
        roles: Iterable[str] = DEFAULT_ROLES,
        signing_secret: Optional[str] = None,
        active: bool = True,
    ) -> PrincipalRecord:
        """Register a partner from its raw key."""
        record = PrincipalRecord(
            partner_id=partner_id or partner_code,
            partner_code=partner_code,
            name=name or f"{partner_code} Partner",
            api_key_hash=hash_api_key(api_key),
            integration_type=integration_type,
            roles=frozenset(roles),
            signing_secret=signing_secret,
            active=active,
        )
        self.add(record)
        return record

    async def find_by_api_key(self, api_key: str) -> Optional[PrincipalRecord]:
        if not api_key:
            return None
        provided_hash = hash_api_key(api_key)
        found = None
        for record in self._by_code.values():
            if secrets.compare_digest(provided_hash, record.api_key_hash):
                found = record
        return found

    async def get_signing_secret(self, partner_code: str) -> Optional[str]:
        record = self._by_code.get(partner_code)
        return record.signing_secret if record else None
