"""
Idempotency Models
==================
Recorded responses and the records that hold them.
"""

import base64
from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

Headers = Tuple[Tuple[str, str], ...]


def make_key(route_key: str, client_key: str) -> str:
    """Compose the storage key for a (route, client key) pair."""
    return f"{route_key}:{client_key}"


@dataclass(frozen=True)
class StoredResponse:
    """
    The exact response produced the first time a key was seen.

    ``replayed`` marks a copy served from the store; it is not part of the
    response identity.
    """
    status_code: int
    body: bytes = b""
    media_type: str = "application/json"
    headers: Headers = ()
    replayed: bool = field(default=False, compare=False)

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status_code": self.status_code,
            "body": base64.b64encode(self.body).decode("ascii"),
            "media_type": self.media_type,
            "headers": [list(pair) for pair in self.headers],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoredResponse":
        return cls(
            status_code=int(data["status_code"]),
            body=base64.b64decode(data.get("body", "")),
            media_type=data.get("media_type", "application/json"),
            headers=tuple((name, value) for name, value in data.get("headers", [])),
        )


@dataclass(frozen=True)
class IdempotencyRecord:
    """A stored response plus its retention window."""
    key: str
    response: StoredResponse
    created_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "response": self.response.to_dict(),
            "created_at": self.created_at,
            "expires_at": self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IdempotencyRecord":
        return cls(
            key=data["key"],
            response=StoredResponse.from_dict(data["response"]),
            created_at=float(data["created_at"]),
            expires_at=float(data["expires_at"]),
        )
