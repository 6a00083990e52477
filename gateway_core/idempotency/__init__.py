"""
Idempotency
===========
Deduplication of retried mutating requests by client-supplied key.
"""

from .models import StoredResponse, IdempotencyRecord, make_key
from .store import IdempotencyStore, InMemoryIdempotencyStore, RedisIdempotencyStore
from .guard import IdempotencyGuard, DEFAULT_TTL_SECONDS
from .middleware import IdempotencyMiddleware, IDEMPOTENCY_HEADER, REPLAYED_HEADER

__all__ = [
    # Models
    "StoredResponse",
    "IdempotencyRecord",
    "make_key",
    # Stores
    "IdempotencyStore",
    "InMemoryIdempotencyStore",
    "RedisIdempotencyStore",
    # Guard
    "IdempotencyGuard",
    "DEFAULT_TTL_SECONDS",
    # Middleware
    "IdempotencyMiddleware",
    "IDEMPOTENCY_HEADER",
    "REPLAYED_HEADER",
]
