"""
Idempotency Stores
==================
Key-value backends for recorded responses.

``put_if_absent`` is atomic in every implementation: the first writer wins
and every later writer gets the winner's record back.
"""

import json
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError
import structlog

from gateway_core.errors import IdempotencyStoreError

from .models import IdempotencyRecord, StoredResponse

logger = structlog.get_logger(__name__)


class IdempotencyStore(ABC):
    """Abstract store for idempotency records."""

    @abstractmethod
    async def get(self, key: str) -> Optional[IdempotencyRecord]:
        """Return the live record for ``key``, or None if absent or expired."""

    @abstractmethod
    async def put_if_absent(self, key: str, response: StoredResponse, ttl: int) -> IdempotencyRecord:
        """
        Record ``response`` under ``key`` unless a live record exists.

        Returns:
            The record now held for ``key`` (the new one, or the earlier winner)

        Raises:
            IdempotencyStoreError: If the backend cannot be reached
        """


class InMemoryIdempotencyStore(IdempotencyStore):
    """
    Process-local store.

    Expiry is checked on lookup, and every write sweeps expired records
    once ``sweep_interval`` seconds have passed since the last sweep, so
    keys that are never retried do not pile up. Atomicity comes from the
    single event loop: no await happens between the check and the write.
    """

    def __init__(self, clock: Callable[[], float] = time.time, sweep_interval: float = 60.0):
        if sweep_interval <= 0:
            raise ValueError("sweep_interval must be positive")
        self._records: Dict[str, IdempotencyRecord] = {}
        self._clock = clock
        self.sweep_interval = sweep_interval
        self._last_sweep = clock()

    def __len__(self) -> int:
        return len(self._records)

    async def get(self, key: str) -> Optional[IdempotencyRecord]:
        record = self._records.get(key)
        if record is None:
            return None
        if record.is_expired(self._clock()):
            del self._records[key]
            return None
        return record

    async def put_if_absent(self, key: str, response: StoredResponse, ttl: int) -> IdempotencyRecord:
        now = self._clock()
        if now - self._last_sweep >= self.sweep_interval:
            self.sweep()
        existing = self._records.get(key)
        if existing is not None and not existing.is_expired(now):
            return existing

        record = IdempotencyRecord(key=key, response=response, created_at=now, expires_at=now + ttl)
        self._records[key] = record
        return record

    def sweep(self) -> int:
        """Drop expired records. Returns how many were removed."""
        now = self._clock()
        self._last_sweep = now
        expired = [key for key, record in self._records.items() if record.is_expired(now)]
        for key in expired:
            del self._records[key]
        if expired:
            logger.debug("idempotency_records_swept", count=len(expired))
        return len(expired)


class RedisIdempotencyStore(IdempotencyStore):
    """
    Redis-backed store shared by all gateway workers.

    Uses ``SET NX EX`` so the first writer wins across processes and Redis
    expires records on its own.
    """

    def __init__(
        self,
        redis: Redis,
        prefix: str = "idempotency:",
        clock: Callable[[], float] = time.time,
    ):
        self.redis = redis
        self.prefix = prefix
        self._clock = clock

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: str) -> Optional[IdempotencyRecord]:
        try:
            raw = await self.redis.get(self._key(key))
        except RedisError as e:
            raise IdempotencyStoreError(f"Redis GET failed: {e}") from e
        if raw is None:
            return None

        try:
            record = IdempotencyRecord.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            raise IdempotencyStoreError(f"Corrupt idempotency record for {key}: {e}") from e
        if record.is_expired(self._clock()):
            return None
        return record

    async def put_if_absent(self, key: str, response: StoredResponse, ttl: int) -> IdempotencyRecord:
        now = self._clock()
        record = IdempotencyRecord(key=key, response=response, created_at=now, expires_at=now + ttl)
        try:
            stored = await self.redis.set(
                self._key(key),
                json.dumps(record.to_dict()),
                nx=True,
                ex=int(ttl),
            )
        except RedisError as e:
            raise IdempotencyStoreError(f"Redis SET failed: {e}") from e

        if stored:
            return record

        existing = await self.get(key)
        return existing if existing is not None else record
