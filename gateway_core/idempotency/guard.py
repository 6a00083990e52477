"""
Idempotency Guard
=================
Execute-once, record-once for retried mutating requests.

Duplicates that arrive while the first call is still running wait on a
per-key lock and then replay its recorded response. Duplicate suppression
is best effort: if the store is unavailable the handler runs directly.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from typing import AsyncIterator, Awaitable, Callable, Dict, Optional

import structlog

from gateway_core.errors import IdempotencyStoreError

from .models import IdempotencyRecord, StoredResponse, make_key
from .store import IdempotencyStore

logger = structlog.get_logger(__name__)

Handler = Callable[[], Awaitable[StoredResponse]]

DEFAULT_TTL_SECONDS = 60 * 60


@dataclass
class _KeyLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class IdempotencyGuard:
    """
    Deduplicates handler calls by (route key, client key).

    Example:
        guard = IdempotencyGuard(InMemoryIdempotencyStore())
        response = await guard.guard("POST /pay", request_key, handler)
    """

    def __init__(self, store: IdempotencyStore, ttl: int = DEFAULT_TTL_SECONDS):
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self.store = store
        self.ttl = ttl
        self._locks: Dict[str, _KeyLock] = {}

    @property
    def active_keys(self) -> int:
        """Number of keys that currently hold or wait on a lock."""
        return len(self._locks)

    @asynccontextmanager
    async def _key_lock(self, key: str) -> AsyncIterator[None]:
        entry = self._locks.get(key)
        if entry is None:
            entry = self._locks[key] = _KeyLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[key]

    async def guard(
        self,
        route_key: str,
        client_key: Optional[str],
        handler: Handler,
    ) -> StoredResponse:
        """
        Run ``handler`` at most once per (route_key, client_key).

        Args:
            route_key: Operation scope, e.g. ``"POST /pay"``
            client_key: Client-supplied idempotency key; None disables the guard
            handler: Coroutine factory producing the response

        Returns:
            The handler's response, or the recorded one (``replayed=True``)
        """
        if not client_key:
            return await handler()

        key = make_key(route_key, client_key)

        try:
            record = await self.store.get(key)
        except IdempotencyStoreError as e:
            return await self._fall_through(key, handler, e)
        if record is not None:
            return self._replay(record)

        async with self._key_lock(key):
            try:
                record = await self.store.get(key)
            except IdempotencyStoreError as e:
                return await self._fall_through(key, handler, e)
            if record is not None:
                return self._replay(record)

            # Any completed response is recorded, server errors included; an
            # exception from the handler leaves the key unrecorded.
            response = await handler()
            try:
                stored = await self.store.put_if_absent(key, response, self.ttl)
            except IdempotencyStoreError as e:
                logger.error("idempotency_store_unavailable", key=key, stage="record", error=str(e))
                return response

            if stored.response != response:
                # Another process recorded first; serve its response.
                return self._replay(stored)
            logger.debug("idempotency_recorded", key=key, status_code=response.status_code)
            return response

    def _replay(self, record: IdempotencyRecord) -> StoredResponse:
        logger.info(
            "idempotent_request_replayed",
            key=record.key,
            status_code=record.response.status_code,
        )
        return replace(record.response, replayed=True)

    async def _fall_through(self, key: str, handler: Handler, error: Exception) -> StoredResponse:
        logger.error("idempotency_store_unavailable", key=key, stage="lookup", error=str(error))
        return await handler()
