"""
Redis Storage Backend.

Shared, restart-safe storage for deployments that already run Redis.
"""

from __future__ import annotations

import json
import os
from typing import Any

import redis.asyncio as redis

from pollstate.core.logging import get_logger
from pollstate.storage.base import StorageBackend, register_storage_backend

logger = get_logger("storage.redis")


class RedisStorage(StorageBackend):
    """Redis storage backend."""

    def __init__(
        self,
        redis_url: str | None = None,
        prefix: str = "pollstate",
    ) -> None:
        """
        Initialize Redis storage.

        Args:
            redis_url: Redis connection URL (or from POLLSTATE_REDIS_URL env)
            prefix: Key prefix for all storage keys
        """
        self._redis_url = redis_url or os.environ.get(
            "POLLSTATE_REDIS_URL",
            "redis://localhost:6379/0",
        )
        self._prefix = prefix
        self._client: redis.Redis | None = None

    def _get_client(self) -> redis.Redis:
        """Lazy-load Redis client."""
        if self._client is None:
            self._client = redis.from_url(self._redis_url, decode_responses=True)
        return self._client

    def _make_key(self, collection: str, key: str) -> str:
        return f"{self._prefix}:{collection}:{key}"

    def _index_key(self, collection: str) -> str:
        return f"{self._prefix}:{collection}:_index"

    async def save(self, collection: str, key: str, data: dict[str, Any]) -> None:
        # Record and index entry are written in one MULTI/EXEC
        async with self._get_client().pipeline(transaction=True) as pipe:
            pipe.set(self._make_key(collection, key), json.dumps(data))
            pipe.sadd(self._index_key(collection), key)
            await pipe.execute()

    async def get(self, collection: str, key: str) -> dict[str, Any] | None:
        redis_key = self._make_key(collection, key)
        raw = await self._get_client().get(redis_key)
        if raw is None:
            return None
        try:
            decoded = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Ignoring non-JSON value at {redis_key}")
            return None
        return decoded if isinstance(decoded, dict) else None

    async def delete(self, collection: str, key: str) -> bool:
        async with self._get_client().pipeline(transaction=True) as pipe:
            pipe.delete(self._make_key(collection, key))
            pipe.srem(self._index_key(collection), key)
            deleted, _ = await pipe.execute()
        return deleted > 0

    async def clear(self, collection: str) -> int:
        client = self._get_client()
        index_key = self._index_key(collection)
        keys = await client.smembers(index_key)
        if not keys:
            return 0
        await client.delete(*(self._make_key(collection, k) for k in keys), index_key)
        return len(keys)

    async def health_check(self) -> bool:
        try:
            await self._get_client().ping()
        except redis.RedisError as e:
            logger.warning(f"Redis health check failed: {e}")
            return False
        return True

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


register_storage_backend("redis", RedisStorage)
