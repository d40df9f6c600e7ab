"""Redis backed key-value store."""

from __future__ import annotations

from typing import Mapping

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from pagewatch.kv.store import KeyValueStore
from pagewatch.main.config import Settings, get_settings
from pagewatch.main.logging import get_logger
from pagewatch.redis.connection import create_connection_pool

logger = get_logger(__name__)


class RedisKeyValueStore(KeyValueStore):
    """KeyValueStore over a ``redis.asyncio`` client with decoded responses.

    Args:
        redis_client: Async Redis connection created with decode_responses=True.
    """

    def __init__(self, redis_client: aioredis.Redis) -> None:
        self._redis = redis_client

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "RedisKeyValueStore":
        resolved_settings = settings or get_settings()
        pool = create_connection_pool(resolved_settings)

        logger.debug(
            f"Key-value store connected to redis on host {resolved_settings.redis_host}"
            f" and port {resolved_settings.redis_port}"
        )
        return cls(aioredis.Redis(connection_pool=pool))

    async def get(self, key: str) -> str | None:
        return await self._redis.get(key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        await self._redis.set(key, value, ex=ttl)

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return await self._redis.delete(*keys)

    async def expire(self, key: str, ttl: int) -> bool:
        return bool(await self._redis.expire(key, ttl))

    async def hget(self, key: str, field: str) -> str | None:
        return await self._redis.hget(key, field)

    async def hset(self, key: str, mapping: Mapping[str, str]) -> int:
        if not mapping:
            return 0
        return await self._redis.hset(key, mapping=dict(mapping))

    async def hgetall(self, key: str) -> dict[str, str]:
        return await self._redis.hgetall(key) or {}

    async def hexists(self, key: str, field: str) -> bool:
        return bool(await self._redis.hexists(key, field))

    async def rpush(self, key: str, *values: str) -> int:
        if not values:
            return await self.llen(key)
        return await self._redis.rpush(key, *values)

    async def lpop(self, key: str, count: int) -> list[str]:
        # LPOP with count (Redis >= 6.2) pops the whole batch in one atomic command
        popped = await self._redis.lpop(key, count)
        return list(popped) if popped else []

    async def llen(self, key: str) -> int:
        return await self._redis.llen(key)

    async def sadd(self, key: str, *members: str) -> int:
        if not members:
            return 0
        return await self._redis.sadd(key, *members)

    async def sismember(self, key: str, member: str) -> bool:
        return bool(await self._redis.sismember(key, member))

    async def smembers(self, key: str) -> set[str]:
        return set(await self._redis.smembers(key))

    async def scard(self, key: str) -> int:
        return await self._redis.scard(key)

    async def keys(self, pattern: str) -> list[str]:
        return [key async for key in self._redis.scan_iter(match=pattern, count=500)]

    async def ping(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except RedisError as exc:
            logger.warning("Redis ping failed", extra={"error": str(exc)})
            return False

    async def close(self) -> None:
        await self._redis.aclose()
