"""Key-value store interface.

Everything the orchestrator persists goes through this interface: plain
strings, hashes of strings, lists of strings and sets of strings. Typed
records are serialized by the repositories before they reach the store.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Mapping

if TYPE_CHECKING:
    from pagewatch.main.config import Settings


class KeyValueStore(ABC):
    @abstractmethod
    async def get(self, key: str) -> str | None: ...

    @abstractmethod
    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        """Set a string value, optionally expiring after ``ttl`` seconds."""

    @abstractmethod
    async def delete(self, *keys: str) -> int:
        """Delete keys of any type. Returns the number of keys removed."""

    @abstractmethod
    async def expire(self, key: str, ttl: int) -> bool: ...

    @abstractmethod
    async def hget(self, key: str, field: str) -> str | None: ...

    @abstractmethod
    async def hset(self, key: str, mapping: Mapping[str, str]) -> int: ...

    @abstractmethod
    async def hgetall(self, key: str) -> dict[str, str]: ...

    @abstractmethod
    async def hexists(self, key: str, field: str) -> bool: ...

    @abstractmethod
    async def rpush(self, key: str, *values: str) -> int: ...

    @abstractmethod
    async def lpop(self, key: str, count: int) -> list[str]:
        """Atomically remove and return up to ``count`` entries from the head."""

    @abstractmethod
    async def llen(self, key: str) -> int: ...

    @abstractmethod
    async def sadd(self, key: str, *members: str) -> int: ...

    @abstractmethod
    async def sismember(self, key: str, member: str) -> bool: ...

    @abstractmethod
    async def smembers(self, key: str) -> set[str]: ...

    @abstractmethod
    async def scard(self, key: str) -> int: ...

    @abstractmethod
    async def keys(self, pattern: str) -> list[str]: ...

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


def create_kv_store(settings: "Settings") -> KeyValueStore:
    """Build the store backend selected by ``settings.kv_backend``."""
    if settings.kv_backend == "memory":
        from pagewatch.kv.memory_store import InMemoryKeyValueStore

        return InMemoryKeyValueStore()

    from pagewatch.kv.redis_store import RedisKeyValueStore

    return RedisKeyValueStore.from_settings(settings)
