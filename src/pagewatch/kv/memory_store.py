"""In-process key-value store for local development and tests."""

from __future__ import annotations

import fnmatch
import time
from collections import deque
from typing import Callable, Mapping

from pagewatch.kv.store import KeyValueStore


class InMemoryKeyValueStore(KeyValueStore):
    """Dict backed KeyValueStore.

    Each key holds exactly one kind of value (string, hash, list or set), as in
    Redis. Expired keys are dropped lazily on access.

    Args:
        clock: Monotonic clock in seconds, injectable for TTL tests.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._data: dict[str, object] = {}
        self._expires_at: dict[str, float] = {}

    def _purge_if_expired(self, key: str) -> None:
        deadline = self._expires_at.get(key)
        if deadline is not None and self._clock() >= deadline:
            self._data.pop(key, None)
            self._expires_at.pop(key, None)

    def _lookup(self, key: str, kind: type):
        self._purge_if_expired(key)
        value = self._data.get(key)
        if value is not None and not isinstance(value, kind):
            raise TypeError(f"WRONGTYPE key {key} holds a {type(value).__name__}")
        return value

    async def get(self, key: str) -> str | None:
        return self._lookup(key, str)

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        self._data[key] = value
        if ttl is None:
            self._expires_at.pop(key, None)
        else:
            self._expires_at[key] = self._clock() + ttl

    async def delete(self, *keys: str) -> int:
        deleted = 0
        for key in keys:
            self._purge_if_expired(key)
            if key in self._data:
                deleted += 1
            self._data.pop(key, None)
            self._expires_at.pop(key, None)
        return deleted

    async def expire(self, key: str, ttl: int) -> bool:
        self._purge_if_expired(key)
        if key not in self._data:
            return False
        self._expires_at[key] = self._clock() + ttl
        return True

    async def hget(self, key: str, field: str) -> str | None:
        hash_value = self._lookup(key, dict)
        if hash_value is None:
            return None
        return hash_value.get(field)

    async def hset(self, key: str, mapping: Mapping[str, str]) -> int:
        hash_value = self._lookup(key, dict)
        if hash_value is None:
            hash_value = self._data[key] = {}
        added = sum(1 for field in mapping if field not in hash_value)
        hash_value.update(mapping)
        return added

    async def hgetall(self, key: str) -> dict[str, str]:
        return dict(self._lookup(key, dict) or {})

    async def hexists(self, key: str, field: str) -> bool:
        return field in (self._lookup(key, dict) or {})

    async def rpush(self, key: str, *values: str) -> int:
        list_value = self._lookup(key, deque)
        if list_value is None:
            list_value = self._data[key] = deque()
        list_value.extend(values)
        return len(list_value)

    async def lpop(self, key: str, count: int) -> list[str]:
        list_value = self._lookup(key, deque)
        if not list_value:
            return []
        popped = [list_value.popleft() for _ in range(min(count, len(list_value)))]
        if not list_value:
            # Redis removes empty lists
            await self.delete(key)
        return popped

    async def llen(self, key: str) -> int:
        return len(self._lookup(key, deque) or ())

    async def sadd(self, key: str, *members: str) -> int:
        set_value = self._lookup(key, set)
        if set_value is None:
            set_value = self._data[key] = set()
        added = len(set(members) - set_value)
        set_value.update(members)
        return added

    async def sismember(self, key: str, member: str) -> bool:
        return member in (self._lookup(key, set) or set())

    async def smembers(self, key: str) -> set[str]:
        return set(self._lookup(key, set) or set())

    async def scard(self, key: str) -> int:
        return len(self._lookup(key, set) or ())

    async def keys(self, pattern: str) -> list[str]:
        for key in list(self._data):
            self._purge_if_expired(key)
        return [key for key in self._data if fnmatch.fnmatchcase(key, pattern)]

    async def ttl(self, key: str) -> float | None:
        """Seconds until ``key`` expires, or None when it has no expiry."""
        self._purge_if_expired(key)
        deadline = self._expires_at.get(key)
        if deadline is None:
            return None
        return deadline - self._clock()
