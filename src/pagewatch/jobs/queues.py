"""FIFO work queues for a job.

Dequeue is destructive and not transactional with the processing that
follows it: entries popped by an invocation that crashes before committing
progress are lost, not redelivered.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from pagewatch.main.config import TrackingSource
from pagewatch.main.logging import get_logger

if TYPE_CHECKING:
    from pagewatch.kv.store import KeyValueStore

logger = get_logger(__name__)


class BatchQueue:
    """A Redis list used as a FIFO queue of string entries.

    Args:
        kv: Key-value store holding the list.
        key: List key.
        ttl_seconds: Expiry refreshed on every enqueue, so abandoned queues
            disappear together with their job.
    """

    def __init__(self, kv: KeyValueStore, key: str, ttl_seconds: int | None = None) -> None:
        self._kv = kv
        self._key = key
        self._ttl_seconds = ttl_seconds

    @property
    def key(self) -> str:
        return self._key

    async def enqueue(self, *entries: str) -> int:
        if not entries:
            return await self.length()

        length = await self._kv.rpush(self._key, *entries)
        if self._ttl_seconds:
            await self._kv.expire(self._key, self._ttl_seconds)
        return length

    async def dequeue_batch(self, max_count: int) -> list[str]:
        """Pop up to ``max_count`` entries from the head of the queue."""
        if max_count <= 0:
            return []
        return await self._kv.lpop(self._key, max_count)

    async def is_empty(self) -> bool:
        # Only meaningful after a dequeue attempt; checking first races producers
        return await self.length() == 0

    async def length(self) -> int:
        return await self._kv.llen(self._key)


class DiscoveryQueue(BatchQueue):
    """Queue of tracked sources still to be scanned, stored as JSON."""

    async def enqueue_sources(self, sources: list[TrackingSource]) -> int:
        return await self.enqueue(
            *(json.dumps(source.model_dump(), ensure_ascii=False, sort_keys=True) for source in sources)
        )

    async def dequeue_sources(self, max_count: int) -> list[TrackingSource]:
        sources = []
        for raw in await self.dequeue_batch(max_count):
            try:
                sources.append(TrackingSource.model_validate_json(raw))
            except ValueError as exc:
                # Poison entry: already removed by the pop, drop it
                logger.warning(
                    "Dropping invalid entry from discovery queue",
                    extra={"queue": self.key, "error": str(exc)},
                )
        return sources


class FetchQueue(BatchQueue):
    """Queue of item ids awaiting a content fetch."""
