"""Dedup ledger: the permanent record of items already surfaced to readers."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Iterable, Optional

from pydantic import BaseModel

from pagewatch.jobs.job import utcnow
from pagewatch.main.logging import get_logger

if TYPE_CHECKING:
    from pagewatch.kv.store import KeyValueStore

logger = get_logger(__name__)

SEEN_ITEMS_KEY = "seen_items"
LAST_CHECK_KEY = "last_check"


class LedgerInfo(BaseModel):
    last_run: Optional[datetime] = None
    seen_count: int = 0


class DedupLedger:
    """Set of notified item ids plus the timestamp of the last finished run.

    Ids are added only by Finalize and never expire; an id in the ledger is
    never reported as new again.
    """

    def __init__(self, kv: KeyValueStore) -> None:
        self._kv = kv

    async def get_seen_ids(self) -> set[str]:
        return await self._kv.smembers(SEEN_ITEMS_KEY)

    async def is_seen(self, item_id: str) -> bool:
        return await self._kv.sismember(SEEN_ITEMS_KEY, item_id)

    async def mark_seen(self, item_ids: Iterable[str]) -> int:
        item_ids = list(item_ids)
        if not item_ids:
            return 0

        added = await self._kv.sadd(SEEN_ITEMS_KEY, *item_ids)
        logger.debug(
            "Marked items as seen",
            extra={"requested": len(item_ids), "added": added},
        )
        return added

    async def record_run(self, at: datetime | None = None) -> datetime:
        at = at or utcnow()
        await self._kv.set(LAST_CHECK_KEY, at.isoformat())
        return at

    async def get_info(self) -> LedgerInfo:
        last_check = await self._kv.get(LAST_CHECK_KEY)
        return LedgerInfo(
            last_run=datetime.fromisoformat(last_check) if last_check else None,
            seen_count=await self._kv.scard(SEEN_ITEMS_KEY),
        )

    async def clear(self) -> int:
        return await self._kv.delete(SEEN_ITEMS_KEY, LAST_CHECK_KEY)
