from __future__ import annotations

import asyncio
import uuid
from typing import TYPE_CHECKING, Any, Callable, Optional

import aiohttp

from pagewatch.dispatch.dispatcher import Dispatcher
from pagewatch.dispatch.endpoints import LOCAL_DEV_HEADER
from pagewatch.main.aiohttp_client import aiohttp_client
from pagewatch.main.logging import get_logger

if TYPE_CHECKING:
    from pagewatch.main.config import Settings

logger = get_logger(__name__)


class LocalDispatcher(Dispatcher):
    """Development dispatcher: POSTs the continuation in the background.

    There is no redelivery. Failures are logged and never raised, so a
    broken chain in development leaves the job to the stuck-job reaper.
    """

    def __init__(
        self,
        settings: Settings,
        session_provider: Callable[[], aiohttp.ClientSession] = aiohttp_client,
    ) -> None:
        super().__init__(settings)
        self._session_provider = session_provider
        self._tasks: set[asyncio.Task] = set()

    async def publish(
        self,
        endpoint: str,
        payload: dict[str, Any],
        *,
        retries: Optional[int] = None,
        delay: Optional[int] = None,
    ) -> str:
        message_id = f"local-{uuid.uuid4().hex}"
        url = self.target_url(endpoint)

        task = asyncio.create_task(self._deliver(url, payload, delay))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        logger.debug("Scheduled local continuation", extra={"url": url, "message_id": message_id})
        return message_id

    async def _deliver(self, url: str, payload: dict[str, Any], delay: Optional[int]) -> None:
        if delay:
            await asyncio.sleep(delay)

        try:
            session = self._session_provider()
            async with session.post(
                url,
                json=payload,
                headers={LOCAL_DEV_HEADER: "true"},
                timeout=aiohttp.ClientTimeout(total=None),
            ) as response:
                if response.status >= 400:
                    logger.error(
                        f"Local continuation to {url} returned {response.status}",
                        extra={"url": url, "status_code": response.status},
                    )
        except Exception:
            logger.exception("Local continuation failed", extra={"url": url})

    async def close(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
