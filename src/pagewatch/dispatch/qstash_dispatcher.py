from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any, Callable, Optional

import aiohttp
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from pagewatch.dispatch.dispatcher import Dispatcher
from pagewatch.main.aiohttp_client import aiohttp_client
from pagewatch.main.exceptions import DispatchException
from pagewatch.main.logging import get_logger

if TYPE_CHECKING:
    from pagewatch.main.config import Settings

logger = get_logger(__name__)


class QStashDispatcher(Dispatcher):
    """Publishes continuations through the QStash HTTP push service.

    QStash stores the message and POSTs it to the target URL, retrying up to
    ``Upstash-Retries`` times. Each delivery carries an ``Upstash-Signature``
    JWT that ``RequestVerifier`` checks.
    """

    def __init__(
        self,
        settings: Settings,
        session_provider: Callable[[], aiohttp.ClientSession] = aiohttp_client,
    ) -> None:
        super().__init__(settings)
        self._session_provider = session_provider

    async def publish(
        self,
        endpoint: str,
        payload: dict[str, Any],
        *,
        retries: Optional[int] = None,
        delay: Optional[int] = None,
    ) -> str:
        if not self._settings.qstash_token:
            raise DispatchException("QSTASH_TOKEN is not configured")

        url = self.target_url(endpoint)
        headers = {
            "Authorization": f"Bearer {self._settings.qstash_token}",
            "Content-Type": "application/json",
            "Upstash-Retries": str(self._retries(retries)),
        }
        if delay:
            headers["Upstash-Delay"] = f"{delay}s"

        try:
            message_id = await self._publish(url, headers, json.dumps(payload))
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.exception("Failed to publish continuation", extra={"url": url})
            raise DispatchException(f"Failed to publish to {endpoint}: {e}") from e

        logger.info(
            "Published continuation",
            extra={"url": url, "message_id": message_id},
        )
        return message_id

    @retry(
        wait=wait_random_exponential(min=1, max=10),
        stop=stop_after_attempt(3),
        retry=retry_if_exception_type((aiohttp.ClientError, asyncio.TimeoutError)),
        reraise=True,
    )
    async def _publish(self, url: str, headers: dict[str, str], body: str) -> str:
        publish_url = f"{self._settings.qstash_url.rstrip('/')}/v2/publish/{url}"
        session = self._session_provider()

        async with session.post(publish_url, data=body, headers=headers) as response:
            if response.status >= 500:
                # Transient on the QStash side, worth another attempt
                response.raise_for_status()

            if response.status >= 400:
                text = await response.text()
                raise DispatchException(
                    f"QStash rejected publish ({response.status}): {text[:200]}"
                )

            data = await response.json(content_type=None)

        return data.get("messageId", "")
