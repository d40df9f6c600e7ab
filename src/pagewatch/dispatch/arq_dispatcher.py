from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from arq import create_pool
from arq.connections import ArqRedis

from pagewatch.dispatch.dispatcher import Dispatcher
from pagewatch.main.exceptions import DispatchException, NotReadyException
from pagewatch.main.logging import get_logger
from pagewatch.redis.connection import arq_redis_settings

if TYPE_CHECKING:
    from pagewatch.main.config import Settings

logger = get_logger(__name__)

DELIVER_CONTINUATION = "deliver_continuation"


class ArqDispatcher(Dispatcher):
    """Self-hosted delivery: continuations become arq jobs.

    The worker in ``pagewatch.worker`` pops the job and POSTs the payload to
    the endpoint with the shared secret, retrying with backoff.
    """

    def __init__(self, settings: Settings, redis: ArqRedis | None = None) -> None:
        super().__init__(settings)
        self._redis = redis

    async def init(self) -> None:
        if self._redis is not None:
            return
        self._redis = await create_pool(arq_redis_settings(self._settings))

        logger.debug(
            f"Arq dispatcher connected to redis on host {self._settings.redis_host}"
            f" and port {self._settings.redis_port}"
        )

    async def close(self) -> None:
        if self._redis is None:
            return
        await self._redis.aclose()
        self._redis = None

    async def publish(
        self,
        endpoint: str,
        payload: dict[str, Any],
        *,
        retries: Optional[int] = None,
        delay: Optional[int] = None,
    ) -> str:
        if self._redis is None:
            raise NotReadyException("Arq dispatcher is not initialized!")

        url = self.target_url(endpoint)
        job = await self._redis.enqueue_job(
            DELIVER_CONTINUATION,
            url,
            payload,
            self._retries(retries),
            _defer_by=delay,
        )
        if job is None:
            raise DispatchException(f"Continuation to {endpoint} was not enqueued")

        logger.info(
            "Enqueued continuation",
            extra={"url": url, "message_id": job.job_id},
        )
        return job.job_id
