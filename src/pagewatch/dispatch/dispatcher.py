from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Optional

from pagewatch.dispatch.endpoints import DISCOVER_ENDPOINT, FETCH_ENDPOINT, FINALIZE_ENDPOINT
from pagewatch.jobs.task_models import DiscoverBatchRequest, FetchBatchRequest, FinalizeRequest

if TYPE_CHECKING:
    from pagewatch.main.config import Settings


class Dispatcher(ABC):
    """Outbound continuation channel.

    ``publish`` hands a message to a delivery mechanism that POSTs it to one of
    the phase endpoints, retrying delivery on failure. Delivery is
    at-least-once; the phase handlers are responsible for ignoring repeats.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    @abstractmethod
    async def publish(
        self,
        endpoint: str,
        payload: dict[str, Any],
        *,
        retries: Optional[int] = None,
        delay: Optional[int] = None,
    ) -> str:
        """Publish ``payload`` for delivery to ``endpoint``. Returns a message id."""

    async def close(self) -> None:
        return None

    def target_url(self, endpoint: str) -> str:
        return f"{self._settings.resolved_base_url}{endpoint}"

    def _retries(self, retries: Optional[int]) -> int:
        return self._settings.dispatch_retries if retries is None else retries

    async def dispatch_discover(self, job_id: str, batch_index: int) -> str:
        request = DiscoverBatchRequest(job_id=job_id, batch_index=batch_index)
        return await self.publish(DISCOVER_ENDPOINT, request.to_payload())

    async def dispatch_fetch(self, job_id: str, batch_index: int) -> str:
        request = FetchBatchRequest(job_id=job_id, batch_index=batch_index)
        return await self.publish(FETCH_ENDPOINT, request.to_payload())

    async def dispatch_finalize(self, job_id: str) -> str:
        return await self.publish(FINALIZE_ENDPOINT, FinalizeRequest(job_id=job_id).to_payload())
