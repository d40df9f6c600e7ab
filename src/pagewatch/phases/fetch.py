from __future__ import annotations

from typing import TYPE_CHECKING

from pagewatch.jobs.job import ItemStatus, Job, JobStatus
from pagewatch.jobs.task_models import FetchBatchRequest
from pagewatch.main.logging import get_logger
from pagewatch.phases.base import PhaseHandler
from pagewatch.phases.models import PhaseResult
from pagewatch.phases.pacing import pace

if TYPE_CHECKING:
    from pagewatch.dispatch.dispatcher import Dispatcher
    from pagewatch.jobs.job_repo import JobRepository
    from pagewatch.main.config import Settings
    from pagewatch.scraper.scraper import ForumScraper

logger = get_logger(__name__)


class FetchHandler(PhaseHandler):
    """Fetches full content for one batch of discovered items."""

    phase = "fetch"
    expected_status = JobStatus.FETCHING

    def __init__(
        self,
        job_repo: JobRepository,
        dispatcher: Dispatcher,
        settings: Settings,
        scraper: ForumScraper,
    ) -> None:
        super().__init__(job_repo, dispatcher, settings)
        self._scraper = scraper

    async def _run(self, job: Job, request: FetchBatchRequest) -> PhaseResult:
        queue = self._job_repo.fetch_queue(job.id)
        item_ids = await queue.dequeue_batch(self._settings.fetch_batch_size)

        if not item_ids:
            if not await queue.is_empty():
                await self._dispatcher.dispatch_fetch(job.id, request.batch_index + 1)
                return PhaseResult(
                    job_id=job.id,
                    batch_index=request.batch_index,
                    message="Empty batch, queue refilled",
                    next_phase=self.phase,
                )

            next_phase = await self._complete_fetch(job.id)
            return PhaseResult(
                job_id=job.id,
                batch_index=request.batch_index,
                message="Queue empty",
                next_phase=next_phase,
            )

        requests_made = 0
        failed = 0

        for item_id in item_ids:
            item = await self._job_repo.get_item(job.id, item_id)
            if item is None:
                logger.warning("Queued item not found, skipping", extra={"item_id": item_id})
                continue
            if item.status != ItemStatus.PENDING:
                continue

            await pace(requests_made, self._settings.rate_limit_seconds)
            requests_made += 1

            try:
                content = await self._scraper.fetch_content(item.source_url)
            except Exception as e:
                logger.warning(
                    "Failed to fetch content",
                    extra={"item_id": item_id, "url": item.source_url, "error": str(e)},
                )
                await self._job_repo.update_item(
                    job.id, item_id, status=ItemStatus.SKIPPED, fetch_error=str(e) or type(e).__name__
                )
                failed += 1
                continue

            await self._job_repo.update_item(
                job.id, item_id, status=ItemStatus.FETCHED, content=content
            )

        await self._job_repo.update_job(
            job.id,
            fetch_targets_complete=job.fetch_targets_complete + len(item_ids),
        )

        if await queue.is_empty():
            next_phase = await self._complete_fetch(job.id)
        else:
            await self._dispatcher.dispatch_fetch(job.id, request.batch_index + 1)
            next_phase = self.phase

        return PhaseResult(
            job_id=job.id,
            batch_index=request.batch_index,
            processed=len(item_ids),
            failed=failed,
            next_phase=next_phase,
        )

    async def _complete_fetch(self, job_id: str) -> str | None:
        advanced = await self._advance(
            job_id,
            JobStatus.FINALIZING,
            lambda: self._dispatcher.dispatch_finalize(job_id),
        )
        return "finalize" if advanced else None
