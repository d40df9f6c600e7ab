from __future__ import annotations

from typing import TYPE_CHECKING

from pagewatch.jobs.job import Item, ItemStatus, Job, JobStatus, utcnow
from pagewatch.jobs.task_models import DiscoverBatchRequest
from pagewatch.main.logging import get_logger
from pagewatch.phases.base import PhaseHandler
from pagewatch.phases.filters import filter_recent, recency_cutoff
from pagewatch.phases.models import PhaseResult
from pagewatch.phases.pacing import pace
from pagewatch.scraper.parse_html import deduplicate_items

if TYPE_CHECKING:
    from pagewatch.dispatch.dispatcher import Dispatcher
    from pagewatch.jobs.job_repo import JobRepository
    from pagewatch.jobs.ledger import DedupLedger
    from pagewatch.main.config import Settings
    from pagewatch.scraper.scraper import ForumScraper

logger = get_logger(__name__)


class DiscoverHandler(PhaseHandler):
    """Scans one batch of tracked sources for items not reported before."""

    phase = "discover"
    expected_status = JobStatus.DISCOVERING

    def __init__(
        self,
        job_repo: JobRepository,
        dispatcher: Dispatcher,
        settings: Settings,
        ledger: DedupLedger,
        scraper: ForumScraper,
    ) -> None:
        super().__init__(job_repo, dispatcher, settings)
        self._ledger = ledger
        self._scraper = scraper

    async def _run(self, job: Job, request: DiscoverBatchRequest) -> PhaseResult:
        queue = self._job_repo.discovery_queue(job.id)
        sources = await queue.dequeue_sources(self._settings.discover_batch_size)

        if not sources:
            if not await queue.is_empty():
                # Entries arrived after our pop came back empty
                await self._dispatcher.dispatch_discover(job.id, request.batch_index + 1)
                return PhaseResult(
                    job_id=job.id,
                    batch_index=request.batch_index,
                    message="Empty batch, queue refilled",
                    next_phase=self.phase,
                )

            next_phase = await self._complete_discovery(job.id)
            return PhaseResult(
                job_id=job.id,
                batch_index=request.batch_index,
                message="Queue empty",
                next_phase=next_phase,
            )

        seen_ids = await self._ledger.get_seen_ids()
        cutoff = recency_cutoff(utcnow().date(), self._settings.max_age_days)

        new_items: list[Item] = []
        fetch_ids: list[str] = []
        batch_ids: set[str] = set()

        for index, source in enumerate(sources):
            await pace(index, self._settings.rate_limit_seconds)

            try:
                discovered = await self._scraper.fetch_listing(source.url)
            except Exception as e:
                logger.warning(
                    f"Failed to scan {source.name}, skipping",
                    extra={"source": source.name, "url": source.url, "error": str(e)},
                )
                continue

            recent = filter_recent(deduplicate_items(discovered), cutoff)
            found = 0

            for order, candidate in enumerate(recent):
                if candidate.id in seen_ids or candidate.id in batch_ids:
                    continue
                if await self._job_repo.has_item(job.id, candidate.id):
                    continue

                has_content = candidate.size_hint >= self._settings.min_size_for_content
                new_items.append(
                    Item(
                        id=candidate.id,
                        title=candidate.title,
                        source_url=candidate.url,
                        author=candidate.author,
                        published_date=candidate.date,
                        size_hint=candidate.size_hint,
                        group_key=source.name,
                        forum=candidate.forum,
                        scrape_order=order,
                        status=ItemStatus.PENDING if has_content else ItemStatus.SKIPPED,
                    )
                )
                batch_ids.add(candidate.id)
                if has_content:
                    fetch_ids.append(candidate.id)
                found += 1

            logger.info(
                f"Scanned {source.name}",
                extra={"source": source.name, "recent": len(recent), "new": found},
            )

        await self._job_repo.add_items(job.id, new_items)
        await self._job_repo.enqueue_fetch_targets(job.id, fetch_ids)
        await self._job_repo.update_job(
            job.id,
            discovery_targets_complete=job.discovery_targets_complete + len(sources),
            total_new_items=job.total_new_items + len(new_items),
            fetch_targets_total=job.fetch_targets_total + len(fetch_ids),
        )

        if await queue.is_empty():
            next_phase = await self._complete_discovery(job.id)
        else:
            await self._dispatcher.dispatch_discover(job.id, request.batch_index + 1)
            next_phase = self.phase

        return PhaseResult(
            job_id=job.id,
            batch_index=request.batch_index,
            processed=len(sources),
            new_items=len(new_items),
            queued_fetches=len(fetch_ids),
            next_phase=next_phase,
        )

    async def _complete_discovery(self, job_id: str) -> str | None:
        job = await self._job_repo.get_job_or_raise(job_id)

        if job.fetch_targets_total > 0:
            advanced = await self._advance(
                job_id,
                JobStatus.FETCHING,
                lambda: self._dispatcher.dispatch_fetch(job_id, 0),
            )
            return "fetch" if advanced else None

        advanced = await self._advance(
            job_id,
            JobStatus.FINALIZING,
            lambda: self._dispatcher.dispatch_finalize(job_id),
        )
        return "finalize" if advanced else None
