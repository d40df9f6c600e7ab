from __future__ import annotations

from typing import TYPE_CHECKING

from pagewatch.jobs.job import Job, JobStatus
from pagewatch.jobs.task_models import FinalizeRequest
from pagewatch.main.logging import get_logger
from pagewatch.notifications.digest import group_items
from pagewatch.notifications.email_sender import NotificationResult
from pagewatch.phases.base import PhaseHandler
from pagewatch.phases.models import PhaseResult

if TYPE_CHECKING:
    from pagewatch.dispatch.dispatcher import Dispatcher
    from pagewatch.jobs.job_repo import JobRepository
    from pagewatch.jobs.ledger import DedupLedger
    from pagewatch.main.config import Settings
    from pagewatch.notifications.email_sender import Notifier

logger = get_logger(__name__)


class FinalizeHandler(PhaseHandler):
    """Sends the digest, records every item in the ledger and completes the job.

    Items are ledgered whatever the notification outcome, so a failed e-mail
    is not retried by a later run.
    """

    phase = "finalize"
    expected_status = JobStatus.FINALIZING

    def __init__(
        self,
        job_repo: JobRepository,
        dispatcher: Dispatcher,
        settings: Settings,
        ledger: DedupLedger,
        notifier: Notifier,
    ) -> None:
        super().__init__(job_repo, dispatcher, settings)
        self._ledger = ledger
        self._notifier = notifier

    async def _run(self, job: Job, request: FinalizeRequest) -> PhaseResult:
        items = await self._job_repo.get_all_items(job.id)

        if not items:
            await self._ledger.record_run()
            await self._job_repo.transition_job(
                job.id, JobStatus.COMPLETE, notification_sent=False
            )
            return PhaseResult(
                job_id=job.id,
                message="No new items to send",
                total_items=0,
                notification_sent=False,
            )

        groups = group_items(items, [source.name for source in self._settings.tracking_sources])

        try:
            result = await self._notifier.send_digest(groups)
        except Exception as e:
            logger.exception("Notifier raised")
            result = NotificationResult(success=False, error=str(e) or type(e).__name__)

        if not result.success:
            logger.warning("Digest not sent", extra={"error": result.error})

        await self._ledger.mark_seen(item.id for item in items)
        await self._ledger.record_run()
        await self._job_repo.transition_job(
            job.id,
            JobStatus.COMPLETE,
            notification_sent=result.success,
            notification_error=result.error,
        )

        return PhaseResult(
            job_id=job.id,
            total_items=len(items),
            notification_sent=result.success,
            notification_error=result.error,
        )
