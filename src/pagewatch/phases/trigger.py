from __future__ import annotations

from typing import TYPE_CHECKING

from pagewatch.jobs.job import JobStatus
from pagewatch.main.exceptions import DispatchException
from pagewatch.main.logging import get_logger
from pagewatch.phases.models import TriggerResult

if TYPE_CHECKING:
    from pagewatch.dispatch.dispatcher import Dispatcher
    from pagewatch.jobs.job_repo import JobRepository
    from pagewatch.jobs.reaper import StuckJobReaper
    from pagewatch.main.config import Settings

logger = get_logger(__name__)


class TriggerService:
    """Entry point of a run, called by the external timer."""

    def __init__(
        self,
        job_repo: JobRepository,
        dispatcher: Dispatcher,
        reaper: StuckJobReaper,
        settings: Settings,
    ) -> None:
        self._job_repo = job_repo
        self._dispatcher = dispatcher
        self._reaper = reaper
        self._settings = settings

    async def start_run(self, force: bool = False) -> TriggerResult:
        check = await self._reaper.check()
        reaped_job_id = None

        if check.job is not None:
            if check.is_stuck:
                await self._reaper.reap(check)
                reaped_job_id = check.job.id
            elif not force:
                return TriggerResult(
                    started=False,
                    message="Job already in progress",
                    job_id=check.job.id,
                    status=check.job.status.value,
                )
            else:
                # The old job keeps running on its own continuations
                logger.warning(
                    "Forcing a new job while another is active",
                    extra={"job_id": check.job.id, "status": check.job.status.value},
                )

        sources = self._settings.tracking_sources
        job = await self._job_repo.create_job(sources)

        try:
            await self._dispatcher.dispatch_discover(job.id, 0)
        except DispatchException as e:
            await self._job_repo.transition_job(job.id, JobStatus.FAILED, error=str(e))
            raise

        return TriggerResult(
            started=True,
            message="Job started",
            job_id=job.id,
            status=job.status.value,
            discovery_targets=len(sources),
            reaped_job_id=reaped_job_id,
        )
