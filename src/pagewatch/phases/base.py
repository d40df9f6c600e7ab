from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Awaitable, Callable

from pagewatch.jobs.job import Job, JobStatus
from pagewatch.main.exceptions import (
    InvalidTransitionException,
    NotFoundException,
    PhaseFailedException,
)
from pagewatch.main.logging import get_logger
from pagewatch.main.request_context import phase_context
from pagewatch.phases.models import PhaseResult

if TYPE_CHECKING:
    from pagewatch.dispatch.dispatcher import Dispatcher
    from pagewatch.jobs.job_repo import JobRepository
    from pagewatch.jobs.task_models import PhaseRequest
    from pagewatch.main.config import Settings

logger = get_logger(__name__)


class PhaseHandler(ABC):
    """One bounded step of a job, run per delivered continuation.

    Subclasses implement ``_run``; this class owns the status guard and the
    batch failure boundary. A delivery for a job that is not in
    ``expected_status`` is a duplicate or arrived out of order and is
    acknowledged without touching state.
    """

    phase: str
    expected_status: JobStatus

    def __init__(
        self,
        job_repo: JobRepository,
        dispatcher: Dispatcher,
        settings: Settings,
    ) -> None:
        self._job_repo = job_repo
        self._dispatcher = dispatcher
        self._settings = settings

    async def handle(self, request: PhaseRequest) -> PhaseResult:
        batch_index = getattr(request, "batch_index", None)

        with phase_context(self.phase, request.job_id, batch_index):
            job = await self._job_repo.get_job_or_raise(request.job_id)

            if job.status != self.expected_status:
                logger.info(
                    f"Skipping {self.phase}: job is {job.status.value}",
                    extra={"status": job.status.value, "expected": self.expected_status.value},
                )
                return PhaseResult(
                    skipped=True,
                    job_id=job.id,
                    batch_index=batch_index,
                    message=f"Job is {job.status.value}, expected {self.expected_status.value}",
                )

            try:
                return await self._run(job, request)
            except Exception as e:
                logger.exception(f"{self.phase} batch failed")
                await self._fail_job(job.id, str(e) or type(e).__name__)
                raise PhaseFailedException(job.id, str(e) or type(e).__name__) from e

    @abstractmethod
    async def _run(self, job: Job, request: PhaseRequest) -> PhaseResult: ...

    async def _fail_job(self, job_id: str, error: str) -> None:
        try:
            await self._job_repo.transition_job(job_id, JobStatus.FAILED, error=error)
        except (InvalidTransitionException, NotFoundException):
            logger.warning("Job already finished or gone, not marking failed")
        except Exception:
            # Original batch error is raised by the caller
            logger.exception("Could not mark job failed")

    async def _advance(
        self,
        job_id: str,
        target: JobStatus,
        dispatch: Callable[[], Awaitable[str]],
    ) -> bool:
        """Move the job to ``target`` and dispatch that phase.

        Re-reads the job first; if another delivery has already moved it on,
        neither the transition nor the dispatch happens.
        """
        job = await self._job_repo.get_job_or_raise(job_id)
        if job.status != self.expected_status:
            logger.info(
                f"Job already advanced to {job.status.value}, not transitioning",
                extra={"status": job.status.value},
            )
            return False

        await self._job_repo.transition_job(job_id, target)
        await dispatch()
        return True
