"""Stuck-job detection for the active job.

Runs lazily at the entry point. A job whose heartbeat (``updated_at``) is
older than the timeout is failed so a new run can start. An active pointer
referencing an expired or finished job is cleared.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from pagewatch.jobs.job import Job, JobStatus, utcnow
from pagewatch.main.logging import get_logger

if TYPE_CHECKING:
    from pagewatch.jobs.job_repo import JobRepository

logger = get_logger(__name__)

STUCK_JOB_ERROR = "Job timed out - marked as stuck"


@dataclass
class StuckCheck:
    """Result of inspecting the active job."""

    job: Optional[Job] = None
    is_stuck: bool = False
    idle_seconds: float = 0.0


class StuckJobReaper:
    """Fails the active job when it has stopped making progress.

    Args:
        job_repo: Job record store.
        timeout_seconds: Idle time after which an active job is stuck.
    """

    def __init__(self, job_repo: JobRepository, timeout_seconds: int) -> None:
        self._job_repo = job_repo
        self._timeout_seconds = timeout_seconds

    async def check(self, now: datetime | None = None) -> StuckCheck:
        job_id = await self._job_repo.get_active_job_id()
        if job_id is None:
            return StuckCheck()

        job = await self._job_repo.get_job(job_id)
        if job is None or job.is_terminal:
            logger.info(
                "Clearing stale active job pointer",
                extra={"job_id": job_id, "job_found": job is not None},
            )
            await self._job_repo.clear_active_job(job_id)
            return StuckCheck()

        idle_seconds = job.idle_seconds(now or utcnow())
        return StuckCheck(
            job=job,
            is_stuck=idle_seconds > self._timeout_seconds,
            idle_seconds=idle_seconds,
        )

    async def reap(self, check: StuckCheck | None = None) -> Job | None:
        """Fail the active job if it is stuck. Returns the failed job."""
        check = check or await self.check()
        if not check.is_stuck or check.job is None:
            return None

        logger.warning(
            "Failing stuck job",
            extra={
                "job_id": check.job.id,
                "status": check.job.status.value,
                "idle_seconds": int(check.idle_seconds),
                "timeout_seconds": self._timeout_seconds,
            },
        )
        return await self._job_repo.transition_job(
            check.job.id, JobStatus.FAILED, error=STUCK_JOB_ERROR
        )
