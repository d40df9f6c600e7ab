from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable

from pagewatch.jobs.job import Item, Job, JobStatus, generate_job_id, utcnow
from pagewatch.jobs.queues import DiscoveryQueue, FetchQueue
from pagewatch.jobs.state_machine import ensure_transition, is_terminal
from pagewatch.main.config import TrackingSource
from pagewatch.main.exceptions import NotFoundException
from pagewatch.main.logging import get_logger

if TYPE_CHECKING:
    from pagewatch.kv.store import KeyValueStore

logger = get_logger(__name__)


class JobKeys:
    CURRENT_JOB = "current_job"
    LAST_JOB = "last_job"  # Survives completion for inspection
    JOB_PATTERN = "job:*"

    @staticmethod
    def job(job_id: str) -> str:
        return f"job:{job_id}"

    @staticmethod
    def items(job_id: str) -> str:
        return f"job:{job_id}:items"

    @staticmethod
    def discovery_queue(job_id: str) -> str:
        return f"job:{job_id}:discovery_queue"

    @staticmethod
    def fetch_queue(job_id: str) -> str:
        return f"job:{job_id}:fetch_queue"


class JobRepository:
    """Persistence for jobs, their items and their queues.

    This is the only component that reads or writes the active job pointer.
    Records are serialized to JSON here so callers only see typed models.

    Args:
        kv: Key-value store.
        ttl_seconds: Retention of job scoped keys, refreshed on every write.
    """

    def __init__(self, kv: KeyValueStore, ttl_seconds: int) -> None:
        self._kv = kv
        self._ttl_seconds = ttl_seconds

    # Queues

    def discovery_queue(self, job_id: str) -> DiscoveryQueue:
        return DiscoveryQueue(self._kv, JobKeys.discovery_queue(job_id), self._ttl_seconds)

    def fetch_queue(self, job_id: str) -> FetchQueue:
        return FetchQueue(self._kv, JobKeys.fetch_queue(job_id), self._ttl_seconds)

    # Jobs

    async def create_job(self, sources: list[TrackingSource]) -> Job:
        now = utcnow()
        job = Job(
            id=generate_job_id(),
            status=JobStatus.DISCOVERING,
            started_at=now,
            updated_at=now,
            discovery_targets_total=len(sources),
        )

        await self._save(job)
        await self.discovery_queue(job.id).enqueue_sources(sources)
        await self._kv.set(JobKeys.CURRENT_JOB, job.id)
        await self._kv.set(JobKeys.LAST_JOB, job.id)

        logger.info(
            "Created job",
            extra={"job_id": job.id, "discovery_targets": len(sources)},
        )
        return job

    async def get_job(self, job_id: str) -> Job | None:
        raw = await self._kv.get(JobKeys.job(job_id))
        if raw is None:
            return None
        return Job.model_validate_json(raw)

    async def get_job_or_raise(self, job_id: str) -> Job:
        job = await self.get_job(job_id)
        if job is None:
            raise NotFoundException(f"Job {job_id} not found")
        return job

    async def get_active_job_id(self) -> str | None:
        return await self._kv.get(JobKeys.CURRENT_JOB)

    async def get_active_job(self) -> Job | None:
        job_id = await self.get_active_job_id()
        if job_id is None:
            return None
        return await self.get_job(job_id)

    async def get_latest_job(self) -> Job | None:
        """Active job if there is one, otherwise the last job that ran."""
        job = await self.get_active_job()
        if job is not None:
            return job

        last_job_id = await self._kv.get(JobKeys.LAST_JOB)
        if last_job_id is None:
            return None
        return await self.get_job(last_job_id)

    async def clear_active_job(self, job_id: str | None = None) -> None:
        """Clear the active pointer; with ``job_id`` only if it still points there."""
        if job_id is not None and await self.get_active_job_id() != job_id:
            return
        await self._kv.delete(JobKeys.CURRENT_JOB)

    async def update_job(self, job_id: str, **changes: Any) -> Job:
        job = await self.get_job_or_raise(job_id)
        updated = job.model_copy(update={**changes, "updated_at": utcnow()})
        await self._save(updated)
        return updated

    async def transition_job(self, job_id: str, status: JobStatus, **changes: Any) -> Job:
        job = await self.get_job_or_raise(job_id)
        ensure_transition(job.status, status)

        if is_terminal(status):
            changes["completed_at"] = utcnow()

        updated = await self.update_job(job_id, status=status, **changes)

        if is_terminal(status):
            await self.clear_active_job(job_id)

        logger.info(
            f"Job transitioned {job.status.value} -> {status.value}",
            extra={"job_id": job_id, "from_status": job.status.value, "to_status": status.value},
        )
        return updated

    async def delete_job(self, job_id: str) -> int:
        return await self._kv.delete(
            JobKeys.job(job_id),
            JobKeys.items(job_id),
            JobKeys.discovery_queue(job_id),
            JobKeys.fetch_queue(job_id),
        )

    async def delete_all_jobs(self) -> int:
        """Delete every job scoped key and both job pointers."""
        job_keys = await self._kv.keys(JobKeys.JOB_PATTERN)
        deleted = await self._kv.delete(JobKeys.CURRENT_JOB, JobKeys.LAST_JOB)
        if job_keys:
            deleted += await self._kv.delete(*job_keys)
        return deleted

    async def _save(self, job: Job) -> None:
        await self._kv.set(JobKeys.job(job.id), job.model_dump_json(), ttl=self._ttl_seconds)

    # Items

    async def add_items(self, job_id: str, items: Iterable[Item]) -> int:
        mapping = {item.id: item.model_dump_json() for item in items}
        if not mapping:
            return 0

        added = await self._kv.hset(JobKeys.items(job_id), mapping)
        await self._kv.expire(JobKeys.items(job_id), self._ttl_seconds)
        return added

    async def has_item(self, job_id: str, item_id: str) -> bool:
        return await self._kv.hexists(JobKeys.items(job_id), item_id)

    async def get_item(self, job_id: str, item_id: str) -> Item | None:
        raw = await self._kv.hget(JobKeys.items(job_id), item_id)
        if raw is None:
            return None
        return Item.model_validate_json(raw)

    async def update_item(self, job_id: str, item_id: str, **changes: Any) -> Item:
        item = await self.get_item(job_id, item_id)
        if item is None:
            raise NotFoundException(f"Item {item_id} not found in job {job_id}")

        updated = item.model_copy(update=changes)
        await self._kv.hset(JobKeys.items(job_id), {item_id: updated.model_dump_json()})
        return updated

    async def get_all_items(self, job_id: str) -> list[Item]:
        raw_items = await self._kv.hgetall(JobKeys.items(job_id))
        return [Item.model_validate_json(raw) for raw in raw_items.values()]

    async def enqueue_fetch_targets(self, job_id: str, item_ids: list[str]) -> int:
        """Queue items for content fetch. Returns the new queue length."""
        if not item_ids:
            return await self.fetch_queue(job_id).length()
        return await self.fetch_queue(job_id).enqueue(*item_ids)

    async def pending_counts(self, job_id: str) -> dict[str, int]:
        return {
            "pending_discovery_targets": await self.discovery_queue(job_id).length(),
            "pending_fetch_targets": await self.fetch_queue(job_id).length(),
        }
