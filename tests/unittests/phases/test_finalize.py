import pytest

from pagewatch.jobs.job import Item, ItemStatus, JobStatus
from pagewatch.jobs.task_models import FinalizeRequest
from pagewatch.notifications.email_sender import NotificationResult


def make_item(item_id, group_key, scrape_order=0):
    return Item(
        id=item_id,
        title=f"Post {item_id}",
        source_url=f"https://bbs.example.com/forum/{item_id}.html",
        group_key=group_key,
        scrape_order=scrape_order,
        status=ItemStatus.FETCHED,
        content="body",
    )


async def finalizing_job(job_repo, items):
    job = await job_repo.create_job([])
    await job_repo.add_items(job.id, items)
    await job_repo.transition_job(job.id, JobStatus.FINALIZING)
    return job


@pytest.mark.asyncio
async def test_digest_is_grouped_in_source_order(pipeline, job_repo, notifier, ledger):
    job = await finalizing_job(
        job_repo,
        [
            make_item("g1", "gamma"),
            make_item("a2", "alpha", scrape_order=1),
            make_item("a1", "alpha", scrape_order=0),
            make_item("x1", "unknown"),
        ],
    )

    result = await pipeline.finalize.handle(FinalizeRequest(job_id=job.id))

    groups = notifier.calls[0]
    assert list(groups) == ["alpha", "gamma", "unknown"]
    assert [item.id for item in groups["alpha"]] == ["a1", "a2"]
    assert result.total_items == 4
    assert result.notification_sent is True

    job = await job_repo.get_job(job.id)
    assert job.status == JobStatus.COMPLETE
    assert job.notification_sent is True
    assert await ledger.get_seen_ids() == {"g1", "a1", "a2", "x1"}
    assert (await ledger.get_info()).last_run is not None


@pytest.mark.asyncio
async def test_failed_notification_still_ledgers_and_completes(pipeline, job_repo, notifier, ledger):
    notifier.result = NotificationResult(success=False, error="Resend rejected the message")
    job = await finalizing_job(job_repo, [make_item("1", "alpha")])

    result = await pipeline.finalize.handle(FinalizeRequest(job_id=job.id))

    assert result.success is True
    assert result.notification_sent is False
    job = await job_repo.get_job(job.id)
    assert job.status == JobStatus.COMPLETE
    assert job.notification_error == "Resend rejected the message"
    assert job.error is None
    assert await ledger.is_seen("1")


@pytest.mark.asyncio
async def test_raising_notifier_is_treated_as_failed_send(pipeline, job_repo, notifier, ledger):
    notifier.error = RuntimeError("smtp exploded")
    job = await finalizing_job(job_repo, [make_item("1", "alpha")])

    result = await pipeline.finalize.handle(FinalizeRequest(job_id=job.id))

    assert result.notification_error == "smtp exploded"
    assert (await job_repo.get_job(job.id)).status == JobStatus.COMPLETE
    assert await ledger.is_seen("1")


@pytest.mark.asyncio
async def test_replayed_finalize_does_not_notify_twice(pipeline, job_repo, notifier):
    job = await finalizing_job(job_repo, [make_item("1", "alpha")])
    await pipeline.finalize.handle(FinalizeRequest(job_id=job.id))

    replay = await pipeline.finalize.handle(FinalizeRequest(job_id=job.id))

    assert replay.skipped is True
    assert len(notifier.calls) == 1


@pytest.mark.asyncio
async def test_no_items_completes_without_notifying(pipeline, job_repo, notifier, ledger):
    job = await finalizing_job(job_repo, [])

    result = await pipeline.finalize.handle(FinalizeRequest(job_id=job.id))

    assert result.total_items == 0
    assert result.notification_sent is False
    assert notifier.calls == []
    job = await job_repo.get_job(job.id)
    assert job.status == JobStatus.COMPLETE
    assert job.notification_sent is False
    assert (await ledger.get_info()).last_run is not None
