from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse
from pydantic import BaseModel

from pagewatch.jobs.ledger import LedgerInfo
from pagewatch.notifications.digest import group_items, render_preview_html
from pagewatch.server.dependencies.container import Container, get_container

router = APIRouter()


class CheckResponse(BaseModel):
    ledger: LedgerInfo
    sources: list[str]


@router.get("/preview", response_class=HTMLResponse)
async def preview_digest(
    job_id: Optional[str] = Query(default=None, alias="jobId"),
    container: Container = Depends(get_container),
):
    job_repo = container.job_repo()
    job = await job_repo.get_job(job_id) if job_id else await job_repo.get_latest_job()

    groups = {}
    if job is not None:
        source_names = [source.name for source in container.settings.tracking_sources]
        groups = group_items(await job_repo.get_all_items(job.id), source_names)

    return HTMLResponse(render_preview_html(groups, job))


@router.get("/check", response_model=CheckResponse)
async def check_ledger(container: Container = Depends(get_container)):
    return CheckResponse(
        ledger=await container.ledger().get_info(),
        sources=[source.name for source in container.settings.tracking_sources],
    )
