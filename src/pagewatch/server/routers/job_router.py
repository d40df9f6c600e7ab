from typing import Optional, Type, TypeVar

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from pagewatch.jobs.task_models import (
    DiscoverBatchRequest,
    FetchBatchRequest,
    FinalizeRequest,
    PhaseRequest,
)
from pagewatch.main.exceptions import BadRequestException
from pagewatch.main.logging import get_logger
from pagewatch.phases.models import PhaseResult
from pagewatch.server.dependencies.container import Container, get_container
from pagewatch.server.protocol import responses

logger = get_logger(__name__)

router = APIRouter()

RequestT = TypeVar("RequestT", bound=PhaseRequest)


async def parse_phase_request(
    request: Request, model: Type[RequestT], container: Container
) -> RequestT:
    """Authenticate against the raw body, then parse it."""
    body = await request.body()
    method = container.verifier().verify_phase_request(request, body)

    try:
        parsed = model.model_validate_json(body)
    except ValidationError as e:
        raise BadRequestException(f"Invalid request body: {e.error_count()} error(s)") from e

    logger.debug(
        f"Accepted {request.url.path}",
        extra={"job_id": parsed.job_id, "verified_by": method},
    )
    return parsed


@router.post(
    "/discover",
    response_model=PhaseResult,
    responses=responses.get_responses([400, 401, 404, 500]),
)
async def run_discover_batch(request: Request, container: Container = Depends(get_container)):
    phase_request = await parse_phase_request(request, DiscoverBatchRequest, container)
    return await container.discover_handler().handle(phase_request)


@router.post(
    "/fetch",
    response_model=PhaseResult,
    responses=responses.get_responses([400, 401, 404, 500]),
)
async def run_fetch_batch(request: Request, container: Container = Depends(get_container)):
    phase_request = await parse_phase_request(request, FetchBatchRequest, container)
    return await container.fetch_handler().handle(phase_request)


@router.post(
    "/finalize",
    response_model=PhaseResult,
    responses=responses.get_responses([400, 401, 404, 500]),
)
async def run_finalize(request: Request, container: Container = Depends(get_container)):
    phase_request = await parse_phase_request(request, FinalizeRequest, container)
    return await container.finalize_handler().handle(phase_request)


class JobStatusResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = True
    message: Optional[str] = None
    job: Optional[dict] = None
    item_count: Optional[int] = None
    items: Optional[list[dict]] = None


@router.get("/status", response_model=JobStatusResponse, response_model_exclude_none=True)
async def get_job_status(
    job_id: Optional[str] = Query(default=None, alias="jobId"),
    items: bool = False,
    container: Container = Depends(get_container),
):
    job_repo = container.job_repo()
    job = await job_repo.get_job(job_id) if job_id else await job_repo.get_latest_job()

    if job is None:
        return JobStatusResponse(message="Job not found" if job_id else "No job has run yet")

    job_items = await job_repo.get_all_items(job.id)
    return JobStatusResponse(
        job={
            **job.model_dump(mode="json"),
            **await job_repo.pending_counts(job.id),
        },
        item_count=len(job_items),
        items=[item.model_dump(mode="json") for item in job_items] if items else None,
    )
