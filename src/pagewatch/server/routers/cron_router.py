from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from pagewatch.main.logging import get_logger
from pagewatch.phases.models import TriggerResult
from pagewatch.server.dependencies.container import Container, get_container
from pagewatch.server.protocol import responses

logger = get_logger(__name__)

router = APIRouter()


class ResetResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = True
    message: str
    deleted_job_keys: int
    ledger_cleared: bool


@router.get(
    "/cron",
    response_model=TriggerResult,
    responses=responses.get_responses([401, 502]),
)
async def trigger_run(
    request: Request,
    force: bool = False,
    container: Container = Depends(get_container),
):
    """Start a run unless one is already in progress. Called by the external timer."""
    container.verifier().verify_secret(request)

    result = await container.trigger_service().start_run(force=force)
    logger.info(
        result.message,
        extra={"job_id": result.job_id, "started": result.started, "force": force},
    )
    return result


@router.get(
    "/reset",
    response_model=ResetResponse,
    responses=responses.get_responses([401]),
)
async def reset_state(
    request: Request,
    full: bool = False,
    container: Container = Depends(get_container),
):
    """Delete all job state. With ``full`` the dedup ledger is cleared too."""
    container.verifier().verify_secret(request)

    deleted = await container.job_repo().delete_all_jobs()
    if full:
        await container.ledger().clear()

    logger.warning("State reset", extra={"deleted_job_keys": deleted, "full": full})
    return ResetResponse(
        message="Full reset complete (including seen items)" if full else "Job state cleared",
        deleted_job_keys=deleted,
        ledger_cleared=full,
    )
