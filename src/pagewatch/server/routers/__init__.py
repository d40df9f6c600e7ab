from fastapi import APIRouter

from pagewatch.server.routers import cron_router, inspect_router, job_router

router = APIRouter()

router.include_router(job_router.router, prefix="/job", tags=["job"])
router.include_router(cron_router.router, tags=["cron"])
router.include_router(inspect_router.router, tags=["inspect"])
