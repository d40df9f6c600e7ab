import uvicorn
from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse

from pagewatch.main.config import get_settings
from pagewatch.main.logging import get_logger
from pagewatch.main.models import VersionResponse
from pagewatch.server.dependencies.container import Container, get_container
from pagewatch.server.dependencies.lifespan import lifespan
from pagewatch.server.exception_handlers import add_exception_handlers
from pagewatch.server.middleware.request_context import RequestContextMiddleware
from pagewatch.server.routers import router as api_router

logger = get_logger(__name__)

API_PREFIX = "/api"


def get_application():
    app = FastAPI(title="pagewatch", lifespan=lifespan)

    app.add_middleware(RequestContextMiddleware)

    app.include_router(api_router, prefix=API_PREFIX)

    # Mapped domain errors; anything else falls through to the 500 handler
    add_exception_handlers(app)

    @app.exception_handler(500)
    async def custom_http_500_exception_handler(request, exc):
        logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
        return JSONResponse(status_code=500, content={"error": "Something went wrong"})

    @app.get(f"{API_PREFIX}/healthz")
    async def get_healthz(container: Container = Depends(get_container)):
        store_ok = await container.kv.ping()
        content = {
            "status": "HEALTHY" if store_ok else "UNHEALTHY",
            "store": container.settings.kv_backend,
            "dispatcher": container.settings.dispatcher_backend,
        }
        return JSONResponse(status_code=200 if store_ok else 503, content=content)

    @app.get(f"{API_PREFIX}/version", response_model=VersionResponse)
    async def get_version(container: Container = Depends(get_container)):
        return VersionResponse(version=container.settings.app_version)

    return app


app = get_application()


def start():
    uvicorn.run(
        "pagewatch.server.main:app",
        host="0.0.0.0",
        port=8123,
        reload=get_settings().dev,
        reload_dirs=["./src/"] if get_settings().dev else None,
    )
