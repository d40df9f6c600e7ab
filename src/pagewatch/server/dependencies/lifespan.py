from contextlib import asynccontextmanager

from fastapi import FastAPI

from pagewatch.dispatch import ArqDispatcher, create_dispatcher
from pagewatch.kv import create_kv_store
from pagewatch.main.aiohttp_client import aiohttp_client
from pagewatch.main.config import get_settings
from pagewatch.main.logging import get_logger
from pagewatch.server.dependencies.container import Container

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await startup(app)
    yield
    await shutdown(app)


async def startup(app: FastAPI):
    settings = get_settings()

    aiohttp_client.start()

    kv = create_kv_store(settings)
    dispatcher = create_dispatcher(settings)
    if isinstance(dispatcher, ArqDispatcher):
        await dispatcher.init()

    app.state.container = Container(settings=settings, kv=kv, dispatcher=dispatcher)

    logger.info(
        "Started",
        extra={
            "kv_backend": settings.kv_backend,
            "dispatcher_backend": settings.dispatcher_backend,
            "base_url": settings.resolved_base_url,
        },
    )


async def shutdown(app: FastAPI):
    container = getattr(app.state, "container", None)
    if container is not None:
        await container.dispatcher.close()
        await container.kv.close()
        app.state.container = None

    await aiohttp_client.stop()
