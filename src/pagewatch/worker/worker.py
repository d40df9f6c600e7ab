"""arq functions that deliver continuations for the self-hosted dispatcher.

The worker POSTs each continuation to its phase endpoint with the shared
secret and defers a retry on transport errors and 5xx responses. 4xx
responses are final: the endpoint has rejected the message.
"""

from __future__ import annotations

import asyncio
from typing import Any

import aiohttp
from arq import Retry

from pagewatch.main.aiohttp_client import aiohttp_client
from pagewatch.main.config import get_settings
from pagewatch.main.logging import get_logger

logger = get_logger(__name__)

RETRY_BASE_DELAY_SECONDS = 5


def retry_delay(job_try: int) -> int:
    return RETRY_BASE_DELAY_SECONDS * 2 ** (job_try - 1)


async def startup(ctx: dict) -> None:
    aiohttp_client.start()
    ctx["session"] = aiohttp_client()


async def shutdown(ctx: dict) -> None:
    await aiohttp_client.stop()


async def deliver_continuation(ctx: dict, url: str, payload: dict[str, Any], retries: int) -> int:
    """POST ``payload`` to ``url``. Returns the response status."""
    settings = get_settings()
    job_try = ctx.get("job_try", 1)

    headers = {}
    if settings.cron_secret:
        headers["Authorization"] = f"Bearer {settings.cron_secret}"

    log_extra = {"url": url, "job_try": job_try, "message_id": ctx.get("job_id")}

    try:
        async with ctx["session"].post(
            url,
            json=payload,
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=settings.job_timeout_seconds),
        ) as response:
            status = response.status
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        status = None
        log_extra["error"] = f"{type(e).__name__}: {e}"

    if status is not None and status < 500:
        if status >= 400:
            logger.error("Continuation rejected", extra={**log_extra, "status_code": status})
        else:
            logger.debug("Continuation delivered", extra={**log_extra, "status_code": status})
        return status

    if job_try > retries:
        logger.error(
            "Giving up on continuation",
            extra={**log_extra, "status_code": status, "retries": retries},
        )
        return status or 0

    delay = retry_delay(job_try)
    logger.warning(
        "Continuation delivery failed, retrying",
        extra={**log_extra, "status_code": status, "retry_delay_seconds": delay},
    )
    raise Retry(defer=delay)
