from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest
from arq import Retry

from pagewatch.main.config import set_settings
from pagewatch.worker.worker import deliver_continuation, retry_delay
from tests.fixtures import CRON_SECRET

URL = "https://tracker.example.com/api/job/fetch"
PAYLOAD = {"jobId": "job-1", "batchIndex": 1}


@pytest.fixture(autouse=True)
def settings(test_settings):
    set_settings(test_settings)
    return test_settings


def make_ctx(status=None, error=None, job_try=1):
    response = MagicMock()
    response.status = status

    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=response)
    context.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.post = MagicMock(return_value=context, side_effect=error)
    return {"session": session, "job_try": job_try, "job_id": "arq-1"}


@pytest.mark.asyncio
async def test_delivers_with_shared_secret():
    ctx = make_ctx(status=200)

    assert await deliver_continuation(ctx, URL, PAYLOAD, 3) == 200

    url, = ctx["session"].post.call_args.args
    kwargs = ctx["session"].post.call_args.kwargs
    assert url == URL
    assert kwargs["json"] == PAYLOAD
    assert kwargs["headers"] == {"Authorization": f"Bearer {CRON_SECRET}"}


@pytest.mark.asyncio
async def test_client_error_is_final():
    assert await deliver_continuation(make_ctx(status=401), URL, PAYLOAD, 3) == 401


@pytest.mark.asyncio
async def test_server_error_is_retried_with_backoff():
    with pytest.raises(Retry) as exc_info:
        await deliver_continuation(make_ctx(status=502, job_try=2), URL, PAYLOAD, 3)

    assert exc_info.value.defer_score == retry_delay(2) * 1000


@pytest.mark.asyncio
async def test_transport_error_is_retried():
    ctx = make_ctx(error=aiohttp.ClientConnectionError("refused"))

    with pytest.raises(Retry):
        await deliver_continuation(ctx, URL, PAYLOAD, 3)


@pytest.mark.asyncio
async def test_gives_up_after_configured_retries():
    assert await deliver_continuation(make_ctx(status=503, job_try=4), URL, PAYLOAD, 3) == 503
    assert await deliver_continuation(make_ctx(error=aiohttp.ClientConnectionError(), job_try=1), URL, PAYLOAD, 0) == 0


def test_retry_delay_doubles():
    assert [retry_delay(n) for n in (1, 2, 3, 4)] == [5, 10, 20, 40]
