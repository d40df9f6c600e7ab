from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from pagewatch.jobs.job import Item
from pagewatch.notifications import ResendEmailNotifier


def make_session(status=200, json_data=None, error=None):
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=json_data)

    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=response)
    context.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.post = MagicMock(return_value=context, side_effect=error)
    return session


@pytest.fixture
def groups():
    return {
        "alpha": [
            Item(id="1", title="One", source_url="https://bbs.example.com/1.html", group_key="alpha"),
            Item(id="2", title="Two", source_url="https://bbs.example.com/2.html", group_key="alpha"),
        ]
    }


@pytest.mark.asyncio
async def test_sends_digest_to_all_recipients(test_settings, groups):
    session = make_session(json_data={"id": "email_1"})
    notifier = ResendEmailNotifier(test_settings, session_provider=lambda: session)

    result = await notifier.send_digest(groups)

    assert result.success is True
    assert result.error is None
    url, = session.post.call_args.args
    kwargs = session.post.call_args.kwargs
    assert url == "https://api.resend.com/emails"
    assert kwargs["headers"] == {"Authorization": "Bearer re_unit_test"}
    assert kwargs["json"]["to"] == ["reader@example.com", "second@example.com"]
    assert kwargs["json"]["subject"] == "文学城论坛更新 - 2 new"
    assert "Daily Digest: 2 New Posts Found" in kwargs["json"]["html"]


@pytest.mark.asyncio
async def test_not_configured(test_settings, groups):
    settings = test_settings.model_copy(update={"resend_api_key": None})
    session = make_session()
    notifier = ResendEmailNotifier(settings, session_provider=lambda: session)

    result = await notifier.send_digest(groups)

    assert result.success is False
    assert result.error == "Email not configured"
    session.post.assert_not_called()


@pytest.mark.asyncio
async def test_empty_digest_is_not_sent(test_settings):
    session = make_session()
    notifier = ResendEmailNotifier(test_settings, session_provider=lambda: session)

    assert (await notifier.send_digest({})).success is True
    session.post.assert_not_called()


@pytest.mark.asyncio
async def test_api_rejection_is_reported(test_settings, groups):
    session = make_session(status=422, json_data={"message": "Invalid `to` field"})
    notifier = ResendEmailNotifier(test_settings, session_provider=lambda: session)

    result = await notifier.send_digest(groups)

    assert result.success is False
    assert result.error == "Invalid `to` field"


@pytest.mark.asyncio
async def test_api_rejection_without_body(test_settings, groups):
    session = make_session(status=500, json_data=None)
    notifier = ResendEmailNotifier(test_settings, session_provider=lambda: session)

    result = await notifier.send_digest(groups)

    assert result.error == "Email API returned 500"


@pytest.mark.asyncio
async def test_transport_error_is_reported(test_settings, groups):
    session = make_session(error=aiohttp.ClientConnectionError("refused"))
    notifier = ResendEmailNotifier(test_settings, session_provider=lambda: session)

    result = await notifier.send_digest(groups)

    assert result.success is False
    assert result.error.startswith("ClientConnectionError")
