from datetime import timedelta

import pytest

from pagewatch.dispatch.dispatcher import Dispatcher
from pagewatch.dispatch.endpoints import DISCOVER_ENDPOINT, FETCH_ENDPOINT, FINALIZE_ENDPOINT
from pagewatch.jobs.job import utcnow
from pagewatch.jobs.job_repo import JobRepository
from pagewatch.jobs.ledger import DedupLedger
from pagewatch.jobs.reaper import StuckJobReaper
from pagewatch.jobs.task_models import DiscoverBatchRequest, FetchBatchRequest, FinalizeRequest
from pagewatch.kv.memory_store import InMemoryKeyValueStore
from pagewatch.main.config import Settings, TrackingSource, reset_settings
from pagewatch.main.exceptions import ScraperException
from pagewatch.notifications.email_sender import NotificationResult, Notifier
from pagewatch.phases.discover import DiscoverHandler
from pagewatch.phases.fetch import FetchHandler
from pagewatch.phases.finalize import FinalizeHandler
from pagewatch.phases.trigger import TriggerService
from pagewatch.scraper.parse_html import DiscoveredItem
from tests.fixtures import CRON_SECRET, CURRENT_SIGNING_KEY, NEXT_SIGNING_KEY


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Explicit settings that do not depend on .env or the environment."""
    return Settings(
        redis_host="localhost",
        redis_port=6379,
        kv_backend="memory",
        dispatcher_backend="local",
        base_url="https://tracker.example.com",
        qstash_token="unit-test-qstash-token",
        qstash_current_signing_key=CURRENT_SIGNING_KEY,
        qstash_next_signing_key=NEXT_SIGNING_KEY,
        cron_secret=CRON_SECRET,
        tracking_sources=[
            TrackingSource(name="alpha", url="https://bbs.example.com/archive?keyword=alpha"),
            TrackingSource(name="beta", url="https://bbs.example.com/archive?keyword=beta"),
            TrackingSource(name="gamma", url="https://bbs.example.com/archive?keyword=gamma"),
        ],
        discover_batch_size=2,
        fetch_batch_size=2,
        rate_limit_seconds=0,
        job_timeout_seconds=1800,
        job_ttl_seconds=86400,
        min_size_for_content=1,
        max_age_days=7,
        resend_api_key="re_unit_test",
        notification_email="reader@example.com, second@example.com",
        testing=True,
        dev=False,
    )


@pytest.fixture(autouse=True)
def reset_settings_after_test():
    """Reset settings after each test to prevent state leakage."""
    yield
    reset_settings()


class RecordingDispatcher(Dispatcher):
    """Dispatcher that keeps published continuations in memory."""

    def __init__(self, settings):
        super().__init__(settings)
        self.published = []

    async def publish(self, endpoint, payload, *, retries=None, delay=None):
        self.published.append((endpoint, payload))
        return f"msg-{len(self.published)}"

    def endpoints(self):
        return [endpoint for endpoint, _ in self.published]


class FakeScraper:
    def __init__(self):
        self.listings = {}
        self.contents = {}
        self.failing_urls = set()
        self.listing_calls = []
        self.content_calls = []

    async def fetch_listing(self, url):
        self.listing_calls.append(url)
        if url in self.failing_urls:
            raise ScraperException(f"Failed to fetch {url}: 503")
        return list(self.listings.get(url, []))

    async def fetch_content(self, url):
        self.content_calls.append(url)
        if url in self.failing_urls:
            raise ScraperException(f"Failed to fetch {url}: 404")
        return self.contents.get(url, f"content of {url}")


class FakeNotifier(Notifier):
    def __init__(self):
        self.calls = []
        self.result = NotificationResult(success=True)
        self.error = None

    async def send_digest(self, groups):
        self.calls.append(groups)
        if self.error is not None:
            raise self.error
        return self.result


class Pipeline:
    """Runs phase handlers the way the dispatcher would deliver them."""

    def __init__(self, settings, kv, dispatcher, scraper, notifier):
        self.settings = settings
        self.kv = kv
        self.dispatcher = dispatcher
        self.job_repo = JobRepository(kv, settings.job_ttl_seconds)
        self.ledger = DedupLedger(kv)
        self.reaper = StuckJobReaper(self.job_repo, settings.job_timeout_seconds)
        self.trigger = TriggerService(self.job_repo, dispatcher, self.reaper, settings)
        self.discover = DiscoverHandler(self.job_repo, dispatcher, settings, self.ledger, scraper)
        self.fetch = FetchHandler(self.job_repo, dispatcher, settings, scraper)
        self.finalize = FinalizeHandler(self.job_repo, dispatcher, settings, self.ledger, notifier)
        self.delivered = []

    async def deliver_next(self):
        endpoint, payload = self.dispatcher.published.pop(0)
        self.delivered.append(endpoint)

        if endpoint == DISCOVER_ENDPOINT:
            return await self.discover.handle(DiscoverBatchRequest.model_validate(payload))
        if endpoint == FETCH_ENDPOINT:
            return await self.fetch.handle(FetchBatchRequest.model_validate(payload))
        if endpoint == FINALIZE_ENDPOINT:
            return await self.finalize.handle(FinalizeRequest.model_validate(payload))
        raise AssertionError(f"Unexpected endpoint {endpoint}")

    async def drain(self, max_steps=50):
        results = []
        while self.dispatcher.published:
            assert len(results) < max_steps, "pipeline did not terminate"
            results.append(await self.deliver_next())
        return results


@pytest.fixture
def kv():
    return InMemoryKeyValueStore()


@pytest.fixture
def job_repo(kv, test_settings):
    return JobRepository(kv, test_settings.job_ttl_seconds)


@pytest.fixture
def ledger(kv):
    return DedupLedger(kv)


@pytest.fixture
def dispatcher(test_settings):
    return RecordingDispatcher(test_settings)


@pytest.fixture
def scraper():
    return FakeScraper()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def pipeline(test_settings, kv, dispatcher, scraper, notifier):
    return Pipeline(test_settings, kv, dispatcher, scraper, notifier)


@pytest.fixture
def make_discovered():
    """Factory for listing entries dated relative to today (UTC)."""

    def _make(item_id, days_ago=0, size_hint=100, title=None, date=None):
        if date is None:
            date = (utcnow().date() - timedelta(days=days_ago)).isoformat()
        return DiscoveredItem(
            id=item_id,
            title=title or f"Post {item_id}",
            url=f"https://bbs.example.com/forum/{item_id}.html",
            author="author",
            date=date,
            size_hint=size_hint,
            forum="finance",
        )

    return _make


@pytest.fixture
def make_pipeline(test_settings, kv, scraper, notifier):
    """Pipeline over the shared store with overridden settings."""

    def _make(**overrides):
        settings = test_settings.model_copy(update=overrides)
        return Pipeline(settings, kv, RecordingDispatcher(settings), scraper, notifier)

    return _make
