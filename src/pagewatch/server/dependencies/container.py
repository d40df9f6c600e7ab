from __future__ import annotations

from dataclasses import dataclass, field

from fastapi import Request

from pagewatch.dispatch.dispatcher import Dispatcher
from pagewatch.dispatch.verification import RequestVerifier
from pagewatch.jobs.job_repo import JobRepository
from pagewatch.jobs.ledger import DedupLedger
from pagewatch.jobs.reaper import StuckJobReaper
from pagewatch.kv.store import KeyValueStore
from pagewatch.main.config import Settings
from pagewatch.main.exceptions import NotReadyException
from pagewatch.notifications.email_sender import Notifier, ResendEmailNotifier
from pagewatch.phases.discover import DiscoverHandler
from pagewatch.phases.fetch import FetchHandler
from pagewatch.phases.finalize import FinalizeHandler
from pagewatch.phases.trigger import TriggerService
from pagewatch.scraper.scraper import ForumScraper


@dataclass
class Container:
    """Wires the long-lived collaborators of one application instance."""

    settings: Settings
    kv: KeyValueStore
    dispatcher: Dispatcher
    scraper: ForumScraper = field(default_factory=ForumScraper)
    notifier: Notifier | None = None

    def __post_init__(self):
        if self.notifier is None:
            self.notifier = ResendEmailNotifier(self.settings)

    def job_repo(self) -> JobRepository:
        return JobRepository(self.kv, self.settings.job_ttl_seconds)

    def ledger(self) -> DedupLedger:
        return DedupLedger(self.kv)

    def reaper(self) -> StuckJobReaper:
        return StuckJobReaper(self.job_repo(), self.settings.job_timeout_seconds)

    def verifier(self) -> RequestVerifier:
        return RequestVerifier(self.settings)

    def trigger_service(self) -> TriggerService:
        return TriggerService(self.job_repo(), self.dispatcher, self.reaper(), self.settings)

    def discover_handler(self) -> DiscoverHandler:
        return DiscoverHandler(
            self.job_repo(), self.dispatcher, self.settings, self.ledger(), self.scraper
        )

    def fetch_handler(self) -> FetchHandler:
        return FetchHandler(self.job_repo(), self.dispatcher, self.settings, self.scraper)

    def finalize_handler(self) -> FinalizeHandler:
        return FinalizeHandler(
            self.job_repo(), self.dispatcher, self.settings, self.ledger(), self.notifier
        )


def get_container(request: Request) -> Container:
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise NotReadyException("Application container is not initialized!")
    return container
