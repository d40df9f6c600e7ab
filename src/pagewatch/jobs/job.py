import secrets
import time
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel

SCHEMA_VERSION = 1


class JobStatus(str, Enum):
    DISCOVERING = "discovering"
    FETCHING = "fetching"
    FINALIZING = "finalizing"
    COMPLETE = "complete"
    FAILED = "failed"


class ItemStatus(str, Enum):
    PENDING = "pending"
    FETCHED = "fetched"
    SKIPPED = "skipped"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_published_date(value: str) -> date | None:
    """Calendar date of a source date string, which may carry a time part."""
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def generate_job_id() -> str:
    """Time-prefixed id; lexicographic order follows creation order."""
    return f"{int(time.time() * 1000):016d}-{secrets.token_hex(3)}"


class Job(BaseModel):
    schema_version: int = SCHEMA_VERSION

    id: str
    status: JobStatus
    started_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None
    error: Optional[str] = None

    # Progress
    discovery_targets_total: int = 0
    discovery_targets_complete: int = 0
    fetch_targets_total: int = 0
    fetch_targets_complete: int = 0

    # Results
    total_new_items: int = 0
    notification_sent: bool = False
    notification_error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobStatus.COMPLETE, JobStatus.FAILED)

    def idle_seconds(self, now: datetime | None = None) -> float:
        return ((now or utcnow()) - self.updated_at).total_seconds()


class Item(BaseModel):
    schema_version: int = SCHEMA_VERSION

    id: str
    title: str
    source_url: str
    author: str = ""
    published_date: str = ""
    size_hint: int = 0
    group_key: str
    forum: str = ""
    scrape_order: int = 0

    status: ItemStatus = ItemStatus.PENDING
    content: Optional[str] = None
    fetch_error: Optional[str] = None

    @property
    def published_on(self) -> date | None:
        return parse_published_date(self.published_date)
