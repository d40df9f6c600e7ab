from datetime import date, timedelta
from typing import Iterable

from pagewatch.jobs.job import parse_published_date
from pagewatch.scraper.parse_html import DiscoveredItem


def recency_cutoff(today: date, max_age_days: int) -> date:
    return today - timedelta(days=max_age_days)


def filter_recent(items: Iterable[DiscoveredItem], cutoff: date) -> list[DiscoveredItem]:
    """Keep items published on or after ``cutoff``. Undated items are dropped."""
    recent = []
    for item in items:
        published = parse_published_date(item.date)
        if published is not None and published >= cutoff:
            recent.append(item)
    return recent
