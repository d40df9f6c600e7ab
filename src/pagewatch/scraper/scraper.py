from __future__ import annotations

import asyncio
from typing import Callable

import aiohttp

from pagewatch.main.aiohttp_client import aiohttp_client
from pagewatch.main.exceptions import ScraperException
from pagewatch.main.logging import get_logger
from pagewatch.scraper.parse_html import (
    DiscoveredItem,
    is_blog_url,
    parse_archive_page,
    parse_blog_page,
    parse_content,
)

logger = get_logger(__name__)


class ForumScraper:
    """Fetches listing and post pages over the shared aiohttp session."""

    def __init__(
        self,
        session_provider: Callable[[], aiohttp.ClientSession] = aiohttp_client,
    ) -> None:
        self._session_provider = session_provider

    async def _get(self, url: str) -> bytes:
        session = self._session_provider()
        try:
            async with session.get(url) as response:
                if response.status >= 400:
                    raise ScraperException(f"Failed to fetch {url}: {response.status}")
                # Pages declare their own charset; let the parser detect it
                return await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ScraperException(f"Failed to fetch {url}: {type(e).__name__}") from e

    async def fetch_listing(self, url: str) -> list[DiscoveredItem]:
        body = await self._get(url)
        items = parse_blog_page(body) if is_blog_url(url) else parse_archive_page(body)

        logger.debug("Parsed listing", extra={"url": url, "item_count": len(items)})
        return items

    async def fetch_content(self, url: str) -> str:
        return parse_content(await self._get(url))
