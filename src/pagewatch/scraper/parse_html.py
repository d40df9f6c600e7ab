"""Parsers for forum archive listings, blog listings and post pages.

All functions are pure: they take HTML and return data, so they can be
tested against fixtures without network access.
"""

import re
from dataclasses import dataclass
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from pagewatch.main.logging import get_logger

logger = get_logger(__name__)

FORUM_ORIGIN = "https://bbs.wenxuecity.com"
BLOG_ORIGIN = "https://blog.wenxuecity.com"

FOLLOW_UP_MARKER = "#跟帖#"
BLOG_FORUM_LABEL = "博客"
# Blog listings show no size; assume there is content to fetch
BLOG_SIZE_HINT = 1000

CONTENT_SELECTORS = ("#msgbodyContent", ".articalContent", "#articleBody", "#postbody", ".post-content")

_POST_ID_RE = re.compile(r"/(\d+)\.html")
_BLOG_POST_RE = re.compile(r"/myblog/(\d+)/(\d+)/(\d+)\.html")
_FORUM_RE = re.compile(r"\[([^\]]+)\]")
_SIZE_RE = re.compile(r"\((\d+)\s*bytes?\s*\)", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass
class DiscoveredItem:
    id: str
    title: str
    url: str
    author: str
    date: str
    size_hint: int
    forum: str


def is_blog_url(url: str) -> bool:
    return "blog.wenxuecity.com/myblog/" in url


def _collapse_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text.strip())


def parse_archive_page(html: str | bytes) -> list[DiscoveredItem]:
    """Parse a forum archive search result.

    Each post is a table row whose ``td.cnLarge`` cell reads roughly:
    ``• #跟帖# <a>title</a> [forum] - <strong><em>author</em></strong>(123 bytes) <i>date</i>``
    """
    soup = BeautifulSoup(html, "lxml")
    items = []

    for row in soup.find_all("tr"):
        cell = row.select_one("td.cnLarge")
        if cell is None:
            continue

        link = next(
            (a for a in cell.find_all("a") if "linkdot" not in (a.get("class") or [])),
            None,
        )
        href = link.get("href", "") if link is not None else ""
        if not href:
            continue

        id_match = _POST_ID_RE.search(href)
        if id_match is None:
            continue

        cell_text = cell.get_text()
        title = link.get_text().strip()
        if FOLLOW_UP_MARKER in cell_text:
            title = f"{FOLLOW_UP_MARKER} {title}"

        forum_match = _FORUM_RE.search(cell_text)
        size_match = _SIZE_RE.search(cell_text)
        author = cell.select_one("strong em")
        date = cell.find("i")

        items.append(
            DiscoveredItem(
                id=id_match.group(1),
                title=title,
                url=urljoin(FORUM_ORIGIN + "/", href),
                author=author.get_text().strip() if author else "",
                date=date.get_text().strip() if date else "",
                size_hint=int(size_match.group(1)) if size_match else 0,
                forum=forum_match.group(1) if forum_match else "",
            )
        )

    return items


def parse_blog_page(html: str | bytes) -> list[DiscoveredItem]:
    """Parse a blog month listing (``/myblog/<blog>/<yyyymm>/``)."""
    soup = BeautifulSoup(html, "lxml")
    items = []

    for cell in soup.select(".articleCell"):
        link = cell.select_one(".atc_title a")
        if link is None:
            continue

        href = link.get("href", "")
        title = link.get_text().strip()
        if not href or not title:
            continue

        post_match = _BLOG_POST_RE.search(href)
        if post_match is None:
            continue

        posted_at = cell.select_one(".atc_tm")
        items.append(
            DiscoveredItem(
                id=f"blog_{post_match.group(1)}_{post_match.group(3)}",
                title=title,
                url=urljoin(BLOG_ORIGIN + "/", href),
                author="",
                date=posted_at.get_text().strip() if posted_at else "",
                size_hint=BLOG_SIZE_HINT,
                forum=BLOG_FORUM_LABEL,
            )
        )

    return items


def parse_content(html: str | bytes) -> str:
    """Extract the body text of a post, whitespace collapsed. Empty if not found."""
    soup = BeautifulSoup(html, "lxml")

    for selector in CONTENT_SELECTORS:
        element = soup.select_one(selector)
        if element is None:
            continue
        text = _collapse_whitespace(element.get_text())
        if text:
            return text

    logger.debug("No content element found in page")
    return ""


def deduplicate_items(items: list[DiscoveredItem]) -> list[DiscoveredItem]:
    """Drop repeated ids, keeping the first occurrence."""
    seen = set()
    unique = []
    for item in items:
        if item.id in seen:
            continue
        seen.add(item.id)
        unique.append(item)
    return unique
