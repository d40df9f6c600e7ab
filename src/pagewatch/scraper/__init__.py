from pagewatch.scraper.parse_html import DiscoveredItem
from pagewatch.scraper.scraper import ForumScraper

__all__ = ["DiscoveredItem", "ForumScraper"]
