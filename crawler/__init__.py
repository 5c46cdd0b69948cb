"""Browser session, rate limiting, caching and scrape orchestration."""

from .cache import TTLCache
from .errors import BrowserUnavailableError, PageLoadError, ScraperError
from .rate_limiter import RateLimiter
from .scraper import PropertyScraper, aggregate_pages, deduplicate_by_address
from .session import BrowserPage, BrowserSession

__all__ = [
    "TTLCache",
    "RateLimiter",
    "BrowserSession",
    "BrowserPage",
    "PropertyScraper",
    "aggregate_pages",
    "deduplicate_by_address",
    "ScraperError",
    "PageLoadError",
    "BrowserUnavailableError",
]
