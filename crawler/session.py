"""Shared headless browser session and per-operation pages."""

import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Union

from crawl4ai import AsyncWebCrawler, BrowserConfig, CacheMode, CrawlerRunConfig

from crawler.errors import BrowserUnavailableError, PageLoadError
from models.constants import BROWSER_ARGS, USER_AGENT

logger = logging.getLogger(__name__)

# Error fragments Playwright raises once the browser process is gone
BROWSER_GONE_MARKERS = (
    "browser has been closed",
    "target closed",
    "target page, context or browser has been closed",
    "browser closed",
    "connection closed",
)


def default_crawler_factory(config: Dict[str, Any]) -> AsyncWebCrawler:
    """Build a headless crawl4ai crawler from the browser config section."""
    browser_config = BrowserConfig(
        headless=config.get("headless", True),
        user_agent=config.get("user_agent", USER_AGENT),
        extra_args=list(BROWSER_ARGS),
        verbose=False,
    )
    return AsyncWebCrawler(config=browser_config)


class BrowserPage:
    """
    One crawl4ai page session, used exclusively by a single scrape operation.

    Created and closed by BrowserSession.page(); never construct directly.
    """

    def __init__(self, browser_session: "BrowserSession", crawler: Any, navigation_timeout: float):
        self._browser_session = browser_session
        self._crawler = crawler
        self.session_id = f"page-{uuid.uuid4().hex[:12]}"
        self.navigation_timeout = navigation_timeout
        self.current_url: Optional[str] = None
        self.closed = False

    def _run_config(self, **options: Any) -> CrawlerRunConfig:
        options.setdefault("page_timeout", int(self.navigation_timeout * 1000))
        return CrawlerRunConfig(
            session_id=self.session_id,
            cache_mode=CacheMode.BYPASS,
            override_navigator=True,
            verbose=False,
            **options,
        )

    async def _arun(self, url: str, config: CrawlerRunConfig) -> str:
        try:
            result = await self._crawler.arun(url=url, config=config)
        except Exception as e:
            if self._browser_session.is_browser_gone(e):
                self._browser_session.mark_unhealthy()
                raise BrowserUnavailableError(f"Browser process unavailable: {e}") from e
            raise PageLoadError(url, str(e)) from e

        if not result.success:
            raise PageLoadError(url, result.error_message or "unknown error")

        self.current_url = getattr(result, "redirected_url", None) or url
        return result.html or ""

    async def goto(self, url: str, **options: Any) -> str:
        """
        Navigate to a URL and return the rendered HTML.

        Args:
            url: Page to load
            **options: crawl4ai run options (wait_until, js_code,
                delay_before_return_html, page_timeout, ...)

        Raises:
            PageLoadError: Navigation failed or timed out
            BrowserUnavailableError: The browser process has died
        """
        logger.debug(f"[{self.session_id}] goto {url}")
        return await self._arun(url, self._run_config(**options))

    async def run_js(self, js_code: Union[str, List[str]], **options: Any) -> str:
        """
        Execute script against the already loaded page and return fresh HTML.

        Raises:
            PageLoadError: Nothing is loaded yet, or the script run failed
        """
        if not self.current_url:
            raise PageLoadError("about:blank", "no page loaded")
        config = self._run_config(js_code=js_code, js_only=True, **options)
        return await self._arun(self.current_url, config)

    async def close(self) -> None:
        """Release the page; safe to call more than once."""
        if self.closed:
            return
        self.closed = True
        try:
            await self._crawler.crawler_strategy.kill_session(self.session_id)
        except Exception as e:
            logger.debug(f"Failed to close page {self.session_id}: {e}")


class BrowserSession:
    """
    Owner of the single long-lived headless browser.

    The browser is launched lazily on first use and reused thereafter. If it
    crashes or disconnects, the next get_session() relaunches it. Each scrape
    operation borrows a short-lived page via ``async with session.page()``.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        crawler_factory: Optional[Callable[[Dict[str, Any]], Any]] = None,
    ):
        """
        Initialize the session holder (no browser is started yet).

        Args:
            config: Browser section of config.json
            crawler_factory: Builds an unstarted crawler from the config
        """
        self.config = config or {}
        self.navigation_timeout = float(self.config.get("navigation_timeout", 60))
        self._crawler_factory = crawler_factory or default_crawler_factory
        self._crawler: Optional[Any] = None
        self._unhealthy = False
        self.launch_count = 0

    @property
    def is_open(self) -> bool:
        return self._crawler is not None

    def mark_unhealthy(self) -> None:
        """Force a relaunch on the next get_session()."""
        if not self._unhealthy:
            logger.warning("Browser marked unhealthy; it will be relaunched on next use")
        self._unhealthy = True

    def is_browser_gone(self, error: BaseException) -> bool:
        """Whether an exception means the browser process itself is gone."""
        message = str(error).lower()
        if any(marker in message for marker in BROWSER_GONE_MARKERS):
            return True
        return self._crawler is not None and not self._is_alive(self._crawler)

    def _is_alive(self, crawler: Any) -> bool:
        if self._unhealthy:
            return False
        strategy = getattr(crawler, "crawler_strategy", None)
        manager = getattr(strategy, "browser_manager", None)
        browser = getattr(manager, "browser", None)
        if browser is not None and hasattr(browser, "is_connected"):
            return bool(browser.is_connected())
        return True

    async def get_session(self) -> Any:
        """
        Return the shared crawler, launching or relaunching it as needed.

        Raises:
            BrowserUnavailableError: The browser could not be started
        """
        if self._crawler is not None and not self._is_alive(self._crawler):
            logger.warning("Browser is no longer reachable, relaunching")
            await self.close_session()

        if self._crawler is None:
            crawler = self._crawler_factory(self.config)
            try:
                await crawler.start()
            except Exception as e:
                raise BrowserUnavailableError(f"Failed to launch browser: {e}") from e
            self._crawler = crawler
            self._unhealthy = False
            self.launch_count += 1
            logger.info(f"✅ Headless browser launched (launch #{self.launch_count})")

        return self._crawler

    async def close_session(self) -> None:
        """Tear down the browser; the next get_session() starts a new one."""
        crawler, self._crawler = self._crawler, None
        self._unhealthy = False
        if crawler is None:
            return
        try:
            await crawler.close()
            logger.info("Headless browser closed")
        except Exception as e:
            logger.warning(f"Error while closing browser: {e}")

    @asynccontextmanager
    async def page(self) -> AsyncIterator[BrowserPage]:
        """Borrow a page for one operation; it is always closed afterwards."""
        crawler = await self.get_session()
        browser_page = BrowserPage(self, crawler, self.navigation_timeout)
        try:
            yield browser_page
        finally:
            await browser_page.close()

    async def __aenter__(self) -> "BrowserSession":
        await self.get_session()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close_session()
