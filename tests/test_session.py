"""Test the shared browser session with an in-memory crawler."""

import asyncio
import sys
from pathlib import Path
from types import SimpleNamespace

# Add parent directory to path to import project modules
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest
from crawler.errors import BrowserUnavailableError, PageLoadError
from crawler.session import BrowserSession


class FakeBrowser:
    def __init__(self):
        self.connected = True

    def is_connected(self) -> bool:
        return self.connected


class FakeStrategy:
    def __init__(self):
        self.browser_manager = SimpleNamespace(browser=FakeBrowser())
        self.killed = []

    async def kill_session(self, session_id: str) -> None:
        self.killed.append(session_id)


class FakeCrawler:
    """Stands in for AsyncWebCrawler; results are looked up by URL."""

    def __init__(self, pages=None):
        self.pages = pages or {}
        self.crawler_strategy = FakeStrategy()
        self.started = False
        self.closed = False
        self.calls = []

    async def start(self):
        self.started = True

    async def close(self):
        self.closed = True

    async def arun(self, url, config=None):
        self.calls.append((url, config))
        outcome = self.pages.get(url)
        if isinstance(outcome, Exception):
            raise outcome
        if outcome is None:
            return SimpleNamespace(success=False, html="", error_message="net::ERR_NAME_NOT_RESOLVED")
        return SimpleNamespace(success=True, html=outcome, error_message=None, redirected_url=url + "#r")

    @property
    def browser(self) -> FakeBrowser:
        return self.crawler_strategy.browser_manager.browser


class Factory:
    def __init__(self, pages=None):
        self.pages = pages
        self.created = []

    def __call__(self, config):
        crawler = FakeCrawler(self.pages)
        self.created.append(crawler)
        return crawler


class TestBrowserSession:
    """Test launch, reuse, relaunch and close."""

    def test_lazy_launch_and_reuse(self):
        factory = Factory()
        session = BrowserSession({}, crawler_factory=factory)
        assert factory.created == []

        async def run():
            first = await session.get_session()
            second = await session.get_session()
            return first, second

        first, second = asyncio.run(run())

        assert first is second
        assert len(factory.created) == 1
        assert first.started
        assert session.launch_count == 1

    def test_relaunch_after_disconnect(self):
        factory = Factory()
        session = BrowserSession({}, crawler_factory=factory)

        async def run():
            first = await session.get_session()
            first.browser.connected = False
            second = await session.get_session()
            return first, second

        first, second = asyncio.run(run())

        assert first is not second
        assert first.closed
        assert session.launch_count == 2

    def test_relaunch_after_marked_unhealthy(self):
        factory = Factory()
        session = BrowserSession({}, crawler_factory=factory)

        async def run():
            await session.get_session()
            session.mark_unhealthy()
            await session.get_session()

        asyncio.run(run())
        assert len(factory.created) == 2

    def test_close_then_relaunch(self):
        factory = Factory()
        session = BrowserSession({}, crawler_factory=factory)

        async def run():
            await session.get_session()
            await session.close_session()
            assert not session.is_open
            await session.get_session()

        asyncio.run(run())

        assert factory.created[0].closed
        assert len(factory.created) == 2

    def test_launch_failure(self):
        class BrokenCrawler(FakeCrawler):
            async def start(self):
                raise RuntimeError("Executable doesn't exist")

        session = BrowserSession({}, crawler_factory=lambda config: BrokenCrawler())

        with pytest.raises(BrowserUnavailableError):
            asyncio.run(session.get_session())
        assert not session.is_open

    def test_async_context_manager(self):
        factory = Factory()

        async def run():
            async with BrowserSession({}, crawler_factory=factory) as session:
                assert session.is_open

        asyncio.run(run())
        assert factory.created[0].closed


class TestBrowserPage:
    """Test page navigation and cleanup."""

    def test_goto_returns_html_and_tracks_url(self):
        factory = Factory({"https://www.rightmove.co.uk/a": "<html>ok</html>"})
        session = BrowserSession({"navigation_timeout": 30}, crawler_factory=factory)

        async def run():
            async with session.page() as page:
                html = await page.goto("https://www.rightmove.co.uk/a", wait_until="networkidle")
                return page, html

        page, html = asyncio.run(run())
        crawler = factory.created[0]
        _, config = crawler.calls[0]

        assert html == "<html>ok</html>"
        assert page.current_url == "https://www.rightmove.co.uk/a#r"
        assert config.session_id == page.session_id
        assert config.page_timeout == 30000
        assert crawler.crawler_strategy.killed == [page.session_id]

    def test_failed_navigation_raises_page_load_error_and_closes_page(self):
        factory = Factory({})
        session = BrowserSession({}, crawler_factory=factory)

        async def run():
            async with session.page() as page:
                await page.goto("https://www.rightmove.co.uk/missing")

        with pytest.raises(PageLoadError) as exc_info:
            asyncio.run(run())

        assert exc_info.value.url == "https://www.rightmove.co.uk/missing"
        assert "ERR_NAME_NOT_RESOLVED" in exc_info.value.reason
        assert len(factory.created[0].crawler_strategy.killed) == 1
        assert session.is_open

    def test_timeout_is_page_load_error(self):
        factory = Factory({"https://www.zoopla.co.uk/slow": TimeoutError("Timeout 60000ms exceeded")})
        session = BrowserSession({}, crawler_factory=factory)

        async def run():
            async with session.page() as page:
                await page.goto("https://www.zoopla.co.uk/slow")

        with pytest.raises(PageLoadError):
            asyncio.run(run())

    def test_browser_crash_marks_session_unhealthy(self):
        factory = Factory({"https://www.zoopla.co.uk/x": RuntimeError("Target page, context or browser has been closed")})
        session = BrowserSession({}, crawler_factory=factory)

        async def run():
            async with session.page() as page:
                await page.goto("https://www.zoopla.co.uk/x")

        with pytest.raises(BrowserUnavailableError):
            asyncio.run(run())

        asyncio.run(session.get_session())
        assert len(factory.created) == 2

    def test_run_js_requires_loaded_page(self):
        session = BrowserSession({}, crawler_factory=Factory())

        async def run():
            async with session.page() as page:
                await page.run_js("window.scrollTo(0, 0);")

        with pytest.raises(PageLoadError):
            asyncio.run(run())

    def test_run_js_uses_js_only(self):
        url = "https://www.zoopla.co.uk/for-sale/details/1/"
        factory = Factory({url: "<html>page</html>", url + "#r": "<html>gallery</html>"})
        session = BrowserSession({}, crawler_factory=factory)

        async def run():
            async with session.page() as page:
                await page.goto(url)
                return await page.run_js(["window.scrollTo(0, 0);"])

        html = asyncio.run(run())
        _, config = factory.created[0].calls[1]

        assert html == "<html>gallery</html>"
        assert config.js_only is True
