"""Search and listing scrape orchestration."""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from analysis.analyzer import InvestmentAnalyzer
from crawler.errors import BrowserUnavailableError, PageLoadError
from crawler.rate_limiter import RateLimiter
from crawler.session import BrowserPage, BrowserSession
from models.constants import MAX_IMAGES, SCROLL_JS, USER_AGENT
from models.property import PropertyRecord, SearchParams
from portals import get_adapter, get_adapter_for_url
from portals.base import PortalAdapter
from utils.extractors import filter_image_urls

logger = logging.getLogger(__name__)


def deduplicate_by_address(records: List[PropertyRecord]) -> List[PropertyRecord]:
    """
    Collapse records sharing a normalized address, keeping the first seen.

    Later duplicates are dropped even if they carry more data.
    """
    seen = set()
    unique: List[PropertyRecord] = []
    for record in records:
        key = record.dedup_key
        if key in seen:
            logger.debug(f"Skipping duplicate property: {record.address}")
            continue
        seen.add(key)
        unique.append(record)
    return unique


def aggregate_pages(
    pages: List[List[PropertyRecord]], analyzer: Optional[InvestmentAnalyzer] = None
) -> List[PropertyRecord]:
    """
    Merge per-page results into the final list.

    Pages are concatenated in page order, de-duplicated by address and every
    surviving record gets its estimated yield.
    """
    analyzer = analyzer or InvestmentAnalyzer()
    combined = [record for page in pages for record in page]
    unique = deduplicate_by_address(combined)
    if len(unique) < len(combined):
        logger.info(f"Removed {len(combined) - len(unique)} duplicate properties")
    return [analyzer.analyze_property(record) for record in unique]


def _api_image_url(item: Any) -> Optional[str]:
    if isinstance(item, str):
        return item
    if isinstance(item, dict):
        return item.get("url") or item.get("src") or item.get("image_url")
    return None


class PropertyScraper:
    """Runs search and detail scrapes through the rate limiter and shared browser."""

    def __init__(
        self,
        session: BrowserSession,
        rate_limiter: RateLimiter,
        analyzer: Optional[InvestmentAnalyzer] = None,
        config: Optional[Dict[str, Any]] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize the scraper.

        Args:
            session: Shared browser session
            rate_limiter: Limiter every scrape operation is queued through
            analyzer: Yield calculator applied to search results
            config: Scraper section of config.json
            http_transport: httpx transport for the image API (tests)
            sleep: Async sleep used for the delay between result pages
        """
        self.session = session
        self.rate_limiter = rate_limiter
        self.analyzer = analyzer or InvestmentAnalyzer()
        self.config = config or {}
        self._http_transport = http_transport
        self._sleep = sleep

        self.default_source = self.config.get("default_source", "rightmove")
        self.default_max_pages = int(self.config.get("max_pages", 3))
        self.delay_page = float(self.config.get("delay_page", 0.0))
        self.api_timeout = float(self.config.get("api_timeout", 10.0))

    # ---------- Search ----------

    async def scrape_search_results(
        self,
        location: str,
        min_price: Optional[int] = None,
        max_price: Optional[int] = None,
        min_bedrooms: Optional[int] = None,
        max_bedrooms: Optional[int] = None,
        property_type: Optional[str] = None,
        radius: Optional[float] = None,
        max_pages: Optional[int] = None,
        source: Optional[str] = None,
    ) -> List[PropertyRecord]:
        """
        Scrape up to ``max_pages`` search result pages for a location.

        The whole multi-page scrape is a single rate-limited task on one page.
        Failed pages are skipped; the first page without results ends
        pagination.

        Returns:
            De-duplicated records with estimated yields, in page order

        Raises:
            ValueError: Unsupported source
            BrowserUnavailableError: The browser could not be used at all
        """
        params = SearchParams(
            location=location,
            min_price=min_price,
            max_price=max_price,
            min_bedrooms=min_bedrooms,
            max_bedrooms=max_bedrooms,
            property_type=property_type,
            radius=radius,
            max_pages=max_pages or self.default_max_pages,
            source=source or self.default_source,
        )
        adapter = get_adapter(params.source, self.config)
        logger.info(f"🔍 Searching {adapter.get_portal_name()} for {params.location}")

        records = await self.rate_limiter.execute(lambda: self._scrape_search(adapter, params))
        return self.filter_by_property_type(records, params.property_type)

    async def _scrape_search(self, adapter: PortalAdapter, params: SearchParams) -> List[PropertyRecord]:
        pages: List[List[PropertyRecord]] = []

        async with self.session.page() as page:
            for page_index in range(max(1, params.max_pages)):
                if page_index > 0 and self.delay_page:
                    await self._sleep(self.delay_page)

                url = adapter.build_search_url(params, page_index)
                logger.info(f"Scraping page {page_index + 1}: {url}")

                try:
                    html = await page.goto(url, **adapter.get_search_crawler_config())
                    records = adapter.extract_search_results(html, page_index)
                except BrowserUnavailableError:
                    raise
                except PageLoadError as e:
                    logger.warning(f"Failed to scrape page {page_index + 1}: {e.reason}")
                    continue
                except Exception as e:
                    logger.error(f"Error extracting page {page_index + 1}: {e}")
                    continue

                if not records:
                    logger.info(f"Page {page_index + 1}: no properties, stopping pagination")
                    break

                logger.info(f"Page {page_index + 1}: {len(records)} properties")
                pages.append(records)

        results = aggregate_pages(pages, self.analyzer)
        logger.info(f"✅ Found {len(results)} unique properties for {params.location}")
        return results

    @staticmethod
    def filter_by_property_type(
        records: List[PropertyRecord], property_type: Optional[str]
    ) -> List[PropertyRecord]:
        """Keep records whose type contains the requested type ("any" keeps all)."""
        wanted = (property_type or "").strip().lower()
        if not wanted or wanted == "any":
            return records
        return [r for r in records if wanted in r.property_type.lower()]

    # ---------- Listing details ----------

    async def scrape_listing_details(self, listing_url: str) -> Dict[str, Any]:
        """
        Scrape a single listing page into a partial record.

        Returns:
            Snake_case partial record with ``url`` set, or {} when the page
            could not be loaded

        Raises:
            ValueError: URL is not on a supported portal
            BrowserUnavailableError: The browser could not be used at all
        """
        adapter = get_adapter_for_url(listing_url, self.config)
        logger.info(f"🔍 Scraping detailed property info from: {listing_url}")
        return await self.rate_limiter.execute(lambda: self._scrape_details(adapter, listing_url))

    async def _scrape_details(self, adapter: PortalAdapter, listing_url: str) -> Dict[str, Any]:
        async with self.session.page() as page:
            try:
                html = await page.goto(listing_url, **adapter.get_crawler_config())
            except PageLoadError as e:
                logger.error(f"Failed to load listing {listing_url}: {e.reason}")
                return {}

            current_url = page.current_url or listing_url

            images: List[str] = []
            listing_id = adapter.extract_listing_id(current_url)
            if listing_id:
                images = await self.fetch_api_images(adapter, listing_id)
            if not images:
                images = adapter.extract_structured_images(html)
                if images:
                    logger.info(f"Found {len(images)} images in structured page data")
            if not images:
                logger.info("No structured images found, trying DOM approach...")
                html = await self._open_gallery(page, adapter, html, current_url)

            details = adapter.extract_details(html, current_url)

        if images:
            details["images"] = images[:MAX_IMAGES]
            details["image_url"] = images[0]
        details["url"] = listing_url
        logger.info(f"Extracted {len(details.get('images', []))} images for {listing_url}")
        return details

    async def fetch_api_images(self, adapter: PortalAdapter, listing_id: str) -> List[str]:
        """
        Query the portal's JSON image endpoints in order.

        The first response carrying a non-empty ``images`` or ``gallery`` list
        wins. Any HTTP or decoding failure just moves on to the next endpoint.
        """
        endpoints = adapter.image_api_endpoints(listing_id)
        if not endpoints:
            return []

        headers = {"Accept": "application/json", "User-Agent": USER_AGENT}
        async with httpx.AsyncClient(
            transport=self._http_transport,
            headers=headers,
            timeout=self.api_timeout,
            follow_redirects=True,
        ) as client:
            for endpoint in endpoints:
                try:
                    response = await client.get(endpoint)
                    response.raise_for_status()
                    data = response.json()
                except (httpx.HTTPError, ValueError) as e:
                    logger.debug(f"API endpoint {endpoint} failed: {e}")
                    continue

                if not isinstance(data, dict):
                    continue
                items = data.get("images") or data.get("gallery")
                if not isinstance(items, list):
                    continue

                images = filter_image_urls(
                    [_api_image_url(item) for item in items], adapter.BASE_URL, MAX_IMAGES
                )
                if images:
                    logger.info(f"Found {len(images)} images via API: {endpoint}")
                    return images
        return []

    async def _open_gallery(
        self, page: BrowserPage, adapter: PortalAdapter, html: str, current_url: str
    ) -> str:
        """Click the photos tab (or open the gallery URL) and scroll; return the new HTML."""
        selector = adapter.find_photos_tab(html)
        try:
            if selector:
                logger.info(f"Found photos tab with selector: {selector}")
                click = f"document.querySelector({json.dumps(selector)}).click();"
                return await page.run_js([click] + SCROLL_JS, delay_before_return_html=2.0)

            tab_url = adapter.images_tab_url(current_url)
            if tab_url:
                logger.info(f"Trying images tab URL: {tab_url}")
                return await page.goto(
                    tab_url,
                    wait_until="networkidle",
                    js_code=SCROLL_JS,
                    delay_before_return_html=2.0,
                    page_timeout=15000,
                )
        except PageLoadError as e:
            logger.info(f"Could not open photo gallery, continuing with current page state: {e.reason}")
        return html
