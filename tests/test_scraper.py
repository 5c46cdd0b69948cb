"""Test search pagination, aggregation and the listing detail flow."""

import asyncio
import sys
from contextlib import asynccontextmanager
from pathlib import Path

# Add parent directory to path to import project modules
sys.path.insert(0, str(Path(__file__).parent.parent))

import httpx
import pytest
from crawler.cache import TTLCache, cache_search_results
from crawler.errors import BrowserUnavailableError, PageLoadError
from crawler.rate_limiter import RateLimiter
from crawler.scraper import PropertyScraper, aggregate_pages, deduplicate_by_address
from models.property import PropertyRecord


def card(address: str, price: str, listing_id: str, title: str = "3 bedroom semi-detached house for sale") -> str:
    return f"""
    <div class="propertyCard">
      <a href="/properties/{listing_id}">
        <img src="https://media.rightmove.co.uk/dir/{listing_id}/IMG_00_0000.jpeg">
      </a>
      <address class="propertyCard-address">{address}</address>
      <div class="propertyCard-priceValue">{price}</div>
      <h2 class="propertyCard-title">{title}</h2>
    </div>
    """


def results_page(*cards: str) -> str:
    return "<html><body>" + "".join(cards) + "</body></html>"


EMPTY_PAGE = "<html><body><p>We couldn't find any properties</p></body></html>"


class FakePage:
    """Browser page double; responses are consumed in order or looked up by URL."""

    def __init__(self, responses=None, js_response=""):
        self.responses = responses if responses is not None else []
        self.js_response = js_response
        self.visited = []
        self.options = []
        self.scripts = []
        self.current_url = None
        self.closed = False

    async def goto(self, url, **options):
        self.visited.append(url)
        self.options.append(options)
        if isinstance(self.responses, dict):
            outcome = self.responses.get(url, PageLoadError(url, "net::ERR_ABORTED"))
        else:
            outcome = self.responses.pop(0) if self.responses else EMPTY_PAGE
        if isinstance(outcome, Exception):
            raise outcome
        self.current_url = url
        return outcome

    async def run_js(self, js_code, **options):
        self.scripts.append(js_code)
        return self.js_response


class FakeSession:
    def __init__(self, page: FakePage):
        self.fake_page = page
        self.pages_opened = 0

    @asynccontextmanager
    async def page(self):
        self.pages_opened += 1
        try:
            yield self.fake_page
        finally:
            self.fake_page.closed = True


class RecordingSleep:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


def make_scraper(page: FakePage, config=None, transport=None, sleep=None) -> PropertyScraper:
    limiter = RateLimiter(sleep=RecordingSleep())
    return PropertyScraper(
        FakeSession(page),
        limiter,
        config=config,
        http_transport=transport,
        sleep=sleep or RecordingSleep(),
    )


class TestAggregation:
    """Test de-duplication and aggregation."""

    def setup_method(self):
        self.page_one = [
            PropertyRecord(id="1", address="Oxford Road, Manchester", price=250000, bedrooms=3),
            PropertyRecord(id="2", address="Deansgate, Manchester", price=185000, bedrooms=2),
        ]
        self.page_two = [
            PropertyRecord(id="3", address=" oxford road, MANCHESTER ", price=260000, bedrooms=3),
            PropertyRecord(id="4", address="Hyde Road, Manchester", price=120000, bedrooms=1),
        ]

    def test_first_occurrence_wins(self):
        unique = deduplicate_by_address(self.page_one + self.page_two)
        assert [r.id for r in unique] == ["1", "2", "4"]

    def test_aggregation_is_idempotent(self):
        first = aggregate_pages([self.page_one, self.page_two])
        second = aggregate_pages([self.page_one, self.page_two])

        assert len(first) == len(second) == 3
        assert [r.address for r in first] == [r.address for r in second]

    def test_yields_attached(self):
        records = aggregate_pages([self.page_one])
        assert records[0].estimated_yield == pytest.approx(5.28)
        assert all(r.estimated_yield is not None for r in records)


class TestSearchScrape:
    """Test the paginated search flow."""

    def test_manchester_duplicate_card_scenario(self):
        html = results_page(
            card("Oxford Road, Manchester M1 4BT", "£250,000", "111"),
            card("Deansgate, Manchester M3", "£185,000", "222"),
            card("Oxford Road, Manchester M1 4BT", "£260,000", "333"),
        )
        page = FakePage([html])
        scraper = make_scraper(page)

        records = asyncio.run(scraper.scrape_search_results("Manchester", max_pages=1))

        assert len(records) == 2
        assert records[0].id == "111"
        assert records[0].price == 250000
        assert records[1].address == "Deansgate, Manchester M3"
        assert page.visited == ["https://www.rightmove.co.uk/property-for-sale/find.html?locationIdentifier=REGION%5EManchester"]
        assert page.closed

    def test_pagination_stops_at_first_empty_page(self):
        page = FakePage(
            [
                results_page(card("Oxford Road, Manchester M1", "£250,000", "111")),
                EMPTY_PAGE,
                results_page(card("Deansgate, Manchester M3", "£185,000", "222")),
            ]
        )
        scraper = make_scraper(page)

        records = asyncio.run(scraper.scrape_search_results("Manchester", max_pages=5))

        assert len(page.visited) == 2
        assert [r.id for r in records] == ["111"]

    def test_linkless_cards_on_different_pages_keep_distinct_ids(self):
        def linkless(address: str, price: str) -> str:
            return f"""
            <div class="propertyCard">
              <address class="propertyCard-address">{address}</address>
              <div class="propertyCard-priceValue">{price}</div>
            </div>
            """

        page = FakePage(
            [
                results_page(linkless("Oxford Road, Manchester M1", "£250,000")),
                results_page(linkless("Hyde Road, Manchester M12", "£120,000")),
            ]
        )
        scraper = make_scraper(page)
        cache = TTLCache()

        records = asyncio.run(scraper.scrape_search_results("Manchester", max_pages=2))
        cache_search_results(cache, "properties_manchester", records)

        assert [r.id for r in records] == ["property-0-0", "property-1-0"]
        assert cache.get("property_property-0-0").address == "Oxford Road, Manchester M1"
        assert cache.get("property_property-1-0").address == "Hyde Road, Manchester M12"

    def test_failed_page_is_skipped(self):
        page = FakePage(
            [
                PageLoadError("https://www.rightmove.co.uk/find", "Timeout 60000ms exceeded"),
                results_page(card("Deansgate, Manchester M3", "£185,000", "222")),
                EMPTY_PAGE,
            ]
        )
        scraper = make_scraper(page)

        records = asyncio.run(scraper.scrape_search_results("Manchester", max_pages=3))

        assert len(page.visited) == 3
        assert [r.id for r in records] == ["222"]
        assert "index=24" in page.visited[1]

    def test_browser_failure_propagates(self):
        page = FakePage([BrowserUnavailableError("Browser process unavailable")])
        scraper = make_scraper(page)

        with pytest.raises(BrowserUnavailableError):
            asyncio.run(scraper.scrape_search_results("Manchester"))
        assert page.closed

    def test_delay_between_pages(self):
        page = FakePage(
            [
                results_page(card("Oxford Road, Manchester M1", "£250,000", "111")),
                results_page(card("Deansgate, Manchester M3", "£185,000", "222")),
            ]
        )
        sleep = RecordingSleep()
        scraper = make_scraper(page, config={"delay_page": 1.5}, sleep=sleep)

        asyncio.run(scraper.scrape_search_results("Manchester", max_pages=2))

        assert sleep.calls == [1.5]

    def test_property_type_filter(self):
        html = results_page(
            card("Oxford Road, Manchester M1", "£250,000", "111"),
            card("Deansgate, Manchester M3", "£185,000", "222", title="2 bedroom flat for sale"),
        )
        scraper = make_scraper(FakePage([html]))

        records = asyncio.run(scraper.scrape_search_results("Manchester", property_type="Flat", max_pages=1))

        assert [r.id for r in records] == ["222"]

    def test_property_type_any_keeps_all(self):
        records = [PropertyRecord(id="1", address="a", price=1, property_type="flat")]
        assert PropertyScraper.filter_by_property_type(records, "any") == records

    def test_zoopla_source(self):
        page = FakePage([EMPTY_PAGE])
        scraper = make_scraper(page)

        records = asyncio.run(scraper.scrape_search_results("Leeds", source="zoopla"))

        assert records == []
        assert page.visited[0].startswith("https://www.zoopla.co.uk/for-sale/property/?q=Leeds")

    def test_unsupported_source(self):
        scraper = make_scraper(FakePage())
        with pytest.raises(ValueError):
            asyncio.run(scraper.scrape_search_results("Manchester", source="primelocation"))


ZOOPLA_URL = "https://www.zoopla.co.uk/for-sale/details/67891234/"

ZOOPLA_DETAIL = """
<html><body>
  <p data-testid="price">£325,000</p>
  <h1 data-testid="address">12 Oak Lane, Leeds LS6 2AB</h1>
  <span data-testid="beds">3</span>
  <p>Freehold. Council tax band: C.</p>
  <img src="https://lid.zoocdn.com/u/354/255/thumb.jpg">
  {extra}
</body></html>
"""


class TestListingDetails:
    """Test the single-listing flow."""

    def test_images_from_api(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(str(request.url))
            if request.url.path == "/api/v1/property/67891234/":
                return httpx.Response(
                    200,
                    json={
                        "images": [
                            {"url": "https://lid.zoocdn.com/u/1024/768/one.jpg"},
                            {"src": "https://lid.zoocdn.com/agent-logo.png"},
                            {"image_url": "https://lid.zoocdn.com/u/1024/768/two.jpg"},
                        ]
                    },
                )
            return httpx.Response(404)

        page = FakePage({ZOOPLA_URL: ZOOPLA_DETAIL.format(extra="")})
        scraper = make_scraper(page, transport=httpx.MockTransport(handler))

        details = asyncio.run(scraper.scrape_listing_details(ZOOPLA_URL))

        assert calls == [
            "https://www.zoopla.co.uk/api/property/67891234/",
            "https://www.zoopla.co.uk/api/v1/property/67891234/",
        ]
        assert details["images"] == [
            "https://lid.zoocdn.com/u/1024/768/one.jpg",
            "https://lid.zoocdn.com/u/1024/768/two.jpg",
        ]
        assert details["image_url"] == "https://lid.zoocdn.com/u/1024/768/one.jpg"
        assert details["price"] == 325000
        assert details["bedrooms"] == 3
        assert details["tenure"] == "Freehold"
        assert details["council_tax_band"] == "C"
        assert details["url"] == ZOOPLA_URL
        assert page.scripts == []
        assert page.closed

    def test_photos_tab_clicked_when_api_empty(self):
        html = ZOOPLA_DETAIL.format(extra='<a href="/for-sale/details/67891234/?tab=images">Photos</a>')
        gallery = ZOOPLA_DETAIL.format(
            extra='<div data-testid="gallery"><img src="https://lid.zoocdn.com/u/1024/768/g1.jpg"></div>'
        )
        page = FakePage({ZOOPLA_URL: html}, js_response=gallery)
        transport = httpx.MockTransport(lambda request: httpx.Response(404))
        scraper = make_scraper(page, transport=transport)

        details = asyncio.run(scraper.scrape_listing_details(ZOOPLA_URL))

        assert len(page.scripts) == 1
        script = page.scripts[0]
        assert 'document.querySelector("a[href*=\\"tab=images\\"]").click();' == script[0]
        assert any("scrollTo" in js for js in script[1:])
        assert details["images"] == ["https://lid.zoocdn.com/u/1024/768/g1.jpg"]

    def test_images_tab_url_when_no_photos_tab(self):
        tab_url = ZOOPLA_URL + "?tab=images"
        gallery = ZOOPLA_DETAIL.format(
            extra='<div data-testid="gallery"><img src="https://lid.zoocdn.com/u/1024/768/g2.jpg"></div>'
        )
        page = FakePage({ZOOPLA_URL: ZOOPLA_DETAIL.format(extra=""), tab_url: gallery})
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"listing": {}}))
        scraper = make_scraper(page, transport=transport)

        details = asyncio.run(scraper.scrape_listing_details(ZOOPLA_URL))

        assert page.visited == [ZOOPLA_URL, tab_url]
        assert details["images"] == ["https://lid.zoocdn.com/u/1024/768/g2.jpg"]

    def test_json_ld_images_skip_gallery_interaction(self):
        url = "https://www.rightmove.co.uk/properties/123456789"
        html = """
        <html><head><script type="application/ld+json">
          {"image": ["https://media.rightmove.co.uk/dir/1/IMG_00.jpg"]}
        </script></head>
        <body><h1>14 Wilmslow Road, Manchester M14 5TQ</h1><p>£275,000</p></body></html>
        """
        page = FakePage({url: html})
        scraper = make_scraper(page)

        details = asyncio.run(scraper.scrape_listing_details(url))

        assert details["images"] == ["https://media.rightmove.co.uk/dir/1/IMG_00.jpg"]
        assert details["address"] == "14 Wilmslow Road, Manchester M14 5TQ"
        assert details["price"] == 275000
        assert page.visited == [url]
        assert page.scripts == []

    def test_onthemarket_listing_uses_dom_images(self):
        url = "https://www.onthemarket.com/details/12345678/"
        html = """
        <html><body>
          <div data-testid="address">22 Beech Road, Chorlton, Manchester M21 9EG</div>
          <div data-testid="price">£325,000</div>
          <div data-testid="beds">3 bedrooms</div>
          <div data-testid="gallery"><img src="https://media.onthemarket.com/properties/12345678/1.jpg"></div>
        </body></html>
        """
        page = FakePage({url: html})
        scraper = make_scraper(page)

        details = asyncio.run(scraper.scrape_listing_details(url))

        assert details["price"] == 325000
        assert details["bedrooms"] == 3
        assert details["image_url"] == "https://media.onthemarket.com/properties/12345678/1.jpg"
        assert details["url"] == url
        assert page.visited == [url]
        assert page.scripts == []

    def test_navigation_failure_returns_empty(self):
        page = FakePage({})
        scraper = make_scraper(page)

        assert asyncio.run(scraper.scrape_listing_details(ZOOPLA_URL)) == {}
        assert page.closed

    def test_unsupported_url(self):
        scraper = make_scraper(FakePage({}))
        with pytest.raises(ValueError):
            asyncio.run(scraper.scrape_listing_details("https://www.primelocation.com/for-sale/details/1/"))
