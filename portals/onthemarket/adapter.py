"""OnTheMarket.com portal adapter."""

import logging
import re
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from models.property import SearchParams
from portals.base import PortalAdapter

logger = logging.getLogger(__name__)


class OnTheMarketAdapter(PortalAdapter):
    """
    Adapter for OnTheMarket listings.

    Listing pages are read with the generic detail cascade (data-testid
    hooks, then common class names, then page text). There is no image API,
    so photos come from JSON-LD or the gallery markup.
    """

    BASE_URL = "https://www.onthemarket.com"
    SEARCH_PATH = "/for-sale/property/"

    CARD_SELECTORS = [
        '[data-component="search-result-property-card"]',
        "li.otm-PropertyCard",
        '[class*="PropertyCard"]',
    ]
    LINK_SELECTOR = 'a[href*="/details/"]'
    ID_PATTERN = re.compile(r"/details/(\d+)")

    ADDRESS_SELECTORS = [
        '[data-testid="address"]',
        "address",
        '[class*="address"]',
    ]
    PRICE_SELECTORS = [
        '[data-testid="price"]',
        '[class*="price"]',
    ]
    IMAGE_SELECTORS = [
        'img[src*="media.onthemarket.com"]',
        "picture img",
        "img",
    ]

    DETAIL_PRICE_SELECTORS = [
        '[data-testid="price"]',
        ".price",
        '[data-test="price"]',
        '[class*="price"]',
    ]
    DETAIL_ADDRESS_SELECTORS = [
        '[data-testid="address"]',
        "h1",
        '[data-test="address"]',
        "address",
    ]
    DETAIL_BEDROOM_SELECTORS = ['[data-testid="beds"]', '[data-test="beds"]']
    DETAIL_BATHROOM_SELECTORS = ['[data-testid="baths"]', '[data-test="baths"]']
    DETAIL_TYPE_SELECTORS = ['[data-testid="property-type"]', '[data-test="property-type"]']
    DETAIL_DESCRIPTION_SELECTORS = [
        '[data-test="property-description"]',
        '[data-testid="description"]',
        ".property-description",
        '[itemprop="description"]',
    ]
    GALLERY_SELECTORS = [
        '[data-testid="gallery"] img',
        'div[class*="gallery"] img',
        'img[src*="media.onthemarket.com"]',
    ]
    PHOTOS_TAB_SELECTORS = [
        'button[aria-label*="photos"]',
        'a[href*="#/photos"]',
        'a[href*="gallery"]',
    ]

    def get_portal_name(self) -> str:
        """Return portal identifier."""
        return "onthemarket"

    def build_search_url(self, params: SearchParams, page_index: int = 0) -> str:
        """
        Build an OnTheMarket search URL.

        Example:
            https://www.onthemarket.com/for-sale/property/manchester/?min-bedrooms=2&page=2
        """
        slug = re.sub(r"\s+", "-", params.location.strip().lower())
        query: Dict[str, Any] = {}
        if params.min_price:
            query["min-price"] = int(params.min_price)
        if params.max_price:
            query["max-price"] = int(params.max_price)
        if params.min_bedrooms:
            query["min-bedrooms"] = int(params.min_bedrooms)
        if params.max_bedrooms:
            query["max-bedrooms"] = int(params.max_bedrooms)
        if params.radius:
            query["radius"] = params.radius
        if page_index > 0:
            query["page"] = page_index + 1

        url = f"{self.BASE_URL}{self.SEARCH_PATH}{slug}/"
        if query:
            url = f"{url}?{urlencode(query)}"
        logger.debug(f"Generated OnTheMarket search URL (page {page_index + 1}): {url}")
        return url

    def extract_listing_id(self, url: str) -> Optional[str]:
        """Extract listing ID from /details/<id>/ URLs."""
        match = self.ID_PATTERN.search(url or "")
        return match.group(1) if match else None
