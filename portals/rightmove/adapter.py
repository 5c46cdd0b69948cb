"""Rightmove.co.uk portal adapter."""

import logging
import re
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from models.property import SearchParams
from portals.base import PortalAdapter

logger = logging.getLogger(__name__)


class RightmoveAdapter(PortalAdapter):
    """Adapter for Rightmove, the UK's largest listing portal."""

    BASE_URL = "https://www.rightmove.co.uk"
    SEARCH_PATH = "/property-for-sale/find.html"
    # Rightmove shows 24 results per page and paginates with an offset
    RESULTS_PER_PAGE = 24

    CARD_SELECTORS = [
        '[data-test="property-card"]',
        ".propertyCard",
        ".l-searchResult",
        '[class*="propertyCard"]',
    ]
    LINK_SELECTOR = 'a[href*="/properties/"], a[href*="property"]'
    ID_PATTERN = re.compile(r"propert(?:y|ies)[/-](\d+)")

    ADDRESS_SELECTORS = [
        '[data-test="property-title"]',
        ".propertyCard-address",
        ".propertyCard-titleLink",
        "address",
        '[class*="address"]',
    ]
    PRICE_SELECTORS = [
        '[data-test="property-price"]',
        ".propertyCard-priceValue",
        ".propertyCard-price",
        '[class*="price"]',
    ]
    IMAGE_SELECTORS = [
        'img[src*="media.rightmove.co.uk/"][src*=".jpg"]',
        'img[src*="media.rightmove.co.uk/"][src*=".jpeg"]',
        'img[src*="media.rightmove.co.uk/"][src*=".png"]',
        'img[data-src*=".jpg"]',
        'img[data-src*=".jpeg"]',
        'img[srcset*=".jpg"]',
        'img[alt*="property"]',
        'img[alt*="bedroom"]',
        "picture img",
        ".propertyCard-img img",
        "img",
    ]

    DETAIL_PRICE_SELECTORS = [
        '[data-testid="price"]',
        '[class*="propertyHeaderPrice"]',
        ".property-header-price",
        '[data-test="price"]',
    ]
    DETAIL_ADDRESS_SELECTORS = [
        'h1[itemprop="streetAddress"]',
        '[data-testid="address-label"]',
        "h1",
        "address",
    ]
    DETAIL_BEDROOM_SELECTORS = ['[data-testid="beds-label"]', '[data-test="beds"]']
    DETAIL_BATHROOM_SELECTORS = ['[data-testid="baths-label"]', '[data-test="baths"]']
    DETAIL_TYPE_SELECTORS = ['[data-testid="property-type"]', '[data-test="property-type"]']
    DETAIL_DESCRIPTION_SELECTORS = [
        '[data-testid="truncated_text_container"]',
        '[data-test="property-description"]',
        '[itemprop="description"]',
        ".property-description",
    ]
    GALLERY_SELECTORS = [
        'img[data-testid="gallery-image"]',
        'img[data-testid="property-image"]',
        'img[src*="media.rightmove.co.uk"]',
        ".property-image img",
        '[data-test="gallery"] img',
    ]
    PHOTOS_TAB_SELECTORS = [
        'a[href*="#/media"]',
        'button[aria-label*="photos"]',
        'a[href*="photos"]',
    ]

    def get_portal_name(self) -> str:
        """Return portal identifier."""
        return "rightmove"

    def build_search_url(self, params: SearchParams, page_index: int = 0) -> str:
        """
        Build a Rightmove search URL.

        Example:
            https://www.rightmove.co.uk/property-for-sale/find.html?locationIdentifier=REGION%5EManchester&index=24
        """
        location = re.sub(r"\s+", "-", params.location.strip())
        query: Dict[str, Any] = {"locationIdentifier": f"REGION^{location}"}
        if params.min_price:
            query["minPrice"] = int(params.min_price)
        if params.max_price:
            query["maxPrice"] = int(params.max_price)
        if params.min_bedrooms:
            query["minBedrooms"] = int(params.min_bedrooms)
        if params.max_bedrooms:
            query["maxBedrooms"] = int(params.max_bedrooms)
        if params.radius:
            query["radius"] = params.radius
        if page_index > 0:
            query["index"] = page_index * self.RESULTS_PER_PAGE

        url = f"{self.BASE_URL}{self.SEARCH_PATH}?{urlencode(query)}"
        logger.debug(f"Generated Rightmove search URL (page {page_index + 1}): {url}")
        return url

    def extract_listing_id(self, url: str) -> Optional[str]:
        """Extract listing ID from /properties/<id> or property-<id> URLs."""
        match = self.ID_PATTERN.search(url or "")
        return match.group(1) if match else None

    def get_search_crawler_config(self) -> Dict[str, Any]:
        """Rightmove cards lazy-load their photos, so allow extra settle time."""
        config = super().get_search_crawler_config()
        config["delay_before_return_html"] = 3.0
        return config
