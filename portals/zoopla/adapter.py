"""Zoopla.co.uk portal adapter."""

import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

from models.property import SearchParams
from portals.base import PortalAdapter

logger = logging.getLogger(__name__)


class ZooplaAdapter(PortalAdapter):
    """Adapter for Zoopla UK property listings."""

    BASE_URL = "https://www.zoopla.co.uk"
    SEARCH_PATH = "/for-sale/property/"

    CARD_SELECTORS = [
        '[data-testid="search-result"]',
        '[data-testid^="search-result"]',
        'div[id^="listing_"]',
        '[class*="ListingCard"]',
    ]
    LINK_SELECTOR = 'a[href*="/details/"]'
    ID_PATTERN = re.compile(r"/details/(\d+)")

    ADDRESS_SELECTORS = [
        '[data-testid="listing-address"]',
        '[data-testid="listing-title"]',
        "address",
        'h2[class*="title"]',
        '[class*="address"]',
    ]
    PRICE_SELECTORS = [
        '[data-testid="listing-price"]',
        '[data-testid="price"]',
        'p[class*="price"]',
        '[class*="price"]',
    ]
    IMAGE_SELECTORS = [
        'img[src*="lid.zoocdn.com"]',
        'img[srcset*="lid.zoocdn.com"]',
        'picture img[srcset]',
        'img[data-src]',
        "picture img",
        "img",
    ]

    DETAIL_PRICE_SELECTORS = [
        '[data-testid="price"]',
        ".ui-pricing__main-price",
        ".price",
        '[data-test="price"]',
    ]
    DETAIL_ADDRESS_SELECTORS = [
        '[data-testid="address"]',
        ".ui-title",
        "h1",
        '[data-test="address"]',
    ]
    DETAIL_BEDROOM_SELECTORS = ['[data-testid="beds"]', ".ui-icon--bed", '[data-test="beds"]']
    DETAIL_BATHROOM_SELECTORS = ['[data-testid="baths"]', ".ui-icon--bath", '[data-test="baths"]']
    DETAIL_TYPE_SELECTORS = [
        '[data-testid="property-type"]',
        ".ui-property-summary__type",
        '[data-test="property-type"]',
    ]
    DETAIL_DESCRIPTION_SELECTORS = [
        '[data-test="property-description"]',
        ".property-description",
        '[itemprop="description"]',
        ".ui-property-summary__description",
    ]
    GALLERY_SELECTORS = [
        'div[data-testid="gallery"] img',
        'div[data-testid="photos-gallery"] img',
        'div[class*="gallery"] img',
        'div[class*="image-gallery"] img',
        'div[class*="photos"] img',
        "picture img[srcset]",
        'img[src*="images.zoopla.co.uk"]',
        'img[src*="lid.zoocdn.com"]',
        'img[src*="800x600"]',
        'img[src*="1024x768"]',
        'img[src*="1200x900"]',
    ]
    PHOTOS_TAB_SELECTORS = [
        '[data-testid="photos-tab"]',
        'a[href*="tab=images"]',
        'button[data-testid="photos"]',
        '[data-testid="gallery-tab"]',
        'a[href*="photos"]',
        'button[aria-label*="photos"]',
        'button[aria-label*="images"]',
        '[role="tab"][aria-label*="photos"]',
        '[role="tab"][aria-label*="images"]',
        'a[href*="gallery"]',
    ]

    def get_portal_name(self) -> str:
        """Return portal identifier."""
        return "zoopla"

    def build_search_url(self, params: SearchParams, page_index: int = 0) -> str:
        """
        Build a Zoopla search URL.

        Example:
            https://www.zoopla.co.uk/for-sale/property/?q=Manchester&search_source=for-sale&pn=2
        """
        query: Dict[str, Any] = {
            "q": params.location.strip(),
            "search_source": "for-sale",
        }
        if params.min_price:
            query["price_min"] = int(params.min_price)
        if params.max_price:
            query["price_max"] = int(params.max_price)
        if params.min_bedrooms:
            query["beds_min"] = int(params.min_bedrooms)
        if params.max_bedrooms:
            query["beds_max"] = int(params.max_bedrooms)
        if params.radius:
            query["radius"] = params.radius
        if page_index > 0:
            query["pn"] = page_index + 1

        url = f"{self.BASE_URL}{self.SEARCH_PATH}?{urlencode(query)}"
        logger.debug(f"Generated Zoopla search URL (page {page_index + 1}): {url}")
        return url

    def extract_listing_id(self, url: str) -> Optional[str]:
        """Extract listing ID from /for-sale/details/<id>/ URLs."""
        match = self.ID_PATTERN.search(url or "")
        return match.group(1) if match else None

    def image_api_endpoints(self, listing_id: str) -> List[str]:
        """JSON endpoints that may return a listing's gallery."""
        return [
            f"{self.BASE_URL}/api/property/{listing_id}/",
            f"{self.BASE_URL}/api/v1/property/{listing_id}/",
            f"{self.BASE_URL}/api/property/{listing_id}/images/",
            f"{self.BASE_URL}/api/v1/property/{listing_id}/images/",
            f"{self.BASE_URL}/api/property/{listing_id}/gallery/",
            f"{self.BASE_URL}/api/v1/property/{listing_id}/gallery/",
        ]

    def images_tab_url(self, url: str) -> Optional[str]:
        """Append tab=images unless the URL already opens the gallery."""
        if "zoopla.co.uk" not in url or "tab=images" in url:
            return None
        separator = "&" if "?" in url else "?"
        return f"{url}{separator}tab=images"
