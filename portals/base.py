"""Abstract base class for portal-specific adapters."""

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from bs4 import Tag

from models.constants import DEFAULT_PROPERTY_TYPE, MAX_IMAGES, SCROLL_JS
from models.property import PropertyRecord, SearchParams
from utils.address_parser import UKAddressParser
from utils.extractors import (
    BATHROOM_PATTERN,
    BEDROOM_PATTERN,
    PRICE_TEXT_PATTERN,
    PropertyDetailExtractor,
    collect_images,
    detect_flags,
    element_text,
    extract_property_type,
    filter_image_urls,
    first_match,
    is_non_property_image,
    make_soup,
    normalize_url,
    parse_int,
    pick_image_source,
    regex_int,
    regex_price,
    select_all_text,
    select_price,
    select_text,
)

logger = logging.getLogger(__name__)


class PortalAdapter(ABC):
    """
    Abstract base class for UK listing portal adapters.

    Each portal (Rightmove, Zoopla) declares its URL rules and ordered selector
    lists; this class runs the shared extraction cascades over them. For every
    field the structured (CSS selector) strategies are tried first, then the
    text-regex strategies, and the first plausible value wins. A missing field
    degrades to its default rather than failing the record.
    """

    BASE_URL: str = ""

    # Result cards, tried in order until one selector matches anything
    CARD_SELECTORS: List[str] = []
    # Anchor hrefs that identify a property link (also used to find cards)
    LINK_SELECTOR: str = 'a[href*="property"]'
    ID_PATTERN = re.compile(r"property[/-](\d+)")

    ADDRESS_SELECTORS: List[str] = []
    PRICE_SELECTORS: List[str] = []
    IMAGE_SELECTORS: List[str] = ["picture img", "img"]

    # Detail pages
    DETAIL_PRICE_SELECTORS: List[str] = []
    DETAIL_ADDRESS_SELECTORS: List[str] = []
    DETAIL_BEDROOM_SELECTORS: List[str] = []
    DETAIL_BATHROOM_SELECTORS: List[str] = []
    DETAIL_TYPE_SELECTORS: List[str] = []
    DETAIL_DESCRIPTION_SELECTORS: List[str] = []
    KEY_FEATURE_SELECTORS: List[str] = [
        '[data-test="property-features"] li',
        ".key-features li",
        "ul.features li",
    ]
    GALLERY_SELECTORS: List[str] = []
    PHOTOS_TAB_SELECTORS: List[str] = []

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize adapter with configuration.

        Args:
            config: Scraper section of config.json (optional)
        """
        self.config = config or {}
        self.address_parser = UKAddressParser()
        self.detail_extractor = PropertyDetailExtractor()

    @abstractmethod
    def get_portal_name(self) -> str:
        """
        Return portal identifier.

        Returns:
            Portal name (e.g., "rightmove", "zoopla")
        """
        pass

    @abstractmethod
    def build_search_url(self, params: SearchParams, page_index: int = 0) -> str:
        """
        Build search URL for one results page.

        Args:
            params: Search filters
            page_index: Zero-based results page

        Returns:
            Full search URL with filters and pagination
        """
        pass

    @abstractmethod
    def extract_listing_id(self, url: str) -> Optional[str]:
        """
        Extract the portal's numeric listing ID from a listing URL.

        Returns:
            Listing ID, or None if the URL carries none
        """
        pass

    def image_api_endpoints(self, listing_id: str) -> List[str]:
        """Structured image endpoints for a listing (none by default)."""
        return []

    def images_tab_url(self, url: str) -> Optional[str]:
        """URL that opens the photo gallery directly, if the portal has one."""
        return None

    def get_search_crawler_config(self) -> Dict[str, Any]:
        """
        Get crawler configuration for search results pages.

        Returns:
            Dict of crawl4ai run options
        """
        return {
            "wait_until": "networkidle",
            "delay_before_return_html": 2.0,
            "js_code": SCROLL_JS,
        }

    def get_crawler_config(self) -> Dict[str, Any]:
        """
        Get crawler configuration for single listing pages.

        Returns:
            Dict of crawl4ai run options
        """
        return {
            "wait_until": "networkidle",
            "delay_before_return_html": 2.0,
        }

    # ---------- Search-results mode ----------

    def find_cards(self, soup: Tag) -> List[Tag]:
        """Locate result cards, falling back to articles holding a property link."""
        for selector in self.CARD_SELECTORS:
            cards = soup.select(selector)
            if cards:
                logger.debug(f"Found {len(cards)} cards with '{selector}'")
                return cards

        articles = [a for a in soup.find_all("article") if a.select_one(self.LINK_SELECTOR)]
        if articles:
            logger.debug(f"Found {len(articles)} cards via article fallback")
        return articles

    def extract_search_results(self, html: str, page_index: int = 0) -> List[PropertyRecord]:
        """
        Extract property records from a search results page.

        Only records with a non-empty address and a positive price are
        returned; every other field falls back to its default.

        Args:
            html: Search results page HTML
            page_index: Zero-based page index (for logging and positional ids)

        Returns:
            Valid PropertyRecords in page order
        """
        soup = make_soup(html)
        cards = self.find_cards(soup)
        logger.info(f"Page {page_index + 1}: found {len(cards)} property cards")

        records: List[PropertyRecord] = []
        for index, card in enumerate(cards):
            try:
                record = self.parse_card(card, index, page_index)
            except Exception as e:
                logger.warning(f"Error parsing property card {index}: {e}")
                continue
            if record is not None:
                records.append(record)
        return records

    def address_strategies(self) -> List[Any]:
        return [select_text(s) for s in self.ADDRESS_SELECTORS]

    def price_strategies(self) -> List[Any]:
        return [select_price(s) for s in self.PRICE_SELECTORS]

    def price_text_strategies(self) -> List[Any]:
        return [regex_price(PRICE_TEXT_PATTERN)]

    def parse_card(self, card: Tag, index: int, page_index: int = 0) -> Optional[PropertyRecord]:
        """
        Build a PropertyRecord from a single result card.

        Cards without a listing link get an id scoped to their page and
        position, e.g. ``property-1-4``.

        Returns:
            The record, or None when address or price are missing
        """
        text = element_text(card)

        address = first_match(self.address_strategies(), card) or ""
        price = first_match(self.price_strategies(), card) or first_match(
            self.price_text_strategies(), text
        ) or 0

        property_type = extract_property_type(text, DEFAULT_PROPERTY_TYPE)
        image_url = self.extract_card_image(card)
        url, listing_id = self.extract_card_link(card)
        flags, price_reduction = detect_flags(text)

        record = PropertyRecord(
            id=listing_id or f"property-{page_index}-{index}",
            address=address,
            price=price,
            bedrooms=regex_int(BEDROOM_PATTERN)(text) or 0,
            bathrooms=regex_int(BATHROOM_PATTERN)(text) or 0,
            property_type=property_type,
            description=property_type,
            image_url=image_url,
            images=[image_url] if image_url else [],
            postcode=self.address_parser.extract_postcode(address),
            url=url,
            source=self.get_portal_name(),
            flags=flags,
            price_reduction=price_reduction,
        )
        if not record.is_valid():
            logger.debug(f"Dropping card {index}: address={address!r} price={price}")
            return None
        return record

    def extract_card_image(self, card: Tag) -> str:
        """
        Primary photo for a card.

        The first element matching the image selector priority list is used;
        if its URL is denylisted the field stays empty.
        """
        for selector in self.IMAGE_SELECTORS:
            img = card.select_one(selector)
            if img is None:
                continue
            url = normalize_url(pick_image_source(img), self.BASE_URL)
            if url and is_non_property_image(url):
                logger.debug(f"Rejected non-property image: {url}")
                return ""
            return url
        return ""

    def extract_card_link(self, card: Tag) -> Tuple[str, Optional[str]]:
        """Return (absolute listing URL, listing ID or None) for a card."""
        link = card.select_one(self.LINK_SELECTOR)
        href = (link.get("href") or "") if link is not None else ""
        if not href:
            return "", None
        url = href if href.startswith("http") else normalize_url(href, self.BASE_URL)
        return url, self.extract_listing_id(url)

    # ---------- Detail mode ----------

    def extract_details(self, html: str, url: str) -> Dict[str, Any]:
        """
        Extract the full field set from a single listing page.

        Selector strategies run first, then regex over the page text.

        Args:
            html: Listing page HTML
            url: Listing URL

        Returns:
            Partial record (snake_case keys) with whatever could be recovered
        """
        soup = make_soup(html)
        body = soup.body or soup
        page_text = element_text(body)
        result: Dict[str, Any] = {}

        price = first_match(
            [select_price(s) for s in self.DETAIL_PRICE_SELECTORS], soup
        ) or first_match(self.detail_extractor.price_strategies(), page_text)
        if price:
            result["price"] = price

        address = first_match(
            [select_text(s) for s in self.DETAIL_ADDRESS_SELECTORS], soup
        ) or first_match(self.detail_extractor.address_strategies(), page_text)
        if address:
            result["address"] = address
            result["postcode"] = self.address_parser.extract_postcode(address)

        bedrooms = first_match(
            [self._select_int(s) for s in self.DETAIL_BEDROOM_SELECTORS], soup
        ) or regex_int(BEDROOM_PATTERN)(page_text)
        if bedrooms:
            result["bedrooms"] = bedrooms

        bathrooms = first_match(
            [self._select_int(s) for s in self.DETAIL_BATHROOM_SELECTORS], soup
        ) or regex_int(BATHROOM_PATTERN)(page_text)
        if bathrooms:
            result["bathrooms"] = bathrooms

        property_type = first_match([select_text(s) for s in self.DETAIL_TYPE_SELECTORS], soup)
        if property_type:
            result["property_type"] = property_type

        description = first_match(
            [select_text(s) for s in self.DETAIL_DESCRIPTION_SELECTORS], soup
        )
        if description:
            result["description"] = description

        result["key_features"] = (
            first_match([select_all_text(s) for s in self.KEY_FEATURE_SELECTORS], soup) or []
        )

        result.update(self.detail_extractor.extract_from_text(page_text))

        flags, price_reduction = detect_flags(page_text)
        if flags:
            result["flags"] = flags
        if price_reduction:
            result["price_reduction"] = price_reduction

        images = self.extract_detail_images(soup)
        result["images"] = images
        result["image_url"] = images[0] if images else ""
        return result

    def _select_int(self, selector: str):
        def strategy(root: Tag) -> Optional[int]:
            element = root.select_one(selector)
            return parse_int(element_text(element)) if element is not None else None

        return strategy

    def extract_detail_images(self, soup: Tag) -> List[str]:
        """DOM image scan over the gallery selectors, then any img on the page."""
        images = collect_images(soup, self.GALLERY_SELECTORS, self.BASE_URL, MAX_IMAGES)
        if images:
            return images
        return collect_images(soup, ["picture img", "img"], self.BASE_URL, MAX_IMAGES)

    def extract_structured_images(self, html: str) -> List[str]:
        """Image URLs from JSON-LD blocks embedded in the page."""
        soup = make_soup(html)
        urls: List[Any] = []
        for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
            try:
                data = json.loads(script.string or "")
            except json.JSONDecodeError:
                continue
            for item in data if isinstance(data, list) else [data]:
                if not isinstance(item, dict):
                    continue
                image = item.get("image") or item.get("photo")
                if isinstance(image, str):
                    urls.append(image)
                elif isinstance(image, list):
                    for entry in image:
                        urls.append(entry.get("url") if isinstance(entry, dict) else entry)
        return filter_image_urls(urls, self.BASE_URL, MAX_IMAGES)

    def find_photos_tab(self, html: str) -> Optional[str]:
        """Return the first photos-tab selector present in the page, if any."""
        soup = make_soup(html)
        for selector in self.PHOTOS_TAB_SELECTORS:
            if soup.select_one(selector) is not None:
                return selector
        return None
