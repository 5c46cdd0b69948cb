"""UK property extraction patterns and strategy helpers."""

import logging
import re
from typing import Any, Callable, Dict, List, Optional, Pattern, Sequence, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from models.constants import (
    FLAG_NEEDS_MODERNISATION,
    FLAG_REDUCED,
    MODERNISATION_KEYWORDS,
    NON_PROPERTY_IMAGE_MARKERS,
    PROPERTY_TYPES,
    SQM_TO_SQFT,
)

logger = logging.getLogger(__name__)

# A strategy takes a parsed element (or text) and returns a value or None
Strategy = Callable[[Any], Any]

BEDROOM_PATTERN: Pattern = re.compile(r"(\d+)\s*bed", re.IGNORECASE)
BATHROOM_PATTERN: Pattern = re.compile(r"(\d+)\s*bath", re.IGNORECASE)
RECEPTION_PATTERN: Pattern = re.compile(r"(\d+)\s*reception", re.IGNORECASE)
PROPERTY_TYPE_PATTERN: Pattern = re.compile(
    r"(" + "|".join(re.escape(t) for t in PROPERTY_TYPES) + r")", re.IGNORECASE
)
REDUCTION_PATTERN: Pattern = re.compile(r"reduced by £\s*([\d,]+)", re.IGNORECASE)
PRICE_TEXT_PATTERN: Pattern = re.compile(r"£\s*([\d,]+)")
LEADING_NUMBER_PATTERN: Pattern = re.compile(r"\s*([\d,]+)")


def first_match(strategies: Sequence[Strategy], *args: Any) -> Any:
    """
    Run strategies in order and return the first plausible value.

    A value is plausible when it is not None, not an empty string/list and
    not zero. Strategies that raise are logged and skipped.

    Args:
        strategies: Ordered strategy callables
        *args: Arguments passed to every strategy

    Returns:
        First plausible value, or None if every strategy came up empty
    """
    for index, strategy in enumerate(strategies):
        try:
            value = strategy(*args)
        except Exception as e:
            logger.debug(f"Strategy {index} failed: {e}")
            continue
        if value is None or value == "" or value == [] or value == 0:
            continue
        logger.debug(f"Strategy {index} matched: {str(value)[:60]}")
        return value
    return None


def clean_text(text: Optional[str]) -> str:
    """Collapse whitespace and strip."""
    if not text:
        return ""
    return re.sub(r"\s+", " ", text).strip()


def element_text(element: Any) -> str:
    """Full text content of a soup element (or string)."""
    if element is None:
        return ""
    if isinstance(element, str):
        return clean_text(element)
    return clean_text(element.get_text(" ", strip=True))


def parse_int(value: Optional[str]) -> Optional[int]:
    """Parse the first integer in a string, ignoring thousands separators."""
    if not value:
        return None
    match = re.search(r"\d+", value.replace(",", ""))
    if not match:
        return None
    return int(match.group(0))


def parse_price(text: Optional[str]) -> int:
    """
    Parse a GBP price string to an integer.

    Takes the first £ amount; without one, only text that starts with a
    number counts. Digits elsewhere (dates, counts) are not prices.
    Unparseable input yields 0.

    Examples:
        "£250,000" → 250000
        "Guide Price £1,250,000" → 1250000
        "250,000" → 250000
        "Reduced on 03/02/2024" → 0
        "POA" → 0
    """
    if not text:
        return 0
    match = PRICE_TEXT_PATTERN.search(text) or LEADING_NUMBER_PATTERN.match(text)
    if not match:
        return 0
    digits = match.group(1).replace(",", "")
    return int(digits) if digits else 0


# ---------- Strategy builders ----------

def select_text(selector: str) -> Strategy:
    """Strategy: text of the first element matching a CSS selector."""

    def strategy(root: Tag) -> str:
        element = root.select_one(selector)
        return element_text(element)

    strategy.__name__ = f"select_text({selector})"
    return strategy


def select_price(selector: str) -> Strategy:
    """Strategy: parsed price of the first element matching a CSS selector."""

    def strategy(root: Tag) -> int:
        element = root.select_one(selector)
        if element is None:
            return 0
        return parse_price(element_text(element))

    strategy.__name__ = f"select_price({selector})"
    return strategy


def select_all_text(selector: str) -> Strategy:
    """Strategy: non-empty texts of every element matching a selector."""

    def strategy(root: Tag) -> List[str]:
        return [t for t in (element_text(el) for el in root.select(selector)) if t]

    strategy.__name__ = f"select_all_text({selector})"
    return strategy


def regex_int(pattern: Pattern) -> Strategy:
    """Strategy: first capture group of a pattern over the text, as int."""

    def strategy(text: str) -> Optional[int]:
        match = pattern.search(text)
        if not match:
            return None
        return parse_int(match.group(1))

    return strategy


def regex_price(pattern: Pattern, min_value: int = 1) -> Strategy:
    """Strategy: price from a pattern's first group, rejecting values below min_value."""

    def strategy(text: str) -> Optional[int]:
        for match in pattern.finditer(text):
            value = parse_price(match.group(1))
            if value >= min_value:
                return value
        return None

    return strategy


def regex_text(pattern: Pattern, transform: Callable[[str], str] = str.strip) -> Strategy:
    """Strategy: first capture group of a pattern over the text."""

    def strategy(text: str) -> Optional[str]:
        match = pattern.search(text)
        if not match:
            return None
        return transform(match.group(1))

    return strategy


# ---------- Card-level text heuristics ----------

def extract_property_type(text: str, default: str) -> str:
    """Match card text against the fixed property type vocabulary."""
    match = PROPERTY_TYPE_PATTERN.search(text)
    return match.group(1) if match else default


def detect_flags(text: str) -> Tuple[List[str], Optional[int]]:
    """
    Derive qualitative market flags from listing text.

    Returns:
        Tuple of (flags, price_reduction)
    """
    flags: List[str] = []
    price_reduction: Optional[int] = None

    match = REDUCTION_PATTERN.search(text)
    if match:
        price_reduction = parse_int(match.group(1))
        if price_reduction:
            flags.append(FLAG_REDUCED)

    lower = text.lower()
    if any(keyword in lower for keyword in MODERNISATION_KEYWORDS):
        flags.append(FLAG_NEEDS_MODERNISATION)

    return flags, price_reduction


# ---------- Images ----------

def _srcset_best(srcset: str) -> Optional[str]:
    """Pick the highest-resolution candidate from a srcset attribute."""
    best_url: Optional[str] = None
    best_score = -1.0
    for position, candidate in enumerate(part.strip() for part in srcset.split(",")):
        if not candidate:
            continue
        pieces = candidate.split()
        url = pieces[0]
        if url.startswith("data:"):
            continue
        score = float(position)  # later candidates are usually larger
        if len(pieces) > 1:
            descriptor = pieces[1].lower()
            number = re.match(r"([\d.]+)([wx])", descriptor)
            if number:
                multiplier = 1.0 if number.group(2) == "w" else 1000.0
                score = float(number.group(1)) * multiplier
        if score >= best_score:
            best_score = score
            best_url = url
    return best_url


def pick_image_source(img: Tag) -> str:
    """
    Choose the best URL an image element offers.

    Preference: srcset (highest resolution), then lazy-load attributes,
    then plain src. Inline data: URIs are never returned.
    """
    srcset = img.get("srcset") or img.get("data-srcset")
    if srcset:
        best = _srcset_best(srcset)
        if best:
            return best

    for attr in ("data-src", "data-lazy-src", "data-original", "src"):
        value = img.get(attr)
        if value and not value.startswith("data:"):
            return value.strip()
    return ""


def normalize_url(url: str, base_url: str) -> str:
    """Turn protocol-relative and root-relative URLs into absolute ones."""
    if not url:
        return ""
    if url.startswith("//"):
        return "https:" + url
    if url.startswith("/"):
        return urljoin(base_url, url)
    return url


def is_non_property_image(url: str) -> bool:
    """True for icons, logos, floorplans and framework assets."""
    lower = url.lower()
    if lower.split("?")[0].endswith(".svg"):
        return True
    return any(marker in lower for marker in NON_PROPERTY_IMAGE_MARKERS)


def collect_images(
    root: Tag,
    selectors: Sequence[str],
    base_url: str,
    limit: int,
) -> List[str]:
    """
    Collect property photos from the first selector group that yields any.

    Every URL is normalized and run through the non-property denylist.
    """
    images: List[str] = []
    for selector in selectors:
        for img in root.select(selector):
            url = normalize_url(pick_image_source(img), base_url)
            if not url.startswith("http") or url in images:
                continue
            if is_non_property_image(url):
                logger.debug(f"Filtered out UI image: {url}")
                continue
            images.append(url)
        if images:
            logger.debug(f"Found {len(images)} images with selector '{selector}'")
            break
    return images[:limit]


def filter_image_urls(urls: Sequence[Any], base_url: str, limit: int) -> List[str]:
    """Normalize, de-duplicate and denylist-filter a list of image URLs."""
    images: List[str] = []
    for url in urls:
        if not isinstance(url, str):
            continue
        url = normalize_url(url.strip(), base_url)
        if url.startswith("http") and url not in images and not is_non_property_image(url):
            images.append(url)
    return images[:limit]


def make_soup(html: str) -> BeautifulSoup:
    """Parse HTML with the stdlib parser."""
    return BeautifulSoup(html or "", "html.parser")


class PropertyDetailExtractor:
    """Text rules for single-listing pages (UK terminology)."""

    COUNCIL_TAX_PATTERN: Pattern = re.compile(
        r"council tax band\s*:?\s*([A-H])\b", re.IGNORECASE
    )

    EPC_PATTERNS: List[Pattern] = [
        re.compile(r"EPC rating\s*:?\s*([A-G])\b", re.IGNORECASE),
        re.compile(r"energy efficiency rating\s*:?\s*([A-G])\b", re.IGNORECASE),
    ]

    SQFT_PATTERN: Pattern = re.compile(r"([\d,]+)\s*sq\.?\s*ft", re.IGNORECASE)
    SQM_PATTERN: Pattern = re.compile(
        r"([\d,]+)\s*(?:sq\.?\s*m(?:etres|eters)?\b|m²)", re.IGNORECASE
    )

    PRICE_PATTERNS: List[Pattern] = [
        re.compile(r"£([\d,]+)\s*\(", re.IGNORECASE),
        re.compile(r"£([\d,]+)\s*per", re.IGNORECASE),
        re.compile(r"price[:\s]*£([\d,]+)", re.IGNORECASE),
        re.compile(r"£([\d,]+)", re.IGNORECASE),
    ]

    ADDRESS_PATTERNS: List[Pattern] = [
        re.compile(
            r"([A-Za-z0-9][A-Za-z0-9 ,]*?(?:Street|Road|Avenue|Lane|Close|Drive|Way|Place|"
            r"Square|Gardens|Park|Court|Crescent|Terrace)\b[A-Za-z0-9 ,]*)"
        ),
        re.compile(
            r"([A-Za-z0-9][A-Za-z0-9 ,]*?(?:London|Manchester|Birmingham|Liverpool|Leeds|"
            r"Sheffield|Bristol|Newcastle|Nottingham|Leicester)\b[A-Za-z0-9 ,]*)"
        ),
    ]

    # Minimum plausible asking price for a text-derived price
    MIN_TEXT_PRICE = 10000

    def extract_from_text(self, page_text: str) -> Dict[str, Any]:
        """
        Extract detail-page fields from the page's full text.

        Returns a dictionary of extracted values; fields that cannot be
        found are absent.
        """
        extracted: Dict[str, Any] = {}
        lower = page_text.lower()

        tenure = self.extract_tenure(lower)
        if tenure:
            extracted["tenure"] = tenure

        band = regex_text(self.COUNCIL_TAX_PATTERN, str.upper)(page_text)
        if band:
            extracted["council_tax_band"] = band

        epc = first_match([regex_text(p, str.upper) for p in self.EPC_PATTERNS], page_text)
        if epc:
            extracted["epc_rating"] = epc

        square_feet = self.extract_square_feet(page_text)
        if square_feet:
            extracted["square_feet"] = square_feet

        receptions = regex_int(RECEPTION_PATTERN)(page_text)
        if receptions is not None:
            extracted["reception_rooms"] = receptions

        extracted["has_garden"] = "garden" in lower and "no garden" not in lower
        extracted["has_parking"] = any(
            word in lower for word in ("parking", "garage", "driveway")
        )

        furnishing = self.extract_furnishing(lower)
        if furnishing:
            extracted["furnishing"] = furnishing

        letting = self.extract_letting_status(lower)
        if letting:
            extracted["letting_status"] = letting

        return extracted

    def extract_tenure(self, lower: str) -> Optional[str]:
        """Tenure keyword search, most specific phrase first."""
        if "share of freehold" in lower:
            return "Share of Freehold"
        if "freehold" in lower:
            return "Freehold"
        if "leasehold" in lower:
            return "Leasehold"
        return None

    def extract_square_feet(self, text: str) -> Optional[int]:
        """Floor area in square feet (square metres are converted)."""
        sqft = regex_int(self.SQFT_PATTERN)(text)
        if sqft:
            return sqft
        sqm = regex_int(self.SQM_PATTERN)(text)
        if sqm:
            return round(sqm * SQM_TO_SQFT)
        return None

    def extract_furnishing(self, lower: str) -> Optional[str]:
        """Furnishing status, most specific phrase first."""
        if "part furnished" in lower or "part-furnished" in lower:
            return "Part Furnished"
        if "unfurnished" in lower:
            return "Unfurnished"
        if "furnished" in lower:
            return "Furnished"
        return None

    def extract_letting_status(self, lower: str) -> Optional[str]:
        """Whether the property is sold with tenants in place."""
        if "tenanted" in lower or "sitting tenant" in lower:
            return "Tenanted"
        if "vacant" in lower:
            return "Vacant"
        return None

    def price_strategies(self) -> List[Strategy]:
        """Text-tier price strategies for detail pages."""
        return [regex_price(p, self.MIN_TEXT_PRICE) for p in self.PRICE_PATTERNS]

    def address_strategies(self) -> List[Strategy]:
        """Text-tier address strategies for detail pages."""

        def address_from(pattern: Pattern) -> Strategy:
            def strategy(text: str) -> Optional[str]:
                match = pattern.search(text)
                if match and len(match.group(1).strip()) > 10:
                    return clean_text(match.group(1))
                return None

            return strategy

        return [address_from(p) for p in self.ADDRESS_PATTERNS]
