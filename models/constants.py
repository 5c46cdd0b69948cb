"""UK property market constants and lookup tables."""

from typing import Dict, List

# Rough monthly rent estimates (GBP) by bedroom count
MONTHLY_RENT_BY_BEDROOMS: Dict[int, int] = {
    0: 500,
    1: 700,
    2: 900,
    3: 1100,
    4: 1400,
    5: 1700,
}

# Used when the bedroom count falls outside the table
DEFAULT_MONTHLY_RENT: int = 1000

# Property type vocabulary matched against card text (order matters:
# "semi-detached" must win over "detached")
PROPERTY_TYPES: List[str] = [
    "semi-detached",
    "detached",
    "terraced",
    "bungalow",
    "apartment",
    "house",
    "flat",
]

DEFAULT_PROPERTY_TYPE: str = "Property"

# Market flags
FLAG_REDUCED: str = "Reduced in Price"
FLAG_NEEDS_MODERNISATION: str = "Needs Modernisation"

MODERNISATION_KEYWORDS: List[str] = [
    "modernisation",
    "refurbishment",
    "in need of",
]

# URL fragments that mark an image as site furniture rather than a property photo
NON_PROPERTY_IMAGE_MARKERS: List[str] = [
    "floorplan",
    "placeholder",
    "icon",
    "logo",
    "/_next/static/",
    "avatar",
    "badge",
    "sprite",
    "marker",
    "maps.zoopla.co.uk",
    "cloudfront.net/themes",
    "naea",
    "tpo",
]

MAX_IMAGES: int = 8

# Square metres to square feet
SQM_TO_SQFT: float = 10.764

SUPPORTED_DOMAINS: List[str] = [
    "rightmove.co.uk",
    "zoopla.co.uk",
    "onthemarket.com",
]

USER_AGENT: str = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

BROWSER_ARGS: List[str] = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--disable-gpu",
    "--window-size=1920,1080",
    "--disable-blink-features=AutomationControlled",
]

# Scroll halfway, then to the bottom, to trigger lazy-loaded images
SCROLL_JS: List[str] = [
    "window.scrollTo(0, document.body.scrollHeight / 2);",
    "window.scrollTo(0, document.body.scrollHeight);",
]
