"""Property listing data model."""

from dataclasses import dataclass, field, fields, replace
from datetime import date
from typing import Any, Dict, List, Optional

from .constants import MAX_IMAGES

# Attribute name -> JSON key, where they differ
JSON_FIELD_NAMES: Dict[str, str] = {
    "property_type": "propertyType",
    "image_url": "imageUrl",
    "listed_date": "listedDate",
    "price_reduction": "priceReduction",
    "estimated_yield": "yield",
    "square_feet": "squareFeet",
    "council_tax_band": "councilTaxBand",
    "epc_rating": "epcRating",
    "has_garden": "hasGarden",
    "has_parking": "hasParking",
    "letting_status": "lettingStatus",
    "reception_rooms": "receptionRooms",
    "key_features": "keyFeatures",
}

ATTRIBUTE_NAMES: Dict[str, str] = {v: k for k, v in JSON_FIELD_NAMES.items()}


def to_json_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    """Rename snake_case attribute keys to the camelCase JSON shape."""
    return {JSON_FIELD_NAMES.get(key, key): value for key, value in data.items()}


@dataclass
class PropertyRecord:
    """A single UK property listing scraped from a portal."""

    # Identity
    id: str
    address: str
    price: int

    # Core specifications (0 = unknown)
    bedrooms: int = 0
    bathrooms: int = 0
    property_type: str = "Property"
    description: str = ""

    # Media
    image_url: str = ""
    images: List[str] = field(default_factory=list)

    # Location
    postcode: str = ""

    # Provenance
    url: str = ""
    listed_date: str = field(default_factory=lambda: date.today().isoformat())
    source: str = "rightmove"

    # Market flags
    flags: List[str] = field(default_factory=list)
    price_reduction: Optional[int] = None

    # Derived (never scraped)
    estimated_yield: Optional[float] = None

    # Detail-page fields
    square_feet: Optional[int] = None
    tenure: Optional[str] = None
    council_tax_band: Optional[str] = None
    epc_rating: Optional[str] = None
    has_garden: Optional[bool] = None
    has_parking: Optional[bool] = None
    furnishing: Optional[str] = None
    letting_status: Optional[str] = None
    reception_rooms: Optional[int] = None
    key_features: List[str] = field(default_factory=list)

    def __post_init__(self):
        # Flags behave as an ordered set
        self.flags = list(dict.fromkeys(self.flags))
        self.images = list(self.images)[:MAX_IMAGES]

    def is_valid(self) -> bool:
        """A record is usable only with an address and a positive price."""
        return bool(self.address and self.address.strip()) and self.price > 0

    @property
    def dedup_key(self) -> str:
        """Normalized address used to collapse duplicate listings."""
        return self.address.strip().lower()

    def merged_with(self, details: Dict[str, Any]) -> "PropertyRecord":
        """
        Overlay a detail-page partial onto this record.

        Empty values in ``details`` (None, "", [], 0) never overwrite existing
        data; booleans always apply. Returns a new record; the receiver is left untouched.

        Args:
            details: Partial record keyed by attribute or JSON names

        Returns:
            New PropertyRecord with the details applied
        """
        valid_fields = {f.name for f in fields(self)}
        updates: Dict[str, Any] = {}
        for key, value in details.items():
            name = ATTRIBUTE_NAMES.get(key, key)
            if name not in valid_fields or name == "id":
                continue
            if not isinstance(value, bool) and value in (None, "", [], 0):
                continue
            updates[name] = value
        return replace(self, **updates)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase JSON shape consumed by API clients."""
        result: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, list):
                value = list(value)
            result[JSON_FIELD_NAMES.get(f.name, f.name)] = value
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PropertyRecord":
        """Create instance from a dict using either JSON or attribute names."""
        valid_fields = {f.name for f in fields(cls)}
        filtered: Dict[str, Any] = {}
        for key, value in data.items():
            name = ATTRIBUTE_NAMES.get(key, key)
            if name in valid_fields:
                filtered[name] = value
        return cls(**filtered)


@dataclass
class SearchParams:
    """Search filters accepted by the scrape pipeline."""

    location: str
    min_price: Optional[int] = None
    max_price: Optional[int] = None
    min_bedrooms: Optional[int] = None
    max_bedrooms: Optional[int] = None
    property_type: Optional[str] = None
    radius: Optional[float] = None
    max_pages: int = 3
    source: str = "rightmove"

    def cache_params(self) -> Dict[str, Any]:
        """
        Normalized parameter set for cache keys.

        Strings are trimmed and lower-cased and unset filters dropped, so
        logically identical searches produce identical dicts.
        """
        params: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if isinstance(value, str):
                value = value.strip().lower()
                if not value:
                    continue
            params[f.name] = value
        return params
