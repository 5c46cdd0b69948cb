"""Data models for property listings."""

from .constants import (
    DEFAULT_MONTHLY_RENT,
    FLAG_NEEDS_MODERNISATION,
    FLAG_REDUCED,
    MONTHLY_RENT_BY_BEDROOMS,
    PROPERTY_TYPES,
)
from .property import PropertyRecord, SearchParams, to_json_keys

__all__ = [
    "PropertyRecord",
    "SearchParams",
    "to_json_keys",
    "MONTHLY_RENT_BY_BEDROOMS",
    "DEFAULT_MONTHLY_RENT",
    "PROPERTY_TYPES",
    "FLAG_REDUCED",
    "FLAG_NEEDS_MODERNISATION",
]
