"""Utility modules for extraction and address parsing."""

from .address_parser import UKAddressParser
from .extractors import PropertyDetailExtractor, first_match

__all__ = [
    "PropertyDetailExtractor",
    "UKAddressParser",
    "first_match",
]
