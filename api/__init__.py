"""HTTP boundary for the property scrape pipeline."""

from .app import create_app

__all__ = ["create_app"]
