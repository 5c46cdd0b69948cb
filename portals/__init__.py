"""Portal adapter factory and exports."""

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from portals.base import PortalAdapter

logger = logging.getLogger(__name__)

SUPPORTED_PORTALS = ("rightmove", "zoopla", "onthemarket")

# Listing host -> portal name
PORTAL_DOMAINS: Dict[str, str] = {
    "rightmove.co.uk": "rightmove",
    "zoopla.co.uk": "zoopla",
    "onthemarket.com": "onthemarket",
}


def get_adapter(source: str, config: Optional[Dict[str, Any]] = None) -> PortalAdapter:
    """
    Factory function to get appropriate portal adapter.

    Args:
        source: Portal name ("rightmove", "zoopla" or "onthemarket")
        config: Scraper configuration (optional)

    Returns:
        Portal adapter instance

    Raises:
        ValueError: If portal is not supported

    Example:
        >>> adapter = get_adapter("zoopla")
        >>> print(adapter.get_portal_name())
        "zoopla"
    """
    portal = (source or "rightmove").strip().lower()

    if portal == "rightmove":
        from portals.rightmove.adapter import RightmoveAdapter

        return RightmoveAdapter(config)

    elif portal == "zoopla":
        from portals.zoopla.adapter import ZooplaAdapter

        return ZooplaAdapter(config)

    elif portal == "onthemarket":
        from portals.onthemarket.adapter import OnTheMarketAdapter

        return OnTheMarketAdapter(config)

    else:
        raise ValueError(
            f"Unsupported portal: {source}. "
            f"Supported portals: {', '.join(SUPPORTED_PORTALS)}"
        )


def get_adapter_for_url(url: str, config: Optional[Dict[str, Any]] = None) -> PortalAdapter:
    """
    Pick the adapter whose portal hosts a listing URL.

    Raises:
        ValueError: If the URL is not on a supported portal
    """
    host = urlparse(url or "").netloc.lower()
    for domain, portal in PORTAL_DOMAINS.items():
        if domain in host:
            return get_adapter(portal, config)
    raise ValueError(f"Unsupported listing URL: {url}")


__all__ = ["get_adapter", "get_adapter_for_url", "PortalAdapter", "SUPPORTED_PORTALS", "PORTAL_DOMAINS"]
