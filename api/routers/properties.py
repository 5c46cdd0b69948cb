"""
Property endpoints: search, cached lookup, listing details and cache admin.
"""
import logging
from dataclasses import asdict
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from crawler.cache import (
    cache_search_results,
    find_cached_property,
    generate_cache_key,
    get_all_cached_searches,
    promote_missing,
    property_cache_key,
)
from models.constants import SUPPORTED_DOMAINS
from models.property import SearchParams, to_json_keys

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["properties"])


class ScrapePropertyRequest(BaseModel):
    url: Optional[str] = None


def error_response(status_code: int, message: str, **extra: Any) -> JSONResponse:
    content: Dict[str, Any] = {"success": False, "error": message}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


# Fixed paths are registered before /properties/{property_id} so they are not
# captured as ids.

@router.get("/properties/search")
async def search_properties(
    request: Request,
    location: str = "Manchester",
    min_price: Optional[int] = Query(None, alias="minPrice"),
    max_price: Optional[int] = Query(None, alias="maxPrice"),
    min_bedrooms: Optional[int] = Query(None, alias="bedrooms"),
    max_bedrooms: Optional[int] = Query(None, alias="maxBedrooms"),
    property_type: Optional[str] = Query(None, alias="propertyType"),
    radius: Optional[float] = None,
    source: Optional[str] = None,
    max_pages: Optional[int] = Query(None, alias="maxPages"),
):
    """Search a portal, serving from cache when a non-empty result is stored"""
    state = request.app.state
    scraper, cache = state.scraper, state.cache

    try:
        params = SearchParams(
            location=location,
            min_price=min_price,
            max_price=max_price,
            min_bedrooms=min_bedrooms,
            max_bedrooms=max_bedrooms,
            property_type=property_type,
            radius=radius,
            max_pages=max_pages or scraper.default_max_pages,
            source=source or scraper.default_source,
        )

        cache_key = generate_cache_key(params.cache_params())
        logger.info(f"🔑 Cache key: {cache_key[:80]}...")
        cached = cache.get(cache_key)

        if cached:
            logger.info(f"📦 Returning {len(cached)} cached results for {params.location}")
            promote_missing(cache, cached)
            return {
                "success": True,
                "properties": [p.to_dict() for p in cached],
                "cached": True,
                "source": params.source,
            }
        if cached is not None:
            logger.info("⚠️ Cache exists but empty - will re-scrape")

        properties = await scraper.scrape_search_results(**asdict(params))
        cache_search_results(cache, cache_key, properties)

        return {
            "success": True,
            "properties": [p.to_dict() for p in properties],
            "cached": False,
            "source": params.source,
            "count": len(properties),
            "rateLimitStatus": state.rate_limiter.status(),
        }

    except Exception as e:
        logger.error(f"Error in search API: {e}")
        return error_response(500, str(e) or "Failed to search properties", properties=[])


@router.get("/properties/debug")
async def debug_cache(request: Request):
    """Summary of cached searches with image samples"""
    try:
        searches = get_all_cached_searches(request.app.state.cache)

        samples = []
        for properties in searches.values():
            for p in properties[:5]:
                samples.append({
                    "id": p.id,
                    "address": p.address,
                    "imageUrl": p.image_url,
                    "hasImage": bool(p.image_url),
                })
            if len(samples) >= 10:
                break

        return {
            "success": True,
            "totalCacheKeys": len(searches),
            "totalProperties": sum(len(p) for p in searches.values()),
            "samples": samples,
        }
    except Exception as e:
        logger.error(f"Error in debug API: {e}")
        return error_response(500, str(e))


@router.get("/properties/clear-cache")
async def cache_stats(request: Request):
    return {"success": True, "stats": request.app.state.cache.stats()}


@router.post("/properties/clear-cache")
async def clear_cache(request: Request):
    request.app.state.cache.flush_all()
    return {"success": True, "message": "Cache cleared successfully"}


@router.get("/properties/{property_id}")
async def get_property(request: Request, property_id: str):
    """Look up a previously searched property by id or address fragment"""
    try:
        record = find_cached_property(request.app.state.cache, property_id)
    except Exception as e:
        logger.error(f"Error fetching property: {e}")
        return error_response(500, str(e) or "Failed to fetch property")

    if record is None:
        logger.warning(f"Property not found for ID: {property_id}")
        return error_response(404, "Property not found in cache. Try searching again.")

    return {"success": True, "property": record.to_dict()}


@router.get("/properties/{property_id}/details")
async def get_property_details(request: Request, property_id: str, url: Optional[str] = None):
    """
    Scrape a listing page and overlay the result onto the cached record.

    The merged record gets its yield recomputed and replaces the cached copy.
    """
    if not url:
        return error_response(400, "Property URL is required")

    state = request.app.state
    logger.info(f"📊 Fetching detailed info for property ID: {property_id}")

    try:
        details = await state.scraper.scrape_listing_details(url)

        merged = find_cached_property(state.cache, property_id)
        if merged is not None and details:
            merged = state.analyzer.analyze_property(merged.merged_with(details))
            state.cache.set(property_cache_key(property_id), merged)

        return {
            "success": True,
            "details": to_json_keys(details),
            "property": merged.to_dict() if merged is not None else None,
        }
    except Exception as e:
        logger.error(f"Error fetching property details: {e}")
        return error_response(500, str(e) or "Failed to fetch property details")


@router.post("/scrape-property")
async def scrape_property(request: Request, body: ScrapePropertyRequest):
    """Scrape an arbitrary supported listing URL"""
    if not body.url:
        return error_response(400, "URL is required")

    host = urlparse(body.url).netloc.lower()
    if not any(domain in host for domain in SUPPORTED_DOMAINS):
        return error_response(400, "Unsupported URL. Please use Zoopla, Rightmove, or OnTheMarket links.")

    state = request.app.state
    logger.info(f"Scraping property from URL: {body.url}")

    try:
        details = await state.scraper.scrape_listing_details(body.url)
    except ValueError as e:
        return error_response(400, str(e))
    except Exception as e:
        logger.error(f"Property scraping error: {e}")
        return error_response(500, "Failed to scrape property data. Please check the URL and try again.")

    if not details:
        return error_response(
            400, "Failed to scrape property data from the provided URL. Please check the URL and try again."
        )

    if details.get("price"):
        details["estimated_yield"] = state.analyzer.estimate_yield(
            details["price"], details.get("bedrooms", 0)
        )

    return {"success": True, "property": to_json_keys(details)}
