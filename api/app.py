"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from analysis.analyzer import InvestmentAnalyzer
from api.routers.properties import router as properties_router
from crawler.cache import TTLCache
from crawler.rate_limiter import RateLimiter
from crawler.scraper import PropertyScraper
from crawler.session import BrowserSession

logger = logging.getLogger(__name__)


def create_app(
    scraper: PropertyScraper,
    cache: TTLCache,
    rate_limiter: RateLimiter,
    session: BrowserSession,
    analyzer: InvestmentAnalyzer,
) -> FastAPI:
    """
    Build the HTTP application around already constructed components.

    Components are exposed to handlers through ``app.state``. Startup begins
    the cache sweeper; shutdown stops it and closes the shared browser.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cache.start_sweeper()
        logger.info("🚀 Property API started")
        try:
            yield
        finally:
            await cache.stop_sweeper()
            await session.close_session()
            logger.info("Property API stopped")

    app = FastAPI(title="Property Scout API", version="1.0.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.scraper = scraper
    app.state.cache = cache
    app.state.rate_limiter = rate_limiter
    app.state.session = session
    app.state.analyzer = analyzer

    app.include_router(properties_router)

    @app.get("/health")
    async def health(request: Request):
        state = request.app.state
        return {
            "status": "healthy",
            "browserOpen": state.session.is_open,
            "rateLimitStatus": state.rate_limiter.status(),
            "cache": state.cache.stats(),
        }

    return app
