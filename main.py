"""UK property search API: scrape, normalize and serve portal listings."""

import asyncio
import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI

from analysis.analyzer import InvestmentAnalyzer
from api.app import create_app
from crawler.cache import TTLCache
from crawler.rate_limiter import RateLimiter
from crawler.scraper import PropertyScraper
from crawler.session import BrowserSession

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Third-party chatter
for noisy in ("httpx", "httpcore", "asyncio", "playwright"):
    logging.getLogger(noisy).setLevel(logging.WARNING)

DEFAULT_CONFIG: Dict[str, Dict[str, Any]] = {
    "browser": {
        "headless": True,
        "navigation_timeout": 60,
    },
    "rate_limiting": {
        "max_requests_per_window": 8,
        "window_seconds": 60,
        "delay_between_requests": 3,
    },
    "cache": {
        "ttl_seconds": 1800,
        "check_period_seconds": 600,
    },
    "scraper": {
        "default_source": "rightmove",
        "max_pages": 3,
        "delay_page": 1.0,
        "api_timeout": 10,
    },
    "analysis": {},
    "server": {
        "host": "0.0.0.0",
        "port": 8000,
    },
}


async def load_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load configuration from config.json, filling gaps with defaults.

    Each section of the file is merged over the matching default section.
    A missing file falls back to the defaults entirely.
    """
    config_path = path or Path(__file__).parent / "config.json"
    config = copy.deepcopy(DEFAULT_CONFIG)

    if not config_path.exists():
        logger.warning(f"{config_path.name} not found, using built-in defaults")
        return config

    with open(config_path, "r", encoding="utf-8") as f:
        loaded = json.load(f)

    for section, values in loaded.items():
        if isinstance(values, dict) and isinstance(config.get(section), dict):
            config[section].update(values)
        else:
            config[section] = values

    return config


def build_app(config: Dict[str, Any]) -> FastAPI:
    """Wire the pipeline components together and wrap them in the HTTP app."""
    rate_config = config.get("rate_limiting", {})
    rate_limiter = RateLimiter(
        max_requests_per_window=int(rate_config.get("max_requests_per_window", 8)),
        window_seconds=float(rate_config.get("window_seconds", 60)),
        delay_between_requests=float(rate_config.get("delay_between_requests", 3)),
    )

    cache_config = config.get("cache", {})
    cache = TTLCache(
        ttl_seconds=float(cache_config.get("ttl_seconds", 1800)),
        check_period_seconds=float(cache_config.get("check_period_seconds", 600)),
    )

    session = BrowserSession(config.get("browser", {}))
    analyzer = InvestmentAnalyzer(config.get("analysis", {}))
    scraper = PropertyScraper(session, rate_limiter, analyzer, config.get("scraper", {}))

    return create_app(scraper, cache, rate_limiter, session, analyzer)


async def main():
    """Main entry point for the property API server."""
    try:
        config = await load_config()
        app = build_app(config)

        server_config = config.get("server", {})
        host = server_config.get("host", "0.0.0.0")
        port = int(server_config.get("port", 8000))
        logger.info(f"Starting property API on {host}:{port}")

        server = uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_level="info"))
        await server.serve()

    except json.JSONDecodeError as e:
        logger.error(f"Invalid config.json: {e}")
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        import traceback

        traceback.print_exc()


if __name__ == "__main__":
    asyncio.run(main())
