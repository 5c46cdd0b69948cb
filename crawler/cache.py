"""In-process TTL cache for search result lists and individual listings."""

import asyncio
import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from models.property import PropertyRecord

logger = logging.getLogger(__name__)

SEARCH_KEY_PREFIX = "properties_"
PROPERTY_KEY_PREFIX = "property_"


class TTLCache:
    """
    Key/value store where every entry expires ``ttl_seconds`` after its last set.

    Expiry is enforced lazily on read; a background sweeper started with
    start_sweeper() additionally evicts expired entries every check period so
    memory does not grow with dead keys.
    """

    def __init__(
        self,
        ttl_seconds: float = 1800,
        check_period_seconds: float = 600,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.check_period_seconds = check_period_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[Any, float]] = {}
        self._sweeper: Optional[asyncio.Task] = None
        self.hits = 0
        self.misses = 0

    def _expired(self, inserted_at: float, now: float) -> bool:
        return now >= inserted_at + self.ttl_seconds

    def get(self, key: str) -> Optional[Any]:
        """Return the live value for a key, or None."""
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None

        value, inserted_at = entry
        if self._expired(inserted_at, self._clock()):
            del self._entries[key]
            self.misses += 1
            return None

        self.hits += 1
        return value

    def set(self, key: str, value: Any) -> bool:
        """Store a value, restarting its TTL."""
        self._entries[key] = (value, self._clock())
        return True

    def has(self, key: str) -> bool:
        """Whether a live entry exists, without touching hit/miss counters."""
        entry = self._entries.get(key)
        return entry is not None and not self._expired(entry[1], self._clock())

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def keys(self) -> List[str]:
        """Keys of live entries."""
        now = self._clock()
        return [k for k, (_, t) in self._entries.items() if not self._expired(t, now)]

    def flush_all(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0
        logger.info("🗑️  Cache flushed")

    def stats(self) -> Dict[str, int]:
        return {"hits": self.hits, "misses": self.misses, "keys": len(self.keys())}

    def sweep(self) -> int:
        """Evict every expired entry and return how many were removed."""
        now = self._clock()
        expired = [k for k, (_, t) in self._entries.items() if self._expired(t, now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Swept {len(expired)} expired cache entries")
        return len(expired)

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.check_period_seconds)
            self.sweep()

    def start_sweeper(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.get_running_loop().create_task(self._sweep_loop())

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None


def generate_cache_key(params: Dict[str, Any]) -> str:
    """
    Canonical cache key for a search.

    Keys are serialized sorted so logically identical parameter sets always
    map to the same entry regardless of insertion order.
    """
    return SEARCH_KEY_PREFIX + json.dumps(params, sort_keys=True, separators=(",", ":"), default=str)


def property_cache_key(property_id: str) -> str:
    return f"{PROPERTY_KEY_PREFIX}{property_id}"


def cache_search_results(cache: TTLCache, key: str, records: List[PropertyRecord]) -> None:
    """Store a search result list and every record under its own key."""
    cache.set(key, list(records))
    logger.info(f"💾 Caching {len(records)} properties individually...")
    for record in records:
        cache.set(property_cache_key(record.id), record)


def promote_missing(cache: TTLCache, records: List[PropertyRecord]) -> Dict[str, int]:
    """
    Individually cache records that are not cached under their own key yet.

    Returns:
        Counts of records already cached and newly cached
    """
    already, newly = 0, 0
    for record in records:
        key = property_cache_key(record.id)
        if cache.has(key):
            already += 1
        else:
            cache.set(key, record)
            newly += 1
    logger.info(f"Already cached: {already}, Newly cached: {newly}")
    return {"alreadyCached": already, "newlyCached": newly}


def get_all_cached_searches(cache: TTLCache) -> Dict[str, List[PropertyRecord]]:
    """Live search result lists keyed by their cache key."""
    searches: Dict[str, List[PropertyRecord]] = {}
    for key in cache.keys():
        if not key.startswith(SEARCH_KEY_PREFIX):
            continue
        value = cache.get(key)
        if isinstance(value, list):
            searches[key] = value
    return searches


def find_cached_property(cache: TTLCache, property_id: str) -> Optional[PropertyRecord]:
    """
    Look a listing up by id across everything cached.

    Tries the record's own key, then scans cached search lists by id, then by
    partial address match (card ids are positional and may differ between
    searches). A record found in a list is promoted into its own key.
    """
    record = cache.get(property_cache_key(property_id))
    if record is not None:
        return record

    searches = get_all_cached_searches(cache)

    for records in searches.values():
        for candidate in records:
            if candidate.id == property_id:
                logger.info(f"Found {property_id} in cached search list")
                cache.set(property_cache_key(property_id), candidate)
                return candidate

    needle = property_id.strip().lower()
    if needle:
        for records in searches.values():
            for candidate in records:
                address = candidate.dedup_key
                if address and (needle in address or address in needle):
                    logger.info(f"Matched {property_id} by address: {candidate.address}")
                    cache.set(property_cache_key(property_id), candidate)
                    return candidate

    logger.debug(f"Property {property_id} not found in cache")
    return None
