"""Response Caches — in-process TTL caches for Google Maps results.

Invariants:
    - Keys are `prefix:md5(json(params, sorted keys))`: identical parameters share one entry
    - Each cache holds at most MAX_ENTRIES items; expired items are never served
    - Cached values are stored without the `cached` flag; callers add it on read

Design Decisions:
    - cachetools.TTLCache over an external store: single-worker deployment, results are cheap
      to recompute and stale-after-restart is acceptable
    - One cache per result family so TTLs can differ (time-based midpoint is costlier)
"""

import hashlib
import json
from typing import Any

from cachetools import TTLCache

MAX_ENTRIES = 500
FIVE_MINUTES = 5 * 60
TEN_MINUTES = 10 * 60


def cache_key(prefix: str, params: dict[str, Any]) -> str:
    normalized = json.dumps(params, sort_keys=True, separators=(",", ":"), default=str)
    digest = hashlib.md5(normalized.encode("utf-8")).hexdigest()
    return f"{prefix}:{digest}"


def _cache(ttl: int) -> TTLCache:
    return TTLCache(maxsize=MAX_ENTRIES, ttl=ttl)


geocode_cache = _cache(FIVE_MINUTES)
reverse_cache = _cache(FIVE_MINUTES)
nearby_cache = _cache(FIVE_MINUTES)
directions_cache = _cache(FIVE_MINUTES)
midpoint_cache = _cache(FIVE_MINUTES)
routes_cache = _cache(FIVE_MINUTES)
time_midpoint_cache = _cache(TEN_MINUTES)

ALL_CACHES = (
    geocode_cache, reverse_cache, nearby_cache, directions_cache,
    midpoint_cache, routes_cache, time_midpoint_cache,
)


def clear_all() -> None:
    """Drop every cached entry (tests, manual invalidation)."""
    for cache in ALL_CACHES:
        cache.clear()
