"""
In-memory caching utilities for API endpoints.

Derived responses (stats, counts) are cached with a TTL and dropped when the
site set is reloaded.
"""

import fnmatch
import logging
import time
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

# Format: {key: (value, expiry_timestamp)}
_memory_cache: Dict[str, Tuple[Any, float]] = {}
_MEMORY_CACHE_MAX_ENTRIES = 200


def _cleanup_memory_cache():
    """Remove expired entries, then the soonest-expiring ones over the limit."""
    global _memory_cache
    now = time.time()
    _memory_cache = {k: v for k, v in _memory_cache.items() if v[1] > now}

    if len(_memory_cache) > _MEMORY_CACHE_MAX_ENTRIES:
        sorted_items = sorted(_memory_cache.items(), key=lambda x: x[1][1])
        _memory_cache = dict(sorted_items[-_MEMORY_CACHE_MAX_ENTRIES:])


def cache_get(key: str) -> Optional[Any]:
    if key in _memory_cache:
        value, expiry = _memory_cache[key]
        if time.time() < expiry:
            logger.debug(f"Memory cache hit: {key}")
            return value
        del _memory_cache[key]
    return None


def cache_set(key: str, value: Any, ttl: int = 300) -> bool:
    _cleanup_memory_cache()
    _memory_cache[key] = (value, time.time() + ttl)
    logger.debug(f"Memory cache set: {key} (TTL: {ttl}s)")
    return True


def cache_delete_pattern(pattern: str) -> int:
    """Delete all keys matching a glob pattern."""
    keys_to_delete = [k for k in _memory_cache if fnmatch.fnmatch(k, pattern)]
    for key in keys_to_delete:
        del _memory_cache[key]
    if keys_to_delete:
        logger.info(f"Invalidated {len(keys_to_delete)} cache entries matching {pattern}")
    return len(keys_to_delete)


def cache_clear() -> None:
    _memory_cache.clear()
