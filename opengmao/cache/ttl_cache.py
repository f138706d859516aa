"""
Process-local TTL cache for dependency chains.

Entries expire five minutes after they are stored. Expiry is only checked on
read; there is no background eviction and no locking.
"""

from typing import Any, Optional
import time

CACHE_TTL_SECONDS = 5 * 60

_cache: dict = {}


def get_cached(key: str) -> Optional[Any]:
    """
    Return the cached value, or None when missing or expired.

    An expired entry is removed as a side effect.
    """
    entry = _cache.get(key)
    if entry is None:
        return None
    value, stored_at = entry
    if time.time() - stored_at > CACHE_TTL_SECONDS:
        del _cache[key]
        return None
    return value


def set_cached(key: str, value: Any) -> None:
    _cache[key] = (value, time.time())


def clear_cache() -> None:
    _cache.clear()


def get_cache_key(equipment_id: str, max_depth: int) -> str:
    """Key of a dependency chain, e.g. `dep_chain_<id>_d3`."""
    return f"dep_chain_{equipment_id}_d{max_depth}"


def get_cache_stats() -> dict:
    return {"size": len(_cache), "keys": list(_cache.keys())}
