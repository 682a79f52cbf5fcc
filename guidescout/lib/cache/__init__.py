"""Disk-backed, stale-tolerant cache for registry probes."""

from guidescout.lib.cache.fetch import (
    CachedFetcher,
    cache_key,
    ttl_from_cache_control,
    url_from_cache_key,
)
from guidescout.lib.cache.models import CacheEntry, CachedResponse

__all__ = [
    "CachedFetcher",
    "cache_key",
    "ttl_from_cache_control",
    "url_from_cache_key",
    "CacheEntry",
    "CachedResponse",
]
