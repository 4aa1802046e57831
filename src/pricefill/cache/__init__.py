"""Price cache layer -- TTL memoization with negative caching and pluggable stores."""

from pricefill.cache.database import CacheDatabase
from pricefill.cache.price_cache import (
    CacheLookup,
    CacheStatus,
    PriceCache,
    make_cache_key,
)
from pricefill.cache.store import CacheStore, MemoryCacheStore, SqliteCacheStore

__all__ = [
    "CacheDatabase",
    "CacheLookup",
    "CacheStatus",
    "CacheStore",
    "MemoryCacheStore",
    "PriceCache",
    "SqliteCacheStore",
    "make_cache_key",
]
