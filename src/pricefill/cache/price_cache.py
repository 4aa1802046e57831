"""TTL price cache with negative caching.

Positive results live for hours; confirmed absences ("every provider came up
empty") live for minutes so a transient provider outage is retried sooner
than data that genuinely does not exist.

Keys combine token, the local calendar stamp, the timezone label and the
target, so HIGH and LOW lookups for the same instant never collide.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum

from pricefill.cache.store import CacheStore
from pricefill.logging import get_logger
from pricefill.models import PriceQuery
from pricefill.normalizer import cache_stamp, localize

logger = get_logger(__name__)

NO_DATA_SENTINEL = "__no_data__"


class CacheStatus(str, Enum):
    HIT = "hit"
    NEGATIVE = "negative"
    MISS = "miss"


@dataclass(frozen=True)
class CacheLookup:
    """Result of a cache read."""

    status: CacheStatus
    price: Decimal | None = None


MISS = CacheLookup(CacheStatus.MISS)
NEGATIVE_HIT = CacheLookup(CacheStatus.NEGATIVE)


def make_cache_key(query: PriceQuery) -> str:
    """Stable key: price_{token}_{YYYYMMDDHHMMSS local}_{TZ}_{target}."""
    stamp = cache_stamp(localize(query.instant_ms, query.timezone))
    return f"price_{query.token}_{stamp}_{query.timezone}_{query.target.value}"


class PriceCache:
    """Memoizes resolved prices and confirmed absences with separate TTLs.

    Args:
        store: Backend holding raw (value, expires_at) pairs.
        positive_ttl_seconds: Lifetime of a resolved price.
        negative_ttl_seconds: Lifetime of a no-data marker.
        sweep_interval_seconds: Minimum spacing between expiry sweeps, which
            run on write.
        clock: Epoch-seconds source (injectable for tests).
    """

    def __init__(
        self,
        store: CacheStore,
        positive_ttl_seconds: float = 6 * 3600,
        negative_ttl_seconds: float = 600,
        sweep_interval_seconds: float = 600,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._positive_ttl = positive_ttl_seconds
        self._negative_ttl = negative_ttl_seconds
        self._sweep_interval = sweep_interval_seconds
        self._clock = clock
        self._last_sweep: float | None = None

    async def get(self, key: str) -> CacheLookup:
        """Return HIT with a price, NEGATIVE, or MISS.

        Expired and un-parseable entries are misses and are evicted.
        """
        entry = await self._store.get(key)
        if entry is None:
            return MISS

        value, expires_at = entry
        if expires_at <= self._clock():
            await self._store.delete(key)
            return MISS

        if value == NO_DATA_SENTINEL:
            logger.debug("cache_negative_hit", key=key)
            return NEGATIVE_HIT

        price = _decode_price(value)
        if price is None:
            logger.warning("cache_entry_corrupt", key=key, value=value)
            await self._store.delete(key)
            return MISS

        logger.debug("cache_hit", key=key, price=str(price))
        return CacheLookup(CacheStatus.HIT, price)

    async def put(self, key: str, value: Decimal | None, ttl_seconds: float) -> None:
        """Store a price (or None for a negative marker) with an explicit TTL."""
        text = NO_DATA_SENTINEL if value is None else str(value)
        now = self._clock()
        await self._store.set(key, text, now + ttl_seconds)
        if self._last_sweep is None or now - self._last_sweep >= self._sweep_interval:
            await self.purge_expired()

    async def purge_expired(self) -> int:
        """Drop every expired entry from the store. Returns the number removed."""
        now = self._clock()
        self._last_sweep = now
        removed = await self._store.purge_expired(now)
        if removed:
            logger.debug("cache_expired_purged", removed=removed)
        return removed

    async def put_price(self, key: str, price: Decimal) -> None:
        await self.put(key, price, self._positive_ttl)

    async def put_no_data(self, key: str) -> None:
        await self.put(key, None, self._negative_ttl)


def _decode_price(value: str) -> Decimal | None:
    try:
        price = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        return None
    if not price.is_finite() or price <= 0:
        return None
    return price
