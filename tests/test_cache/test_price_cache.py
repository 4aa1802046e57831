"""Tests for PriceCache over the in-memory store.

Verifies:
- Positive and negative entries with separate TTLs
- Key scheme: token, local stamp, timezone label and target
- Corrupt and expired entries are treated as misses and evicted
- Writes sweep expired entries at most once per sweep interval
"""

import calendar
from decimal import Decimal

import pytest

from pricefill.cache.price_cache import (
    NO_DATA_SENTINEL,
    CacheStatus,
    PriceCache,
    make_cache_key,
)
from pricefill.models import PriceQuery, PriceTarget

XMR_INSTANT_MS = calendar.timegm((2025, 12, 10, 4, 46, 2)) * 1000


class TestCacheKey:
    def test_uses_local_stamp_and_labels(self) -> None:
        query = PriceQuery("XMR", XMR_INSTANT_MS, PriceTarget.HIGH, "cst")
        assert make_cache_key(query) == "price_xmr_20251209224602_CST_high"

    def test_high_and_low_never_collide(self) -> None:
        high = PriceQuery("xmr", XMR_INSTANT_MS, PriceTarget.HIGH, "CST")
        low = PriceQuery("xmr", XMR_INSTANT_MS, PriceTarget.LOW, "CST")
        assert make_cache_key(high) != make_cache_key(low)

    def test_same_instant_different_labels_are_distinct(self) -> None:
        utc = PriceQuery("xmr", XMR_INSTANT_MS, PriceTarget.HIGH, "UTC")
        cst = PriceQuery("xmr", XMR_INSTANT_MS, PriceTarget.HIGH, "CST")
        assert make_cache_key(utc) == "price_xmr_20251210044602_UTC_high"
        assert make_cache_key(utc) != make_cache_key(cst)


class TestPriceCache:
    @pytest.mark.asyncio
    async def test_miss_on_empty(self, cache: PriceCache) -> None:
        lookup = await cache.get("price_xmr_x_UTC_high")
        assert lookup.status is CacheStatus.MISS

    @pytest.mark.asyncio
    async def test_positive_hit(self, cache: PriceCache) -> None:
        await cache.put_price("k", Decimal("191.20"))

        lookup = await cache.get("k")

        assert lookup.status is CacheStatus.HIT
        assert lookup.price == Decimal("191.20")

    @pytest.mark.asyncio
    async def test_negative_hit(self, cache: PriceCache, store) -> None:
        await cache.put_no_data("k")

        lookup = await cache.get("k")

        assert lookup.status is CacheStatus.NEGATIVE
        assert lookup.price is None
        assert (await store.get("k"))[0] == NO_DATA_SENTINEL

    @pytest.mark.asyncio
    async def test_positive_entry_expires(self, cache: PriceCache, clock) -> None:
        await cache.put_price("k", Decimal("1.5"))

        clock.advance(6 * 3600 - 1)
        assert (await cache.get("k")).status is CacheStatus.HIT

        clock.advance(2)
        assert (await cache.get("k")).status is CacheStatus.MISS

    @pytest.mark.asyncio
    async def test_negative_ttl_shorter_than_positive(self, cache: PriceCache, clock) -> None:
        await cache.put_price("found", Decimal("2"))
        await cache.put_no_data("absent")

        clock.advance(601)

        assert (await cache.get("found")).status is CacheStatus.HIT
        assert (await cache.get("absent")).status is CacheStatus.MISS

    @pytest.mark.asyncio
    async def test_explicit_ttl(self, cache: PriceCache, clock) -> None:
        await cache.put("k", Decimal("3"), 10)

        clock.advance(11)

        assert (await cache.get("k")).status is CacheStatus.MISS

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["not-a-number", "", "-5", "0", "NaN", "Infinity"])
    async def test_corrupt_entry_is_evicted(self, cache: PriceCache, store, clock, raw: str) -> None:
        await store.set("k", raw, clock() + 100)

        lookup = await cache.get("k")

        assert lookup.status is CacheStatus.MISS
        assert await store.get("k") is None
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_overwrite_negative_with_price(self, cache: PriceCache) -> None:
        await cache.put_no_data("k")
        await cache.put_price("k", Decimal("4"))

        lookup = await cache.get("k")

        assert lookup.status is CacheStatus.HIT
        assert lookup.price == Decimal("4")


class TestExpiryEviction:
    @pytest.mark.asyncio
    async def test_expired_entry_is_evicted_on_read(self, cache: PriceCache, store, clock) -> None:
        await cache.put_price("found", Decimal("2"))
        await cache.put_no_data("absent")

        clock.advance(6 * 3600 + 1)

        assert (await cache.get("found")).status is CacheStatus.MISS
        assert (await cache.get("absent")).status is CacheStatus.MISS
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_unread_keys_are_swept_by_later_writes(self, cache: PriceCache, store, clock) -> None:
        for i in range(50):
            await cache.put_no_data(f"absent_{i}")
        assert len(store) == 50

        clock.advance(601)
        await cache.put_price("fresh", Decimal("1"))

        assert len(store) == 1
        assert (await cache.get("fresh")).status is CacheStatus.HIT

    @pytest.mark.asyncio
    async def test_sweep_runs_at_most_once_per_interval(self, store, clock) -> None:
        cache = PriceCache(store, sweep_interval_seconds=600, clock=clock)
        await cache.put_price("first", Decimal("1"))
        await store.set("stale", "5", clock() - 1)

        clock.advance(599)
        await cache.put_price("second", Decimal("2"))
        assert await store.get("stale") is not None

        clock.advance(1)
        await cache.put_price("third", Decimal("3"))
        assert await store.get("stale") is None
        assert len(store) == 3

    @pytest.mark.asyncio
    async def test_purge_expired_reports_count(self, cache: PriceCache, store, clock) -> None:
        await store.set("old_a", "1", clock() - 10)
        await store.set("old_b", "2", clock())
        await store.set("live", "3", clock() + 10)

        assert await cache.purge_expired() == 2
        assert await store.get("live") == ("3", clock() + 10)
