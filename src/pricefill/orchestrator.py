"""Fallback orchestrator -- top-level coordinator for historical price lookups.

Each resolution:
  1. NORMALIZE: local date + timezone -> UTC instant (bad/future input stops here)
  2. CACHE: any hit, positive or negative, returns without network access
  3. THROTTLE: acquire the shared rate limiter with bounded backoff
  4. WALK: providers in fixed priority order; first Success wins and is cached
  5. EXHAUST: every provider empty -> negative cache entry + NoDataError
  6. RELEASE: the limiter is released on every exit path of 3-5

Busy is not the same as absent: a RateLimitBusyError is never cached.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime
from decimal import Decimal

import structlog

from pricefill.cache.price_cache import CacheStatus, PriceCache, make_cache_key
from pricefill.config import RateLimitSettings
from pricefill.exceptions import (
    FutureInstantError,
    InvalidInputError,
    NoDataError,
    RateLimitBusyError,
)
from pricefill.logging import get_logger
from pricefill.models import (
    FailureKind,
    NoData,
    PriceQuery,
    PriceResult,
    PriceTarget,
    Success,
    TransientError,
)
from pricefill.normalizer import CalendarFields, normalize
from pricefill.providers.base import PriceProvider
from pricefill.throttle import RateLimiter, acquire_with_backoff

logger = get_logger(__name__)

CACHE_SOURCE = "cache"


class PriceOrchestrator:
    """Resolves a token's historical USD high/low through the provider chain.

    Args:
        providers: Adapters in priority order.
        cache: Shared price cache.
        rate_limiter: Shared process-wide rate limiter.
        settings: Lock wait and backoff parameters.
        clock: Epoch-seconds source used for the future-instant check.
        sleep: Coroutine used between lock acquisition attempts.
    """

    def __init__(
        self,
        providers: Sequence[PriceProvider],
        cache: PriceCache,
        rate_limiter: RateLimiter,
        settings: RateLimitSettings | None = None,
        *,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._providers = list(providers)
        self._cache = cache
        self._rate_limiter = rate_limiter
        self._settings = settings or RateLimitSettings()
        self._clock = clock
        self._sleep = sleep

    @property
    def providers(self) -> list[PriceProvider]:
        return list(self._providers)

    def build_query(
        self,
        token: str,
        date_input: str | datetime | CalendarFields,
        timezone: str | None = "UTC",
        target: str | PriceTarget = PriceTarget.HIGH,
    ) -> PriceQuery:
        """Validate and normalize raw inputs into a PriceQuery.

        Raises InvalidInputError or FutureInstantError without touching the
        cache or the network.
        """
        if not token or not token.strip():
            raise InvalidInputError("Token symbol is required")
        price_target = PriceTarget.parse(target)
        instant_ms = normalize(date_input, timezone, now_ms=int(self._clock() * 1000))
        return PriceQuery(
            token=token,
            instant_ms=instant_ms,
            target=price_target,
            timezone=timezone or "UTC",
        )

    async def resolve(
        self,
        token: str,
        date_input: str | datetime | CalendarFields,
        timezone: str | None = "UTC",
        target: str | PriceTarget = PriceTarget.HIGH,
    ) -> Decimal:
        """Return the price or raise a PriceFillError subclass."""
        query = self.build_query(token, date_input, timezone, target)
        outcome = await self.resolve_query(query)
        return outcome.price

    async def resolve_price(
        self,
        token: str,
        date_input: str | datetime | CalendarFields,
        timezone: str | None = "UTC",
        target: str | PriceTarget = PriceTarget.HIGH,
    ) -> PriceResult:
        """Resolve to a tagged PriceResult instead of raising.

        Only domain errors are converted; unexpected exceptions propagate.
        """
        try:
            query = self.build_query(token, date_input, timezone, target)
            outcome = await self.resolve_query(query)
        except InvalidInputError as e:
            return PriceResult.fail(FailureKind.INVALID_INPUT, str(e))
        except FutureInstantError as e:
            return PriceResult.fail(FailureKind.FUTURE_INSTANT, str(e))
        except RateLimitBusyError as e:
            return PriceResult.fail(FailureKind.RATE_LIMIT_BUSY, str(e))
        except NoDataError as e:
            return PriceResult.fail(FailureKind.NO_DATA, str(e))
        return PriceResult.success(outcome.price, outcome.source)

    async def resolve_query(self, query: PriceQuery) -> Success:
        """Run steps 2-6 for an already-normalized query.

        The instant is checked against the clock again, since a PriceQuery
        can be built without going through build_query.
        """
        now_ms = int(self._clock() * 1000)
        if query.instant_ms > now_ms:
            raise FutureInstantError(
                f"Requested instant {query.instant_ms} is after current time {now_ms}"
            )
        key = make_cache_key(query)
        with structlog.contextvars.bound_contextvars(
            token=query.token, target=query.target.value, instant_ms=query.instant_ms
        ):
            cached = await self._check_cache(key)
            if cached is not None:
                return cached

            await acquire_with_backoff(
                self._rate_limiter,
                self._settings.max_wait_seconds,
                self._settings.backoff_seconds,
                sleep=self._sleep,
            )
            try:
                # A concurrent query may have filled the key while we waited
                cached = await self._check_cache(key)
                if cached is not None:
                    return cached
                return await self._walk_providers(query, key)
            finally:
                self._rate_limiter.release()

    async def _check_cache(self, key: str) -> Success | None:
        lookup = await self._cache.get(key)
        if lookup.status is CacheStatus.NEGATIVE:
            logger.info("price_cache_negative_hit", key=key)
            raise NoDataError(f"No price available (cached) for {key}")
        if lookup.status is CacheStatus.HIT and lookup.price is not None:
            logger.info("price_cache_hit", key=key, price=str(lookup.price))
            return Success(lookup.price, source=CACHE_SOURCE)
        return None

    async def _walk_providers(self, query: PriceQuery, key: str) -> Success:
        for provider in self._providers:
            outcome = await provider.resolve(query.token, query.instant_ms, query.target)

            if isinstance(outcome, Success):
                logger.info(
                    "price_resolved",
                    provider=provider.name,
                    price=str(outcome.price),
                )
                await self._cache.put_price(key, outcome.price)
                return outcome

            if isinstance(outcome, TransientError):
                logger.warning(
                    "provider_transient_error",
                    provider=provider.name,
                    reason=outcome.reason,
                    retryable=outcome.retryable,
                )
            elif isinstance(outcome, NoData):
                logger.info("provider_no_data", provider=provider.name, reason=outcome.reason)
            else:
                raise TypeError(
                    f"Provider {provider.name} returned {type(outcome).__name__}, "
                    "expected a ProviderOutcome variant"
                )

        logger.warning("all_providers_exhausted", providers=len(self._providers))
        await self._cache.put_no_data(key)
        raise NoDataError(
            f"No provider returned a price for {query.token} at {query.instant_ms}"
        )

    async def close(self) -> None:
        """Close every provider's network resources."""
        for provider in self._providers:
            try:
                await provider.close()
            except Exception:
                logger.warning("provider_close_failed", provider=provider.name, exc_info=True)
