"""Shared test fixtures for the historical price resolver.

No test touches the network: providers are stubs or wrap mocked ccxt /
HTTP clients, and time is driven by FakeClock / RecordingSleep.
"""

import calendar

import pytest

from pricefill.cache.price_cache import PriceCache
from pricefill.cache.store import MemoryCacheStore
from pricefill.config import AppSettings, CacheSettings, ProviderSettings, RateLimitSettings
from pricefill.models import PriceTarget, ProviderOutcome
from pricefill.orchestrator import PriceOrchestrator
from pricefill.providers.base import PriceProvider
from pricefill.throttle import RateLimiter

# 2026-01-01T00:00:00Z -- "now" for every test using FakeClock
NOW_SECONDS = float(calendar.timegm((2026, 1, 1, 0, 0, 0)))


class FakeClock:
    """Deterministic epoch-seconds clock."""

    def __init__(self, start: float = NOW_SECONDS) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep replacement that records delays and advances a FakeClock."""

    def __init__(self, clock: FakeClock | None = None) -> None:
        self.calls: list[float] = []
        self._clock = clock

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)
        if self._clock is not None:
            self._clock.advance(delay)


class StubProvider(PriceProvider):
    """Provider returning a fixed outcome and recording every call."""

    def __init__(self, name: str, outcome: ProviderOutcome) -> None:
        self.name = name
        self.outcome = outcome
        self.calls: list[tuple[str, int, PriceTarget]] = []

    async def resolve(self, token: str, instant_ms: int, target: PriceTarget) -> ProviderOutcome:
        self.calls.append((token, instant_ms, target))
        return self.outcome


@pytest.fixture
def settings() -> AppSettings:
    """AppSettings with test defaults (memory cache, fast backoff)."""
    return AppSettings(
        log_level="DEBUG",
        providers=ProviderSettings(),
        rate_limit=RateLimitSettings(
            min_interval_seconds=1.0,
            max_wait_seconds=0.05,
            backoff_seconds=[5.0, 10.0, 20.0],
        ),
        cache=CacheSettings(backend="memory"),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep(clock: FakeClock) -> RecordingSleep:
    return RecordingSleep(clock)


@pytest.fixture
def store() -> MemoryCacheStore:
    return MemoryCacheStore()


@pytest.fixture
def cache(store: MemoryCacheStore, clock: FakeClock) -> PriceCache:
    return PriceCache(store, positive_ttl_seconds=6 * 3600, negative_ttl_seconds=600, clock=clock)


@pytest.fixture
def rate_limiter(clock: FakeClock, sleep: RecordingSleep) -> RateLimiter:
    return RateLimiter(1.0, clock=clock, sleep=sleep)


@pytest.fixture
def make_provider():
    """Factory for StubProvider instances."""
    return StubProvider


@pytest.fixture
def make_orchestrator(cache, rate_limiter, settings, clock, sleep):
    """Factory building a PriceOrchestrator over the shared test fixtures."""

    def _make(providers, **overrides) -> PriceOrchestrator:
        return PriceOrchestrator(
            providers,
            overrides.get("cache", cache),
            overrides.get("rate_limiter", rate_limiter),
            overrides.get("settings", settings.rate_limit),
            clock=clock,
            sleep=overrides.get("sleep", sleep),
        )

    return _make
