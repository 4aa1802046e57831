"""Component wiring and the HTTP service entry point.

Component wiring order (in build_components):
1. JsonHttpClient (shared aiohttp session for REST providers)
2. CoinGeckoClient (also supplies the bridge-asset spot quote)
3. Providers, instantiated from ProviderSettings.order
4. Cache store (memory, or SQLite via CacheDatabase) and PriceCache
5. RateLimiter (the single process-wide instance)
6. PriceOrchestrator

Both outer surfaces (the CSV CLI and the FastAPI service) build their
components here, so they share identical resolution semantics.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from pricefill.cache.database import CacheDatabase
from pricefill.cache.price_cache import PriceCache
from pricefill.cache.store import MemoryCacheStore, SqliteCacheStore
from pricefill.config import AppSettings
from pricefill.logging import get_logger, setup_logging
from pricefill.orchestrator import PriceOrchestrator
from pricefill.providers.base import PriceProvider
from pricefill.providers.coingecko import (
    CoinGeckoClient,
    CoinGeckoHistoryProvider,
    CoinGeckoTickerProvider,
)
from pricefill.providers.coinpaprika import CoinPaprikaProvider
from pricefill.providers.http import JsonHttpClient
from pricefill.providers.mexc import MexcCandleProvider
from pricefill.throttle import RateLimiter

ProviderFactory = Callable[[AppSettings, JsonHttpClient, CoinGeckoClient], PriceProvider]


def _mexc(settings: AppSettings, http: JsonHttpClient, coingecko: CoinGeckoClient) -> PriceProvider:
    async def bridge_quote():
        return await coingecko.simple_price("bitcoin")

    return MexcCandleProvider(settings.providers, bridge_quote=bridge_quote)


PROVIDER_FACTORIES: dict[str, ProviderFactory] = {
    "mexc": _mexc,
    "coingecko_tickers": lambda settings, http, cg: CoinGeckoTickerProvider(cg),
    "coingecko_history": lambda settings, http, cg: CoinGeckoHistoryProvider(cg),
    "coinpaprika": lambda settings, http, cg: CoinPaprikaProvider(
        http, settings.providers.coinpaprika_base_url
    ),
}


def build_providers(
    settings: AppSettings, http: JsonHttpClient, coingecko: CoinGeckoClient
) -> list[PriceProvider]:
    """Instantiate providers in the configured priority order.

    Raises:
        ValueError: if the order names an unknown provider.
    """
    providers = []
    for name in settings.providers.order:
        factory = PROVIDER_FACTORIES.get(name)
        if factory is None:
            raise ValueError(
                f"Unknown provider {name!r}; expected one of {sorted(PROVIDER_FACTORIES)}"
            )
        providers.append(factory(settings, http, coingecko))
    return providers


async def build_components(settings: AppSettings) -> dict[str, Any]:
    """Build the resolver's dependency graph from settings.

    The caller owns the returned components and must pass them to
    close_components() on shutdown.
    """
    logger = get_logger("pricefill.main")

    http = JsonHttpClient(
        timeout=settings.providers.request_timeout,
        backoff_seconds=settings.rate_limit.backoff_seconds,
        max_retries=settings.rate_limit.http_max_retries,
    )
    coingecko = CoinGeckoClient(
        http,
        settings.providers.coingecko_base_url,
        api_key=settings.providers.coingecko_api_key.get_secret_value(),
    )
    providers = build_providers(settings, http, coingecko)

    database: CacheDatabase | None = None
    if settings.cache.backend == "sqlite":
        database = CacheDatabase(settings.cache.db_path)
        await database.connect()
        store: Any = SqliteCacheStore(database)
    else:
        store = MemoryCacheStore()

    cache = PriceCache(
        store,
        positive_ttl_seconds=settings.cache.positive_ttl_seconds,
        negative_ttl_seconds=settings.cache.negative_ttl_seconds,
        sweep_interval_seconds=settings.cache.sweep_interval_seconds,
    )
    if database is not None:
        removed = await cache.purge_expired()
        logger.info("cache_db_swept", db_path=database.path, removed=removed)
    rate_limiter = RateLimiter(settings.rate_limit.min_interval_seconds)
    orchestrator = PriceOrchestrator(providers, cache, rate_limiter, settings.rate_limit)

    logger.info(
        "components_built",
        providers=[p.name for p in providers],
        cache_backend=settings.cache.backend,
    )

    return {
        "http": http,
        "providers": providers,
        "database": database,
        "cache": cache,
        "rate_limiter": rate_limiter,
        "orchestrator": orchestrator,
    }


async def close_components(components: dict[str, Any]) -> None:
    """Release network sessions and the cache database."""
    await components["orchestrator"].close()
    await components["http"].close()
    if components.get("database") is not None:
        await components["database"].close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build components on startup and release them on shutdown."""
    logger = get_logger("pricefill.main")
    settings: AppSettings = app.state.settings

    components = await build_components(settings)
    app.state.orchestrator = components["orchestrator"]
    logger.info("api_started", host=settings.api.host, port=settings.api.port)

    try:
        yield
    finally:
        await close_components(components)
        logger.info("api_stopped")


async def run() -> None:
    """Run the HTTP price service under uvicorn."""
    from pricefill.api.app import create_app

    settings = AppSettings()
    setup_logging(settings.log_level, settings.log_format or "json")

    app = create_app(lifespan=lifespan)
    app.state.settings = settings

    config = uvicorn.Config(
        app,
        host=settings.api.host,
        port=settings.api.port,
        log_level="warning",  # Suppress uvicorn access logs
    )
    server = uvicorn.Server(config)
    await server.serve()


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
