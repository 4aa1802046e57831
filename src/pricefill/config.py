"""Configuration system using pydantic-settings with environment variable loading."""

from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Fixed abbreviation -> UTC offset table. No DST computation: callers supply
# the abbreviation that was in effect for the date in question.
TIMEZONE_OFFSETS: dict[str, int] = {
    "UTC": 0,
    "GMT": 0,
    "EST": -5,
    "EDT": -4,
    "CST": -6,
    "CDT": -5,
    "MST": -7,
    "MDT": -6,
    "PST": -8,
    "PDT": -7,
}


class ProviderSettings(BaseSettings):
    """Market-data provider endpoints and candle lookup parameters."""

    model_config = SettingsConfigDict(env_prefix="PROVIDER_")

    # Priority order of the fallback chain; first usable price wins
    order: list[str] = ["mexc", "coingecko_tickers", "coingecko_history", "coinpaprika"]

    coingecko_base_url: str = "https://api.coingecko.com/api/v3"
    coinpaprika_base_url: str = "https://api.coinpaprika.com/v1"
    coingecko_api_key: SecretStr = SecretStr("")

    quote_asset: str = "USDT"
    bridge_asset: str = "BTC"
    fine_interval: str = "1m"
    coarse_interval: str = "1h"
    drift_tolerance_ms: int = 120_000  # 2 minutes
    skip_tokens: list[str] = ["grc"]  # never listed on MEXC
    request_timeout: float = 10.0


class RateLimitSettings(BaseSettings):
    """Outbound call pacing and lock acquisition backoff."""

    model_config = SettingsConfigDict(env_prefix="RATELIMIT_")

    min_interval_seconds: float = 1.0
    max_wait_seconds: float = 30.0
    backoff_seconds: list[float] = [5.0, 10.0, 20.0]
    http_max_retries: int = 3


class CacheSettings(BaseSettings):
    """Price cache backend and TTLs."""

    model_config = SettingsConfigDict(env_prefix="CACHE_")

    backend: Literal["memory", "sqlite"] = "memory"
    db_path: str = "data/price_cache.db"
    positive_ttl_seconds: int = 6 * 3600
    negative_ttl_seconds: int = 10 * 60  # retry confirmed-absent data sooner
    sweep_interval_seconds: int = 10 * 60


class ApiSettings(BaseSettings):
    """HTTP price endpoint configuration."""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = "0.0.0.0"
    port: int = 8080


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    log_format: str | None = None  # console | json; surface default when unset
    providers: ProviderSettings = ProviderSettings()
    rate_limit: RateLimitSettings = RateLimitSettings()
    cache: CacheSettings = CacheSettings()
    api: ApiSettings = ApiSettings()
