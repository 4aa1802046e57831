"""CoinGecko adapters: venue ticker snapshot and daily history snapshot.

Two providers share one CoinGeckoClient:

- CoinGeckoTickerProvider answers with the *current* price reported by the
  highest-volume non-stale venue. It is used even for past instants as an
  approximation; this is a known precision trade-off, not a defect.
- CoinGeckoHistoryProvider reads the daily snapshot for the UTC day of the
  instant. That endpoint carries no high/low, only a point price.

The client also exposes simple_price(), used by the candle provider as a
last-resort USD quote for the bridge asset.
"""

from __future__ import annotations

import time
from decimal import Decimal, InvalidOperation
from typing import Any

from pricefill.exceptions import ProviderError
from pricefill.logging import get_logger
from pricefill.models import NoData, PriceTarget, ProviderOutcome, Success, TransientError
from pricefill.providers.base import PriceProvider
from pricefill.providers.http import JsonHttpClient
from pricefill.providers.token_ids import ids_for

logger = get_logger(__name__)


def _to_price(value: Any) -> Decimal | None:
    """Convert a payload number to a positive finite Decimal, else None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not price.is_finite() or price <= 0:
        return None
    return price


class CoinGeckoClient:
    """Thin typed wrapper over the CoinGecko v3 public endpoints.

    Args:
        http: Shared JSON HTTP client.
        base_url: API root, e.g. https://api.coingecko.com/api/v3.
        api_key: Optional demo API key for higher rate limits.
    """

    def __init__(self, http: JsonHttpClient, base_url: str, api_key: str | None = None) -> None:
        self._http = http
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key or None

    def _params(self, **params: Any) -> dict[str, Any]:
        if self._api_key:
            params["x_cg_demo_api_key"] = self._api_key
        return params

    async def tickers(self, coin_id: str) -> list[dict]:
        """Return venue tickers for a coin (``/coins/{id}/tickers``)."""
        data = await self._http.get_json(
            f"{self._base_url}/coins/{coin_id}/tickers", self._params()
        )
        if not isinstance(data, dict):
            raise ProviderError("tickers payload is not an object")
        tickers = data.get("tickers") or []
        return [t for t in tickers if isinstance(t, dict)]

    async def history(self, coin_id: str, instant_ms: int) -> dict:
        """Return the daily snapshot for the UTC day containing instant_ms."""
        day = time.strftime("%d-%m-%Y", time.gmtime(instant_ms // 1000))
        data = await self._http.get_json(
            f"{self._base_url}/coins/{coin_id}/history",
            self._params(date=day, localization="false"),
        )
        if not isinstance(data, dict):
            raise ProviderError("history payload is not an object")
        return data

    async def simple_price(self, coin_id: str, vs_currency: str = "usd") -> Decimal | None:
        """Return the current spot price of coin_id, or None if unavailable."""
        data = await self._http.get_json(
            f"{self._base_url}/simple/price",
            self._params(ids=coin_id, vs_currencies=vs_currency),
        )
        if not isinstance(data, dict):
            raise ProviderError("simple/price payload is not an object")
        return _to_price((data.get(coin_id) or {}).get(vs_currency))


def select_ticker_price(tickers: list[dict]) -> tuple[Decimal, Decimal] | None:
    """Pick (price, volume) from the highest-volume non-stale venue with a USD price.

    Venues reporting zero volume are ignored.
    """
    best: tuple[Decimal, Decimal] | None = None
    for ticker in tickers:
        if ticker.get("is_stale"):
            continue
        price = _to_price((ticker.get("converted_last") or {}).get("usd"))
        if price is None:
            continue
        try:
            volume = Decimal(str(ticker.get("volume") or 0))
        except (InvalidOperation, ValueError):
            continue
        if not volume.is_finite() or volume <= 0:
            continue
        if best is None or volume > best[1]:
            best = (price, volume)
    return best


class CoinGeckoTickerProvider(PriceProvider):
    """Current-price approximation from the busiest CoinGecko venue."""

    name = "coingecko_tickers"

    def __init__(self, client: CoinGeckoClient) -> None:
        self._client = client

    async def resolve(
        self, token: str, instant_ms: int, target: PriceTarget
    ) -> ProviderOutcome:
        coin_id = ids_for(token).coingecko
        try:
            tickers = await self._client.tickers(coin_id)
        except ProviderError as e:
            return TransientError(str(e))

        best = select_ticker_price(tickers)
        if best is None:
            return NoData(f"no fresh USD ticker for {coin_id}")

        price, volume = best
        logger.debug(
            "coingecko_ticker_selected",
            coin_id=coin_id,
            price=str(price),
            volume=str(volume),
            venues=len(tickers),
        )
        return Success(price, source=self.name)


class CoinGeckoHistoryProvider(PriceProvider):
    """Daily point-in-time snapshot (``market_data.current_price.usd``)."""

    name = "coingecko_history"

    def __init__(self, client: CoinGeckoClient) -> None:
        self._client = client

    async def resolve(
        self, token: str, instant_ms: int, target: PriceTarget
    ) -> ProviderOutcome:
        coin_id = ids_for(token).coingecko
        try:
            data = await self._client.history(coin_id, instant_ms)
        except ProviderError as e:
            return TransientError(str(e))

        market_data = data.get("market_data")
        if not isinstance(market_data, dict):
            return NoData(f"no market data for {coin_id}")

        price = _to_price((market_data.get("current_price") or {}).get("usd"))
        if price is None:
            return NoData(f"no USD snapshot for {coin_id}")
        return Success(price, source=self.name)
