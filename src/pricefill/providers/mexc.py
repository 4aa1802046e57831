"""MEXC candle-interval adapter via ccxt async -- primary provider.

Resolution steps for a token:
1. Skip tokens known never to be listed (saves one wasted round trip).
2. Discover a spot pair: TOKEN/USDT (direct) preferred, TOKEN/BTC (bridge)
   otherwise.
3. Query the fine interval window ending at the instant. Rows whose open
   time drifts more than drift_tolerance_ms from the instant are dropped.
4. If nothing survives, query the coarse interval window instead.
5. Reduce the rows to the requested extreme.
6. For bridge pairs, multiply by the bridge asset's USD price: the same
   extreme of BTC/USDT on MEXC, or an injected spot quote if that fails.

CRITICAL: ccxt returns floats; every value is converted via Decimal(str(x)).
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from decimal import Decimal, InvalidOperation

import ccxt.async_support as ccxt_async

from pricefill.config import ProviderSettings
from pricefill.exceptions import ProviderError
from pricefill.logging import get_logger
from pricefill.models import (
    CandleWindow,
    NoData,
    OHLCVCandle,
    PriceTarget,
    ProviderOutcome,
    Success,
    TransientError,
)
from pricefill.providers.base import PriceProvider
from pricefill.providers.selector import select_extreme

logger = get_logger(__name__)

BridgeQuote = Callable[[], Awaitable[Decimal | None]]


class MexcCandleProvider(PriceProvider):
    """Candle-interval price lookup on MEXC spot markets.

    Args:
        settings: Provider settings (intervals, drift tolerance, skip list).
        exchange: ccxt exchange instance; a public mexc client by default.
        bridge_quote: Fallback USD quote for the bridge asset, used when the
            exchange has no bridge candle for the window.
    """

    name = "mexc"

    def __init__(
        self,
        settings: ProviderSettings,
        exchange: ccxt_async.Exchange | None = None,
        bridge_quote: BridgeQuote | None = None,
    ) -> None:
        self._settings = settings
        self._exchange = exchange if exchange is not None else ccxt_async.mexc(
            {"enableRateLimit": True, "options": {"defaultType": "spot"}}
        )
        self._bridge_quote = bridge_quote
        self._skip = {t.lower() for t in settings.skip_tokens}
        self._markets: dict = {}
        self._markets_lock = asyncio.Lock()

    @property
    def exchange(self) -> ccxt_async.Exchange:
        """Access the underlying ccxt exchange instance."""
        return self._exchange

    async def close(self) -> None:
        """Clean up ccxt async resources. CRITICAL: must be called to avoid resource leaks."""
        await self._exchange.close()

    async def _load_markets(self) -> dict:
        async with self._markets_lock:
            if not self._markets:
                self._markets = await self._exchange.load_markets()
                logger.debug("mexc_markets_loaded", market_count=len(self._markets))
        return self._markets

    def find_pair(self, token: str) -> tuple[str, bool] | None:
        """Return (symbol, needs_bridge) for the token's spot pair, if listed."""
        base = token.upper()
        for quote, needs_bridge in (
            (self._settings.quote_asset, False),
            (self._settings.bridge_asset, True),
        ):
            symbol = f"{base}/{quote}"
            market = self._markets.get(symbol)
            if market and market.get("spot", True):
                return symbol, needs_bridge
        return None

    async def fetch_window(self, symbol: str, instant_ms: int, interval: str) -> CandleWindow:
        """Fetch the single candle of the given interval ending at instant_ms."""
        interval_seconds = ccxt_async.Exchange.parse_timeframe(interval)
        start_ms = instant_ms - interval_seconds * 1000
        raw = await self._exchange.fetch_ohlcv(
            symbol,
            timeframe=interval,
            since=start_ms,
            limit=1,
            params={"until": instant_ms},
        )
        try:
            rows = [OHLCVCandle.from_ccxt(r) for r in raw or []]
        except (InvalidOperation, TypeError, ValueError, IndexError) as e:
            raise ProviderError(f"malformed kline row for {symbol}: {e!r}") from e
        return CandleWindow(
            interval=interval,
            interval_seconds=interval_seconds,
            start_ms=start_ms,
            end_ms=instant_ms,
            rows=rows,
        )

    async def extreme_at(
        self, symbol: str, instant_ms: int, target: PriceTarget
    ) -> Decimal | None:
        """Fine window first; coarse window when fine is empty or drifted."""
        tolerance = self._settings.drift_tolerance_ms

        window = await self.fetch_window(symbol, instant_ms, self._settings.fine_interval)
        rows = [r for r in window.rows if abs(r.timestamp_ms - instant_ms) <= tolerance]
        if window.rows and not rows:
            logger.debug(
                "mexc_fine_candle_drifted",
                symbol=symbol,
                drift_ms=min(abs(r.timestamp_ms - instant_ms) for r in window.rows),
            )

        if not rows:
            window = await self.fetch_window(
                symbol, instant_ms, self._settings.coarse_interval
            )
            rows = window.rows
            logger.debug(
                "mexc_coarse_fallback",
                symbol=symbol,
                interval=window.interval,
                rows=len(rows),
            )

        return select_extreme(rows, target)

    async def _bridge_price(self, instant_ms: int, target: PriceTarget) -> Decimal | None:
        bridge_symbol = f"{self._settings.bridge_asset}/{self._settings.quote_asset}"
        price = None
        if bridge_symbol in self._markets:
            try:
                price = await self.extreme_at(bridge_symbol, instant_ms, target)
            except (ccxt_async.NetworkError, ccxt_async.ExchangeError, ProviderError) as e:
                logger.info("bridge_candle_failed", symbol=bridge_symbol, error=str(e))
                price = None
        if price is None and self._bridge_quote is not None:
            try:
                price = await self._bridge_quote()
            except ProviderError as e:
                logger.info("bridge_quote_failed", error=str(e))
                price = None
        return price

    async def resolve(
        self, token: str, instant_ms: int, target: PriceTarget
    ) -> ProviderOutcome:
        if token.lower() in self._skip:
            return NoData(f"{token} is not listed on MEXC")

        try:
            await self._load_markets()
            pair = self.find_pair(token)
            if pair is None:
                return NoData(f"no MEXC spot pair for {token}")

            symbol, needs_bridge = pair
            price = await self.extreme_at(symbol, instant_ms, target)
            if price is None:
                return NoData(f"no candles for {symbol}")

            if needs_bridge:
                bridge = await self._bridge_price(instant_ms, target)
                if bridge is None:
                    return NoData(f"no {self._settings.bridge_asset} USD price for bridge")
                logger.debug(
                    "mexc_bridge_applied",
                    symbol=symbol,
                    raw_price=str(price),
                    bridge_price=str(bridge),
                )
                price = price * bridge
        except (ccxt_async.NetworkError, ccxt_async.ExchangeError, ProviderError) as e:
            logger.info("mexc_request_failed", error=str(e))
            return TransientError(str(e))

        if not price.is_finite() or price <= 0:
            return NoData(f"non-positive candle price for {symbol}")
        return Success(price, source=self.name)
