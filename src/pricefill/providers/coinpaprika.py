"""CoinPaprika historical OHLCV adapter -- last resort of the fallback chain.

Free-tier CoinPaprika history is daily. The adapter first confirms the coin
is listed with a USD quote, then asks for the day window ending at the
requested instant (starting one day earlier so the closest prior period is
always in range). The row whose open/close span contains the instant wins;
otherwise the latest row that opened before it. If the row lacks the
requested extreme, its close is used instead.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from pricefill.exceptions import ProviderError
from pricefill.logging import get_logger
from pricefill.models import (
    NoData,
    OHLCVCandle,
    PriceTarget,
    ProviderOutcome,
    Success,
    TransientError,
)
from pricefill.providers.base import PriceProvider
from pricefill.providers.http import JsonHttpClient
from pricefill.providers.selector import select_extreme
from pricefill.providers.token_ids import ids_for

logger = get_logger(__name__)

_DAY_SECONDS = 86_400


def _parse_iso_ms(value: Any) -> int | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return int(datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp() * 1000)
    except ValueError:
        return None


def _decimal_or_none(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return number if number.is_finite() and number > 0 else None


def pick_period(rows: list[dict], instant_ms: int) -> dict | None:
    """Return the row containing instant_ms, else the latest row opened before it."""
    containing = None
    prior: tuple[int, dict] | None = None
    for row in rows:
        opened = _parse_iso_ms(row.get("time_open"))
        if opened is None or opened > instant_ms:
            continue
        closed = _parse_iso_ms(row.get("time_close"))
        if closed is not None and instant_ms <= closed:
            containing = row
        if prior is None or opened > prior[0]:
            prior = (opened, row)
    if containing is not None:
        return containing
    return prior[1] if prior is not None else None


def row_extreme(row: dict, target: PriceTarget) -> Decimal | None:
    """Extreme of a single CoinPaprika OHLCV row, falling back to close."""
    high = _decimal_or_none(row.get("high"))
    low = _decimal_or_none(row.get("low"))
    if high is not None and low is not None:
        candle = OHLCVCandle(
            timestamp_ms=_parse_iso_ms(row.get("time_open")) or 0,
            open=_decimal_or_none(row.get("open")) or Decimal("0"),
            high=high,
            low=low,
            close=_decimal_or_none(row.get("close")) or Decimal("0"),
        )
        return select_extreme([candle], target)
    return _decimal_or_none(row.get("close"))


class CoinPaprikaProvider(PriceProvider):
    """Daily OHLCV snapshot for the period containing the instant."""

    name = "coinpaprika"

    def __init__(self, http: JsonHttpClient, base_url: str) -> None:
        self._http = http
        self._base_url = base_url.rstrip("/")

    async def resolve(
        self, token: str, instant_ms: int, target: PriceTarget
    ) -> ProviderOutcome:
        coin_id = ids_for(token).coinpaprika
        try:
            listing = await self._http.get_json(f"{self._base_url}/tickers/{coin_id}")
            if not isinstance(listing, dict) or not (listing.get("quotes") or {}).get("USD"):
                return NoData(f"{coin_id} has no USD quote")

            instant_s = instant_ms // 1000
            day_start = instant_s - instant_s % _DAY_SECONDS
            rows = await self._http.get_json(
                f"{self._base_url}/coins/{coin_id}/ohlcv/historical",
                {"start": day_start - _DAY_SECONDS, "end": instant_s},
            )
        except ProviderError as e:
            return TransientError(str(e))

        if not isinstance(rows, list) or not rows:
            return NoData(f"no OHLCV rows for {coin_id}")

        row = pick_period([r for r in rows if isinstance(r, dict)], instant_ms)
        if row is None:
            return NoData(f"no OHLCV period at or before instant for {coin_id}")

        price = row_extreme(row, target)
        if price is None:
            return NoData(f"OHLCV period for {coin_id} has no usable price")

        logger.debug(
            "coinpaprika_period_selected",
            coin_id=coin_id,
            time_open=row.get("time_open"),
            price=str(price),
        )
        return Success(price, source=self.name)
