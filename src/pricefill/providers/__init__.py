"""Provider adapter layer -- MEXC candles, CoinGecko snapshots, CoinPaprika OHLCV."""

from pricefill.providers.base import PriceProvider
from pricefill.providers.coingecko import (
    CoinGeckoClient,
    CoinGeckoHistoryProvider,
    CoinGeckoTickerProvider,
)
from pricefill.providers.coinpaprika import CoinPaprikaProvider
from pricefill.providers.http import JsonHttpClient
from pricefill.providers.mexc import MexcCandleProvider
from pricefill.providers.selector import select_extreme

__all__ = [
    "CoinGeckoClient",
    "CoinGeckoHistoryProvider",
    "CoinGeckoTickerProvider",
    "CoinPaprikaProvider",
    "JsonHttpClient",
    "MexcCandleProvider",
    "PriceProvider",
    "select_extreme",
]
