"""Static mapping from ticker tokens to aggregator coin ids.

CoinGecko and CoinPaprika address coins by slug rather than ticker. Tokens
without an entry fall back to the raw (lower-case) ticker for both.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class TokenIds:
    coingecko: str
    coinpaprika: str


TOKEN_TO_ID: dict[str, TokenIds] = {
    "btc": TokenIds(coingecko="bitcoin", coinpaprika="btc-bitcoin"),
    "xmr": TokenIds(coingecko="monero", coinpaprika="xmr-monero"),
    "grc": TokenIds(coingecko="gridcoin-research", coinpaprika="grc-gridcoin"),
    "xtm": TokenIds(coingecko="tari", coinpaprika="xtm-tari"),
}


def ids_for(token: str) -> TokenIds:
    """Return aggregator ids for a token, defaulting to the token itself."""
    token = token.lower()
    return TOKEN_TO_ID.get(token, TokenIds(coingecko=token, coinpaprika=token))
