"""Extreme selection over OHLC rows.

A pure reduction: the caller is responsible for discarding rows whose
timestamps drift too far from the requested instant.
"""

from collections.abc import Sequence
from decimal import Decimal

from pricefill.models import OHLCVCandle, PriceTarget


def select_extreme(rows: Sequence[OHLCVCandle], target: PriceTarget) -> Decimal | None:
    """Return max(high) for HIGH or min(low) for LOW across all rows.

    Providers occasionally return more than one row for a coarse interval,
    so the reduction always runs over the whole sequence. An empty sequence
    means no data, never zero.
    """
    if not rows:
        return None
    if target is PriceTarget.LOW:
        return min(row.low for row in rows)
    return max(row.high for row in rows)
