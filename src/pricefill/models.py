"""Shared data models for the historical price resolver.

CRITICAL: All monetary values use Decimal. Never use float for prices.
Provider payloads arrive as floats or strings and are converted via
Decimal(str(value)) at the adapter boundary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from pricefill.exceptions import InvalidTargetError


class PriceTarget(str, Enum):
    """Which extreme of the price range is requested."""

    HIGH = "high"
    LOW = "low"

    @classmethod
    def parse(cls, value: str | PriceTarget) -> PriceTarget:
        """Parse a case-insensitive target label."""
        if isinstance(value, PriceTarget):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidTargetError(
                f"Target must be 'high' or 'low', got {value!r}"
            ) from None


class FailureKind(str, Enum):
    """Terminal non-price outcomes reported to callers."""

    INVALID_INPUT = "invalid_input"
    FUTURE_INSTANT = "future_instant"
    RATE_LIMIT_BUSY = "rate_limit_busy"
    NO_DATA = "no_data"


@dataclass(frozen=True)
class PriceQuery:
    """A normalized request: token, absolute instant and requested extreme.

    The timezone label is carried only because it participates in the
    cache key; instant_ms is already absolute UTC.
    """

    token: str
    instant_ms: int
    target: PriceTarget
    timezone: str = "UTC"

    def __post_init__(self) -> None:
        object.__setattr__(self, "token", self.token.strip().lower())
        object.__setattr__(self, "timezone", (self.timezone or "UTC").strip().upper())


# ──────────────────────────────────────────────
# Provider outcomes
# ──────────────────────────────────────────────


class ProviderOutcome:
    """Base for the result of a single provider lookup."""


@dataclass(frozen=True)
class Success(ProviderOutcome):
    """A usable USD price from a provider."""

    price: Decimal
    source: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.price, Decimal):
            raise TypeError(f"price must be Decimal, got {type(self.price).__name__}")
        if not self.price.is_finite() or self.price <= 0:
            raise ValueError(f"price must be positive and finite, got {self.price}")


@dataclass(frozen=True)
class NoData(ProviderOutcome):
    """Provider answered but has nothing for this token/instant."""

    reason: str = ""


@dataclass(frozen=True)
class TransientError(ProviderOutcome):
    """Provider could not be reached or returned something unusable."""

    reason: str = ""
    retryable: bool = True


# ──────────────────────────────────────────────
# Candles
# ──────────────────────────────────────────────


@dataclass
class OHLCVCandle:
    """A single OHLCV candle row."""

    timestamp_ms: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal = Decimal("0")

    @classmethod
    def from_ccxt(cls, row: list) -> OHLCVCandle:
        """Build from a ccxt-format row: [timestamp_ms, open, high, low, close, volume]."""
        return cls(
            timestamp_ms=int(row[0]),
            open=Decimal(str(row[1])),
            high=Decimal(str(row[2])),
            low=Decimal(str(row[3])),
            close=Decimal(str(row[4])),
            volume=Decimal(str(row[5])) if len(row) > 5 and row[5] is not None else Decimal("0"),
        )


@dataclass
class CandleWindow:
    """Candle rows returned for one interval query. Transient, never persisted."""

    interval: str
    interval_seconds: int
    start_ms: int
    end_ms: int
    rows: list[OHLCVCandle] = field(default_factory=list)


# ──────────────────────────────────────────────
# Caller-facing result
# ──────────────────────────────────────────────


@dataclass(frozen=True)
class PriceResult:
    """Tagged result of a resolution: either a price or a typed failure."""

    price: Decimal | None = None
    source: str = ""
    failure: FailureKind | None = None
    message: str = ""

    @classmethod
    def success(cls, price: Decimal, source: str = "") -> PriceResult:
        return cls(price=price, source=source)

    @classmethod
    def fail(cls, kind: FailureKind, message: str = "") -> PriceResult:
        return cls(failure=kind, message=message)

    @property
    def ok(self) -> bool:
        return self.failure is None
