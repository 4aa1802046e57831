"""Custom exceptions for the historical price resolver.

All domain errors live here so the normalizer, throttle, providers and
orchestrator can share them without circular imports.
"""


class PriceFillError(Exception):
    """Base exception for all price resolution errors."""


class InvalidInputError(PriceFillError):
    """Raised when a query's date, timezone or target cannot be used."""


class DateFormatError(InvalidInputError):
    """Raised when a date string does not match YYYY-MM-DD HH:MM:SS."""


class CalendarDateError(InvalidInputError):
    """Raised when date fields are well-formed but not a real calendar instant."""


class InvalidTargetError(InvalidInputError):
    """Raised when the requested extreme is neither high nor low."""


class FutureInstantError(PriceFillError):
    """Raised when the requested instant lies after the current wall-clock time."""


class RateLimitBusyError(PriceFillError):
    """Raised when rate-limit protection could not be acquired within the retry budget."""


class NoDataError(PriceFillError):
    """Raised when every provider in the chain returned no usable price."""


class ProviderError(PriceFillError):
    """Raised by provider transports on HTTP failure or malformed payloads.

    Adapters absorb this into a TransientError outcome; it never escapes
    the fallback chain.
    """
