"""Historical crypto price resolver with multi-provider fallback."""

__version__ = "1.0.0"
