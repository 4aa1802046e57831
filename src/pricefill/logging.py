"""structlog setup shared by the CSV filler and the HTTP service.

Both surfaces log through the stdlib root logger with a structlog
ProcessorFormatter, so third-party records (uvicorn, aiohttp, ccxt) and our
own events come out in one format. Per-query fields (token, target,
instant_ms) are bound with structlog.contextvars by the orchestrator.
"""

import logging
import os

import structlog

# Libraries that log every request at DEBUG and drown out lookup traces
_NOISY_LOGGERS = ("ccxt", "aiohttp", "aiosqlite", "asyncio")

LOG_FORMATS = ("console", "json")


def resolve_log_format(log_format: str | None, default: str = "console") -> str:
    """Pick the renderer: explicit argument, then LOG_FORMAT, then default."""
    chosen = (log_format or os.environ.get("LOG_FORMAT") or default).lower()
    return chosen if chosen in LOG_FORMATS else default


def setup_logging(log_level: str = "INFO", log_format: str | None = None) -> None:
    """Configure structlog and the stdlib root handler.

    Args:
        log_level: Root level name; DEBUG also enables per-row CSV traces.
        log_format: "console" (CLI default) or "json" (service default).
    """
    renderer: structlog.types.Processor
    if resolve_log_format(log_format) == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    level = getattr(logging, log_level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger with the given name."""
    return structlog.get_logger(name)
