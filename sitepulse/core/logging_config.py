"""
structlog setup shared by the collector service and the tracker.

Production renders one JSON object per line; other environments use the
console renderer. Request ids bound by the middleware are merged into
every record.
"""

import logging
import sys
from typing import Any

import structlog

from sitepulse.core.config import settings

# Third-party loggers that log every request or query at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine")


def configure_logging() -> None:
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if settings.is_production:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=logging.INFO)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Logger bound to ``name``; tracker and collector modules log through this."""
    return structlog.get_logger(name)


configure_logging()
