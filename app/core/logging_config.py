# app/core/logging_config.py
import logging
import sys
from typing import Any

import structlog


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    """
    Configure structlog over stdlib logging.
    json: one JSON object per line on stdout. console: readable dev output.
    Context bound with bind_request_context() is merged into every event,
    also for store calls running in the threadpool.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    renderer = (
        structlog.dev.ConsoleRenderer()
        if fmt == "console"
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def bind_request_context(**values: Any) -> None:
    # per request: replaces whatever the previous request on this context left
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**values)


logger = structlog.get_logger("offers")
