"""Structured logging configuration: structlog + stdlib logging."""

from __future__ import annotations

import logging
import logging.config
import os

import structlog

# verbosity (-v count) → stdlib level; errors are always shown
_VERBOSITY_LEVELS = {
    0: "ERROR",
    1: "WARNING",
    2: "INFO",
    3: "DEBUG",
}


def level_for_verbosity(verbosity: int) -> str:
    """Map a ``-v`` count to a log level name, clamping out-of-range values."""
    clamped = min(max(verbosity, 0), max(_VERBOSITY_LEVELS))
    return _VERBOSITY_LEVELS[clamped]


def setup_logging(verbosity: int = 0, json_output: bool = False) -> None:
    """Configure structlog and stdlib logging.

    Logs always go to stderr so stdout stays free for the report.

    Reads from environment variables:
        IOCSENTINEL_LOG_LEVEL   overrides the level derived from verbosity
        IOCSENTINEL_LOG_FORMAT  console | json (default: json when the
                                 report itself is JSON, console otherwise)
    """
    log_level = os.environ.get("IOCSENTINEL_LOG_LEVEL", level_for_verbosity(verbosity)).upper()
    default_format = "json" if json_output else "console"
    log_format = os.environ.get("IOCSENTINEL_LOG_FORMAT", default_format).lower()

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    # --- structlog configure ---
    structlog.configure(
        processors=shared_processors
        + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # --- stdlib logging configure ---
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structlog": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "foreign_pre_chain": shared_processors,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        renderer,
                    ],
                },
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stderr",
                    "formatter": "structlog",
                },
            },
            "root": {
                "handlers": ["default"],
                "level": log_level,
            },
            "loggers": {
                "iocsentinel": {"level": log_level},
                "httpx": {"level": "WARNING"},
                "httpcore": {"level": "WARNING"},
            },
        }
    )
