"""Logging configuration for the lifecycle coordinator."""

import logging
import sys

import structlog

from lightkeeper.config import LightkeeperSettings


def configure_logging(settings: LightkeeperSettings | None = None) -> None:
    """Configure structlog for the process."""
    settings_obj = settings if settings is not None else LightkeeperSettings()

    is_json = settings_obj.log_format.lower() == "json"
    log_level = getattr(logging, settings_obj.log_level.upper())

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if is_json:
        # Production: JSON lines on stdout
        structlog.configure(
            processors=shared_processors
            + [
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(log_level),
            context_class=dict,
            logger_factory=structlog.WriteLoggerFactory(file=sys.stdout),
            cache_logger_on_first_use=True,
        )
        # Silence stdlib logging (uvicorn) to keep the stream pure JSON
        logging.basicConfig(
            format="%(message)s",
            stream=sys.stdout,
            level=logging.CRITICAL + 1,
        )
    else:
        # Development: colored console output
        structlog.configure(
            processors=shared_processors
            + [
                structlog.dev.ConsoleRenderer(colors=True),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(log_level),
            context_class=dict,
            logger_factory=structlog.PrintLoggerFactory(),
            cache_logger_on_first_use=True,
        )
        logging.basicConfig(
            format="%(message)s",
            stream=sys.stdout,
            level=log_level,
        )

    logging.root.setLevel(log_level)
