"""
Centralized logging configuration for the order service.

All modules log through structlog bound loggers so that order numbers and
other context travel as key/value pairs. Output goes to stdout, which is
what the container runtime collects.
"""

import logging
import sys

import structlog


def setup_logging(level: str = "INFO", json: bool = False):
    """
    Configures stdlib logging and structlog for the whole process.

    Args:
        level (str): Minimum log level name, e.g. "INFO".
        json (bool): Render JSON lines instead of the console key/value format.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        stream=sys.stdout,
    )

    renderer = structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer(colors=False)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        logger_factory=structlog.PrintLoggerFactory(sys.stdout),
        cache_logger_on_first_use=True,
    )

    # Reduce verbosity from external libraries
    logging.getLogger("pika").setLevel(logging.WARNING)


def get_logger(name):
    """Returns a structlog logger named after the calling module."""
    return structlog.get_logger(name)
