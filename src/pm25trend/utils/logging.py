"""
Structured logging for the pipeline, built on structlog.

Events are key-value pairs (``log.info("Read records", accepted=812)``).
Everything is written to stderr: the CLI prints its result tables on
stdout, and the two must not interleave when output is redirected.
"""

import logging
import sys
from typing import Any

import structlog

# Libraries that log through the standard library and are chatty at INFO.
_NOISY_LOGGERS = ("pandera", "numexpr")


def _renderer(json_output: bool) -> list[structlog.types.Processor]:
    if json_output:
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """
    Configure structlog and the standard library root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            Unknown names fall back to INFO.
        json_output: Render one JSON object per event instead of
            human-readable lines, e.g. when runs are collected by a scheduler.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=log_level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.UnicodeDecoder(),
            *_renderer(json_output),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Module logger; call as ``log = get_logger(__name__)``."""
    return structlog.get_logger(name)


def log_context(**kwargs: Any) -> structlog.contextvars.bound_contextvars:
    """
    Bind values to every event logged inside the block.

    Context variables are per thread, so periods loaded in parallel each
    carry their own tag.

    Example:
        with log_context(period=1999):
            log.info("Bound records", rows=812)  # also carries period=1999
    """
    return structlog.contextvars.bound_contextvars(**kwargs)
