"""Structlog configuration for socialgraph."""

import logging
import sys

import structlog

from socialgraph.config import SocialConfig, LogFormat

# Chatty third-party loggers kept at WARNING or above
_QUIET_LOGGERS = ("aiosqlite", "asyncio", "httpx")


def _add_service(logger, method_name: str, event_dict: dict) -> dict:
    event_dict.setdefault("service", "socialgraph")
    return event_dict


def configure_logging(config: SocialConfig | None = None) -> None:
    """
    Configure structlog for the client, CLI and API server.

    Safe to call more than once; the last call wins. Loggers are resolved
    on every call rather than cached so reconfiguring (e.g. the CLI's
    per-command clients under a test runner) takes effect immediately.

    Args:
        config: SocialConfig instance, uses defaults if None
    """
    if config is None:
        config = SocialConfig()

    log_level = getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        _add_service,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if config.log_format == LogFormat.JSON:
        processors.extend([
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(sort_keys=True),
        ])
    else:
        processors.extend([
            structlog.dev.set_exc_info,
            structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()),
        ])

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """
    Get a structlog logger, optionally tagged with a component name.

    Args:
        name: Component name bound as logger_name

    Returns:
        structlog BoundLogger
    """
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger_name=name)
    return logger
