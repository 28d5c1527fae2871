"""Logging configuration for the fulfillment domain.

Standard library handlers carry the output; structlog formats it. Every
fulfillment run binds its payment reference into the structlog context so
degraded and best-effort failures can be traced back to a payment during
manual reconciliation.
"""

import logging
import logging.handlers
import os
import sys
from decimal import Decimal
from pathlib import Path
from typing import Any

import structlog

_LEVELS_BY_ENV = {
    "production": "INFO",
    "staging": "INFO",
    "development": "DEBUG",
    "test": "WARNING",
}
_JSON_ENVS = ("production", "staging")
_QUIET_LOGGERS = ("protean", "urllib3", "httpx", "asyncio")
_MAX_LOG_BYTES = 10 * 1024 * 1024


def _current_env() -> str:
    return (os.getenv("ENV") or os.getenv("ENVIRONMENT") or os.getenv("PROTEAN_ENV") or "development").lower()


def get_log_level() -> str:
    """Resolve the log level, preferring an explicit LOG_LEVEL."""
    return os.getenv("LOG_LEVEL", _LEVELS_BY_ENV.get(_current_env(), "INFO"))


def _rotating_file(path: Path, level) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        filename=path,
        maxBytes=_MAX_LOG_BYTES,
        backupCount=5,
        encoding="utf-8",
    )
    handler.setLevel(level)
    return handler


def setup_stdlib_logging() -> None:
    """Send records to stdout, a rolling service log and a rolling error log."""
    log_level = get_log_level()
    log_dir = Path(os.getenv("LOG_DIR", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    # Fatal fulfillment failures need operator follow-up; keep them apart.
    root_logger.handlers = [
        console_handler,
        _rotating_file(log_dir / "fulfillment.log", log_level),
        _rotating_file(log_dir / "fulfillment_error.log", logging.ERROR),
    ]

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def money_as_text(logger, method_name, event_dict):
    """Render Decimal amounts as plain strings so JSON output keeps exact cents."""
    for key, value in event_dict.items():
        if isinstance(value, Decimal):
            event_dict[key] = str(value)
    return event_dict


def _renderer(env: str):
    if env in _JSON_ENVS:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=True,
        exception_formatter=structlog.dev.RichTracebackFormatter(show_locals=False, max_frames=2),
    )


def setup_structlog() -> None:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            money_as_text,
            structlog.processors.CallsiteParameterAdder(
                parameters=[
                    structlog.processors.CallsiteParameter.FILENAME,
                    structlog.processors.CallsiteParameter.LINENO,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                ]
            ),
            _renderer(_current_env()),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging() -> None:
    """Configure all logging for the fulfillment service."""
    setup_stdlib_logging()
    setup_structlog()


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def payment_context(payment_reference: str, **kwargs: Any):
    """Bind the payment reference (and extras) to every log line in the block.

    Previous bindings are restored on exit, so request-level context set by
    the API survives a fulfillment run.
    """
    return structlog.contextvars.bound_contextvars(payment_reference=payment_reference, **kwargs)


def fulfillment_stage(stage: str):
    """Tag log lines in the block with the fulfillment stage they belong to.

    Nests inside payment_context(); the enclosing stage comes back on exit.
    """
    return structlog.contextvars.bound_contextvars(stage=stage)
