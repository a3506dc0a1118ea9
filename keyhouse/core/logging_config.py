"""Centralized logging configuration.

When LOG_FORMAT=json (default in production), emits structured JSON records
that log aggregators can parse without regex. When LOG_FORMAT=text (default
when DEBUG=true), falls back to a human-readable format for local development.

SensitiveDataFilter and RequestIdFilter are always attached to the root handler.
"""

import logging
import sys

from pythonjsonlogger.json import JsonFormatter

from keyhouse.core.logging_filters import RequestIdFilter, SensitiveDataFilter

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"


def _build_handler(log_format: str) -> logging.Handler:
    """Return a StreamHandler with the formatter for ``log_format``."""
    handler = logging.StreamHandler(sys.stdout)

    if log_format == "json":
        formatter: logging.Formatter = JsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(request_id)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
            rename_fields={"levelname": "level", "asctime": "timestamp"},
        )
    else:
        formatter = logging.Formatter(TEXT_FORMAT)

    handler.setFormatter(formatter)
    return handler


def configure_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """Configure the root logger with structured output and secrets redaction.

    Call once at application startup.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Remove any existing handlers to avoid duplicate output
    root.handlers.clear()

    handler = _build_handler(log_format)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    root.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
