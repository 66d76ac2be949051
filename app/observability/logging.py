"""
Structured logging for the console API.

Every entry carries the service name and version, any context bound with
log_context (request_id, import entity, mail client), and never the raw
value of a credential. Recipient addresses are masked to their domain.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from app.config import settings

SECRET_KEYS = frozenset(
    {
        "api_key",
        "x_api_key",
        "authorization",
        "cron_secret",
        "x_cron_secret",
        "resend_api_key",
        "read_only_api_key",
        "password",
    }
)
EMAIL_KEYS = frozenset({"to", "recipient", "recipient_email", "email"})
REDACTED = "[redacted]"

# Loggers that would otherwise echo every Resend request and pooled connection
_NOISY_LOGGERS = ("httpx", "httpcore", "asyncpg")


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict["service"] = settings.service_name
    event_dict["version"] = settings.api_version
    return event_dict


def mask_email(address: str) -> str:
    """a.person@example.com -> a***@example.com"""
    local, sep, domain = address.partition("@")
    if not sep:
        return REDACTED
    return f"{local[:1]}***@{domain}"


def redact_sensitive(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Drop credential values and mask recipient addresses."""
    for key, value in event_dict.items():
        normalized = key.lower().replace("-", "_")
        if normalized in SECRET_KEYS and value:
            event_dict[key] = REDACTED
        elif normalized in EMAIL_KEYS and isinstance(value, str):
            event_dict[key] = mask_email(value)
    return event_dict


def build_processors(log_format: str, debug: bool) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_app_context,
        redact_sensitive,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if debug:
        processors.append(structlog.processors.ExceptionRenderer())
    else:
        processors.append(structlog.processors.format_exc_info)

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    return processors


def setup_logging() -> None:
    """
    Configure structlog over the standard library root logger.

    A JSON entry looks like:
    {
        "event": "client_import_completed",
        "level": "info",
        "timestamp": "2026-01-08T12:00:00.123456Z",
        "logger": "app.services.importer",
        "service": "inventory-console-api",
        "version": "0.1.0",
        "request_id": "req-123",
        "entity": "clients",
        ...additional context
    }
    """
    level = getattr(logging, settings.log_level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    structlog.configure(
        processors=build_processors(settings.log_format, settings.log_level.upper() == "DEBUG"),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)  # type: ignore[no-any-return]


@contextmanager
def log_context(**context: Any) -> Iterator[None]:
    """
    Bind context to every log entry emitted inside the block.

    Usage:
        with log_context(entity="clients", file_name="clients.csv"):
            await service.import_file(...)
    """
    bound = {key: value for key, value in context.items() if value is not None}
    structlog.contextvars.bind_contextvars(**bound)
    try:
        yield
    finally:
        structlog.contextvars.unbind_contextvars(*bound.keys())
