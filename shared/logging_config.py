"""
Centralized logging configuration for the download gate service.

This module sets up structured logging with:
- JSON formatting for production, pretty console for development
- IP hashing for GDPR compliance in production
- Redaction of OAuth codes, PKCE verifiers, access tokens and download tokens
"""

from __future__ import annotations

import hashlib
import logging
import sys
from typing import TYPE_CHECKING, Optional

import structlog
from structlog.types import EventDict, Processor

if TYPE_CHECKING:
    from config import LoggingSettings


_state = {"production": False}

# Sensitive fields to redact from logs
REDACTED_FIELDS = {
    "code",
    "state",
    "access_token",
    "refresh_token",
    "code_verifier",
    "authorization",
    "cookie",
    "email",
}

# Substrings that mark a key as sensitive wherever they appear
REDACTED_SUBSTRINGS = ("token", "secret", "password", "verifier", "key")

_NEVER_REDACT = {"level", "event", "timestamp", "logger"}


def hash_ip(ip_address: str) -> str:
    """
    Hash IP address for privacy in production.

    In production, returns SHA-256 hash (first 16 chars) for GDPR compliance.
    In development, returns the original IP for easier debugging.
    """
    if _state["production"] and ip_address:
        return hashlib.sha256(ip_address.encode()).hexdigest()[:16]
    return ip_address


def redact_sensitive_fields(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Redact sensitive fields from logs."""
    for key in list(event_dict.keys()):
        if key in _NEVER_REDACT:
            continue
        lowered = key.lower()
        if lowered in REDACTED_FIELDS or any(s in lowered for s in REDACTED_SUBSTRINGS):
            event_dict[key] = "***REDACTED***"
    return event_dict


def configure_structlog(log_format: str) -> None:
    """
    Configure structlog with appropriate processors for the environment.

    Production: JSON formatting for easy parsing
    Development: Pretty console formatting with colors
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        redact_sensitive_fields,
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True, pad_event=15, sort_keys=False)

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_stdlib_logging(log_level: str) -> None:
    """Route stdlib logging to stdout and quiet noisy third-party loggers."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("pymongo").setLevel(logging.WARNING)
    logging.getLogger("pymongo.connection").setLevel(logging.WARNING)
    logging.getLogger("pymongo.serverSelection").setLevel(logging.WARNING)
    logging.getLogger("pymongo.command").setLevel(logging.WARNING)
    logging.getLogger("pymongo.topology").setLevel(logging.WARNING)


def setup_logging(
    settings: "LoggingSettings", *, production: bool = False, sentry_enabled: Optional[bool] = None
) -> None:
    """
    Initialize logging system for the application.

    Called once from create_app() before anything else logs.
    """
    _state["production"] = production

    configure_stdlib_logging(settings.log_level)
    configure_structlog(settings.log_format)

    logger = structlog.get_logger(__name__)
    logger.info(
        "logging_initialized",
        production=production,
        log_level=settings.log_level,
        log_format=settings.log_format,
        sentry_enabled=bool(sentry_enabled),
    )
