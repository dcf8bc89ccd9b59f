"""structlog setup shared by every entry point that embeds the engine."""

from __future__ import annotations

import logging

import structlog

from taskpayable.core.config import get_settings


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Configure structlog with the specified level and format."""
    settings = get_settings()
    level = level or settings.log_level
    fmt = fmt or settings.log_format

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    level_no = logging.getLevelName(level.upper())
    if not isinstance(level_no, int):
        raise ValueError(f"Unknown log level: {level}")

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level_no),
    )


def token_hint(token: str) -> str:
    """Loggable prefix of an invitation token; never log the full value."""
    return token[:6] + "…" if token else ""
