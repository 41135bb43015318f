"""
Structured logging setup for the PoolPilot notifier.

Configures structlog for JSON-formatted structured logging. Every log
line includes timestamp, level, service name, and event. Per-run context
(run_id) and per-record context (alert_key) are bound at processing time.
"""

from __future__ import annotations

import logging
import sys

import structlog


def configure_logging(
    level: str = "INFO",
    *,
    json: bool = True,
    service: str = "notifier",
) -> None:
    """Configure stdlib logging and structlog for the whole process.

    Args:
        level: Log level name.
        json: Render JSON lines; ``False`` uses the coloured console renderer.
        service: Value bound as ``service`` on every log line.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level, force=True)

    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer()
        if json
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.bind_contextvars(service=service)


def mask_address(address: str | None) -> str:
    """Mask a phone number or e-mail address for log output.

    ``+15551234567`` becomes ``********4567``; ``jane@example.com`` becomes
    ``j***@example.com``.
    """
    if not address:
        return ""
    if "@" in address:
        local, _, domain = address.partition("@")
        return f"{local[:1]}***@{domain}"
    return address[-4:].rjust(len(address), "*")
