"""Structured logging for the time tracker.

Delivery outcomes are emitted as structlog events with key/value fields
(delivery_id, webhook_id, event, status, attempts, ...) so they can be
filtered and queried instead of read off a console.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, TextIO

import structlog

if TYPE_CHECKING:
    from structlog.typing import Processor

    from timetracker.models import WebhookConfig, WebhookDelivery

_configured = False


def configure_logging(
    level: str = "INFO",
    format: str = "json",
    stream: TextIO | None = None,
) -> None:
    """Configure structlog on top of the standard library logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        format: "json" for machine-readable output, "text" for a colored console.
        stream: Output stream. Defaults to stdout.

    Example:
        ```python
        from timetracker.logging import configure_logging, get_logger

        configure_logging(level="DEBUG", format="text")
        get_logger(__name__).info("webhook_delivered", delivery_id="dlv_123")
        ```
    """
    global _configured

    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=stream or sys.stdout,
        level=log_level,
        force=True,
    )

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    renderer: Processor
    if format.lower() == "json":
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _configured = True


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger, configuring defaults on first use."""
    if not _configured:
        configure_logging()

    return structlog.get_logger(name)  # type: ignore[no-any-return]


def delivery_fields(
    delivery: WebhookDelivery,
    webhook: WebhookConfig | None = None,
) -> dict[str, object]:
    """Key/value fields describing a delivery record for log events.

    Args:
        delivery: Delivery record being processed.
        webhook: Owning webhook, when loaded.

    Returns:
        Dictionary suitable for ``logger.info("...", **fields)``.
    """
    fields: dict[str, object] = {
        "delivery_id": delivery.id,
        "webhook_id": delivery.webhook_id,
        "event": delivery.event.value,
        "status": delivery.status,
        "attempts": delivery.attempts,
    }
    if delivery.response_code is not None:
        fields["response_code"] = delivery.response_code
    if delivery.next_retry_at is not None:
        fields["next_retry_at"] = delivery.next_retry_at.isoformat()
    if webhook is not None:
        fields["webhook_name"] = webhook.name
        fields["url"] = str(webhook.url)
    return fields


def bind_context(**kwargs: object) -> None:
    """Bind context variables to all subsequent log events in this task."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove specific keys from the logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()


logger = get_logger("timetracker")
