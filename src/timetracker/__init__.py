"""Time tracker webhooks: outbound notifications for time tracking events.

Delivers domain events (time entries, projects, clients, invoices) to
user-configured HTTPS endpoints with HMAC signatures, persistent delivery
records and exponential backoff retries.

Quick Start:
    from timetracker import ClientSnapshot, WebhookEvent
    from timetracker.storage import TimeTrackerStorage
    from timetracker.webhooks import RetrySweeper, WebhookDispatcher, WebhookService

    async with TimeTrackerStorage() as storage:
        service = WebhookService(storage)
        await service.create_webhook(
            name="Billing",
            url="https://billing.example.com/hooks",
            events=["on_invoice_created"],
            secret="s3cret",
        )

        async with WebhookDispatcher(storage) as dispatcher:
            sweeper = RetrySweeper(storage, dispatcher)
            await sweeper.start()
            await dispatcher.trigger(WebhookEvent.CLIENT_CREATED, client)

Delivery states:
    - pending: Recorded, waiting for its first attempt
    - retrying: Failed at least once, next attempt scheduled
    - delivered: A 2xx response was received (terminal)
    - failed: Retry budget exhausted or webhook gone (terminal)
"""

__version__ = "0.1.0"

# Configuration
from .config import Settings, settings

# Exceptions
from .exceptions import (
    ConfigurationError,
    DeliveryError,
    DeliveryStateError,
    NotFoundError,
    PayloadError,
    SigningError,
    StorageError,
    TimeTrackerError,
    ValidationError,
)

# Logging
from .logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    logger,
    unbind_context,
)

# Models
from .models import (
    ClientSnapshot,
    ClientUpdateDiff,
    InvoiceData,
    ProjectSnapshot,
    ProjectUpdateDiff,
    TimeEntrySnapshot,
    WebhookConfig,
    WebhookDelivery,
    WebhookEvent,
)

__all__ = [
    # Version
    "__version__",
    # Configuration
    "Settings",
    "settings",
    # Exceptions
    "ConfigurationError",
    "DeliveryError",
    "DeliveryStateError",
    "NotFoundError",
    "PayloadError",
    "SigningError",
    "StorageError",
    "TimeTrackerError",
    "ValidationError",
    # Logging
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "logger",
    "unbind_context",
    # Models
    "ClientSnapshot",
    "ClientUpdateDiff",
    "InvoiceData",
    "ProjectSnapshot",
    "ProjectUpdateDiff",
    "TimeEntrySnapshot",
    "WebhookConfig",
    "WebhookDelivery",
    "WebhookEvent",
]
