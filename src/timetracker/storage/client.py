"""Qdrant storage client for the time tracker.

This module provides the main TimeTrackerStorage class that combines
all storage operations through mixins.

Example:
    ```python
    from timetracker.storage import TimeTrackerStorage

    async with TimeTrackerStorage() as storage:
        await storage.store_webhook(webhook)
        hooks = await storage.get_webhooks_for_event(WebhookEvent.CLIENT_CREATED)
    ```
"""

from __future__ import annotations

from .base import StorageBase
from .entries import TimeEntryMixin
from .webhook import WebhookMixin


class TimeTrackerStorage(WebhookMixin, TimeEntryMixin, StorageBase):
    """Async storage for webhook configs, delivery records and time entries.

    Uses an embedded on-disk Qdrant store by default, or a Qdrant server
    when ``TIMETRACKER_QDRANT_URL`` is set.

    This class combines functionality from:
    - WebhookMixin: webhook configs and delivery records
    - TimeEntryMixin: time entries and aggregate queries

    Attributes:
        client: Async Qdrant client instance.
    """
