"""Storage backends for the time tracker.

Persists webhook configurations, delivery records and time entries to
Qdrant (embedded local mode by default).

Example:
    ```python
    from timetracker.storage import TimeTrackerStorage

    async with TimeTrackerStorage() as storage:
        await storage.log_delivery(delivery)
    ```
"""

from .base import COLLECTION_NAMES
from .client import TimeTrackerStorage
from .retry import storage_retry

__all__ = [
    "COLLECTION_NAMES",
    "TimeTrackerStorage",
    "storage_retry",
]
