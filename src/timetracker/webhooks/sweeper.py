"""Periodic re-submission of due and orphaned delivery records.

Retrying records are re-queued once ``next_retry_at`` passes. Pending
records older than ``webhook_stale_pending_seconds`` were never picked up
by a worker (full queue, shutdown before drain) and are re-queued too.
"""

from __future__ import annotations

import asyncio
import contextlib
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from timetracker.config import settings
from timetracker.logging import delivery_fields, get_logger
from timetracker.models import utc_now

if TYPE_CHECKING:
    import structlog

    from .dispatcher import WebhookDispatcher


class RetrySweeper:
    """Hands due delivery records back to the dispatcher's workers."""

    def __init__(
        self,
        storage: Any,
        dispatcher: WebhookDispatcher,
        interval_seconds: float | None = None,
        batch_size: int | None = None,
        stale_pending_seconds: int | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._storage = storage
        self._dispatcher = dispatcher
        self._interval = interval_seconds or settings.webhook_sweep_interval_seconds
        self._batch_size = batch_size or settings.webhook_sweep_batch_size
        self._stale_after = timedelta(
            seconds=stale_pending_seconds or settings.webhook_stale_pending_seconds
        )
        self._logger = logger or get_logger(__name__)
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def sweep_once(self, now: datetime | None = None) -> int:
        """Re-submit every record that is due at ``now``.

        Records whose webhook was deleted or deactivated are failed without
        an HTTP attempt.

        Returns:
            Number of records handed to the dispatcher.
        """
        now = now or utc_now()
        deliveries = await self._storage.get_due_deliveries(
            now=now,
            stale_before=now - self._stale_after,
            limit=self._batch_size,
        )

        submitted = 0
        for delivery in deliveries:
            if self._dispatcher.is_in_flight(delivery.id):
                continue

            webhook = await self._storage.get_webhook(delivery.webhook_id)
            if webhook is None or not webhook.is_active:
                reason = "Webhook deleted" if webhook is None else "Webhook inactive"
                delivery.mark_failed(error=reason, at=now, count_attempt=False)
                await self._storage.update_delivery(delivery)
                self._logger.info(
                    "webhook_delivery_abandoned",
                    reason=reason,
                    **delivery_fields(delivery, webhook),
                )
                continue

            if self._dispatcher.submit(delivery, webhook):
                submitted += 1

        if deliveries:
            self._logger.debug(
                "webhook_sweep_completed", due=len(deliveries), submitted=submitted
            )
        return submitted

    async def start(self) -> None:
        """Start sweeping in the background."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="webhook-retry-sweeper")
        self._logger.info("webhook_sweeper_started", interval_seconds=self._interval)

    async def stop(self) -> None:
        """Cancel the background sweep."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        self._logger.info("webhook_sweeper_stopped")

    async def _loop(self) -> None:
        while True:
            try:
                await self.sweep_once()
            except Exception as e:
                self._logger.exception("webhook_sweep_failed", error=str(e))
            await asyncio.sleep(self._interval)
