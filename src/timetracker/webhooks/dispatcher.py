"""Webhook dispatcher: fans domain events out to subscribed webhooks.

``trigger`` is called by domain services after a successful mutation. It
creates one pending delivery record per matching webhook and hands the
record to a bounded queue drained by a fixed pool of worker tasks, so the
caller never waits on an HTTP round-trip.

Example:
    ```python
    async with WebhookDispatcher(storage) as dispatcher:
        await dispatcher.trigger(WebhookEvent.CLIENT_CREATED, client)
    ```
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING, Any

from timetracker.config import settings
from timetracker.logging import delivery_fields, get_logger
from timetracker.models import WebhookConfig, WebhookDelivery, WebhookEvent

from .delivery import DeliveryExecutor
from .payload import PayloadBuilder

if TYPE_CHECKING:
    import structlog

    from timetracker.models import DomainSnapshot


class WebhookDispatcher:
    """Dispatches domain events to registered webhooks.

    Handles:
    - Finding active webhooks subscribed to an event
    - Building the payload once per event occurrence
    - Persisting a pending delivery record per webhook
    - Queueing records for the delivery workers
    """

    def __init__(
        self,
        storage: Any,
        executor: DeliveryExecutor | None = None,
        payload_builder: PayloadBuilder | None = None,
        workers: int | None = None,
        queue_size: int | None = None,
        drain_timeout: float | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            storage: Store providing webhook lookups and delivery persistence.
            executor: Delivery executor. Built from ``storage`` when omitted.
            payload_builder: Payload builder. Built from ``storage`` when omitted.
            workers: Concurrent delivery workers. Defaults to settings.webhook_workers.
            queue_size: Queue capacity. Defaults to settings.webhook_queue_size.
            drain_timeout: Seconds ``stop`` waits for queued work.
            logger: Structured logger for dispatch outcomes.
        """
        self._storage = storage
        self._logger = logger or get_logger(__name__)
        self._executor = executor or DeliveryExecutor(storage, logger=self._logger)
        self._builder = payload_builder or PayloadBuilder(storage)
        self._workers = workers or settings.webhook_workers
        self._drain_timeout = (
            settings.webhook_drain_timeout_seconds if drain_timeout is None else drain_timeout
        )
        self._queue: asyncio.Queue[tuple[WebhookDelivery, WebhookConfig]] = asyncio.Queue(
            maxsize=queue_size or settings.webhook_queue_size
        )
        self._in_flight: set[str] = set()
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def running(self) -> bool:
        """True while worker tasks are active."""
        return bool(self._tasks)

    @property
    def queued(self) -> int:
        """Number of deliveries waiting for a worker."""
        return self._queue.qsize()

    async def start(self) -> None:
        """Start the worker pool."""
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._worker(), name=f"webhook-worker-{i}")
            for i in range(self._workers)
        ]
        self._logger.info("webhook_dispatcher_started", workers=self._workers)

    async def stop(self, drain: bool = True) -> None:
        """Stop the worker pool.

        Args:
            drain: Wait up to the drain timeout for queued deliveries first.
                Anything still queued afterwards stays pending in the store and
                is re-submitted by the retry sweeper.
        """
        if drain and self._tasks:
            try:
                await asyncio.wait_for(self._queue.join(), timeout=self._drain_timeout)
            except TimeoutError:
                self._logger.warning("webhook_dispatcher_drain_timeout", queued=self.queued)

        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks = []
        self._logger.info("webhook_dispatcher_stopped", queued=self.queued)

    async def __aenter__(self) -> WebhookDispatcher:
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.stop()

    async def trigger(self, event: WebhookEvent, data: DomainSnapshot) -> list[str]:
        """Fan an event out to every active, subscribed webhook.

        Never raises: failures are logged so a webhook problem cannot break
        the domain operation that fired the event.

        Args:
            event: Event kind.
            data: Snapshot variant mapped to ``event``.

        Returns:
            IDs of the delivery records created.
        """
        try:
            event = WebhookEvent(event)
            webhooks = await self._storage.get_webhooks_for_event(event)
            if not webhooks:
                self._logger.debug("webhook_no_subscribers", event=event.value)
                return []

            payload = await self._builder.build(event, data)
        except Exception as e:
            self._logger.exception("webhook_trigger_failed", event=str(event), error=str(e))
            return []

        results = await asyncio.gather(
            *(self._fan_out(webhook, event, payload) for webhook in webhooks),
            return_exceptions=True,
        )

        delivery_ids: list[str] = []
        for webhook, result in zip(webhooks, results, strict=True):
            if isinstance(result, BaseException):
                self._logger.error(
                    "webhook_delivery_not_created",
                    webhook_id=webhook.id,
                    event=event.value,
                    error=str(result),
                )
            else:
                delivery_ids.append(result)
        return delivery_ids

    async def _fan_out(self, webhook: WebhookConfig, event: WebhookEvent, payload: str) -> str:
        """Persist a pending delivery record for one webhook and queue it."""
        delivery = WebhookDelivery(webhook_id=webhook.id, event=event, payload=payload)
        await self._storage.log_delivery(delivery)
        self._logger.debug("webhook_delivery_created", **delivery_fields(delivery, webhook))
        self.submit(delivery, webhook)
        return delivery.id

    def submit(self, delivery: WebhookDelivery, webhook: WebhookConfig) -> bool:
        """Queue a delivery record for a worker.

        A record already queued or being delivered is not queued again, so a
        record's attempts never overlap.

        Returns:
            True if queued. False if already in flight or the queue is full.
        """
        if delivery.id in self._in_flight:
            return False
        try:
            self._queue.put_nowait((delivery, webhook))
        except asyncio.QueueFull:
            self._logger.warning("webhook_queue_full", **delivery_fields(delivery, webhook))
            return False
        self._in_flight.add(delivery.id)
        return True

    def is_in_flight(self, delivery_id: str) -> bool:
        """True if the record is queued or being delivered."""
        return delivery_id in self._in_flight

    async def has_active_subscribers(self, event: WebhookEvent) -> bool:
        """True if at least one active webhook subscribes to ``event``."""
        webhooks = await self._storage.get_webhooks_for_event(WebhookEvent(event))
        return bool(webhooks)

    async def _worker(self) -> None:
        while True:
            delivery, webhook = await self._queue.get()
            try:
                await self._executor.execute(delivery, webhook)
            except Exception as e:
                self._logger.exception(
                    "webhook_worker_error", error=str(e), **delivery_fields(delivery, webhook)
                )
            finally:
                self._in_flight.discard(delivery.id)
                self._queue.task_done()
