"""Webhook storage operations.

Provides methods to store, retrieve, and manage webhook configurations
and their delivery records.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from qdrant_client import models

from timetracker.models import WebhookConfig, WebhookDelivery

from .base import match
from .retry import storage_retry

if TYPE_CHECKING:
    from timetracker.models import DeliveryStatus, WebhookEvent


class WebhookMixin:
    """Mixin providing webhook and delivery operations.

    This mixin expects the following from the base class:
    - _upsert(name, record_id, payload)
    - _retrieve(name, record_id) -> dict | None
    - _delete_ids(name, record_ids)
    - _scroll_all(name, scroll_filter, limit) -> list[dict]
    - _count(name, count_filter) -> int
    - _model_to_payload / _payload_to_model
    - client: AsyncQdrantClient
    """

    _upsert: Any
    _retrieve: Any
    _delete_ids: Any
    _scroll_all: Any
    _count: Any
    _model_to_payload: Any
    _payload_to_model: Any
    _collection_name: Any
    client: Any

    # -- webhook configs -------------------------------------------------

    @storage_retry
    async def store_webhook(self, webhook: WebhookConfig) -> str:
        """Insert or replace a webhook configuration.

        Args:
            webhook: WebhookConfig to store.

        Returns:
            The webhook ID.
        """
        payload = self._model_to_payload(webhook, name=webhook.name.casefold())
        await self._upsert("webhooks", webhook.id, payload)
        return webhook.id

    async def get_webhook(self, webhook_id: str) -> WebhookConfig | None:
        """Get a webhook by ID, or None if it does not exist."""
        payload = await self._retrieve("webhooks", webhook_id)
        if payload is None:
            return None
        webhook: WebhookConfig = self._payload_to_model(payload, WebhookConfig)
        return webhook

    async def list_webhooks(self, active_only: bool = False) -> list[WebhookConfig]:
        """List webhooks, newest first.

        Args:
            active_only: If True, only return active webhooks.
        """
        scroll_filter = models.Filter(must=[match("is_active", True)]) if active_only else None
        payloads = await self._scroll_all("webhooks", scroll_filter)

        webhooks: list[WebhookConfig] = [
            self._payload_to_model(p, WebhookConfig) for p in payloads
        ]
        webhooks.sort(key=lambda w: w.created_at, reverse=True)
        return webhooks

    async def get_webhooks_for_event(self, event: WebhookEvent) -> list[WebhookConfig]:
        """Get all active webhooks subscribed to an event."""
        payloads = await self._scroll_all(
            "webhooks",
            models.Filter(must=[match("is_active", True), match("events", event.value)]),
        )
        webhooks: list[WebhookConfig] = [
            self._payload_to_model(p, WebhookConfig) for p in payloads
        ]
        return [wh for wh in webhooks if wh.subscribes_to(event)]

    async def find_webhook_by_name(
        self,
        name: str,
        exclude_id: str | None = None,
    ) -> WebhookConfig | None:
        """Find a webhook whose name matches case-insensitively.

        Args:
            name: Name to look up.
            exclude_id: Webhook to ignore (the one being updated).
        """
        payloads = await self._scroll_all(
            "webhooks",
            models.Filter(must=[match("idx_name", name.strip().casefold())]),
        )
        for payload in payloads:
            if payload.get("id") != exclude_id:
                webhook: WebhookConfig = self._payload_to_model(payload, WebhookConfig)
                return webhook
        return None

    @storage_retry
    async def delete_webhook(self, webhook_id: str) -> bool:
        """Delete a webhook and every delivery record it owns.

        Returns:
            True if the webhook existed.
        """
        existing = await self._retrieve("webhooks", webhook_id)
        if existing is None:
            return False

        await self.client.delete(
            collection_name=self._collection_name("webhook_deliveries"),
            points_selector=models.FilterSelector(
                filter=models.Filter(must=[match("webhook_id", webhook_id)]),
            ),
        )
        await self._delete_ids("webhooks", [webhook_id])
        return True

    # -- delivery records ------------------------------------------------

    @storage_retry
    async def log_delivery(self, delivery: WebhookDelivery) -> str:
        """Persist a delivery record (insert or replace).

        Returns:
            The delivery ID.
        """
        payload = self._model_to_payload(
            delivery,
            created=delivery.created_at.timestamp(),
            next_retry=delivery.next_retry_at.timestamp() if delivery.next_retry_at else None,
        )
        await self._upsert("webhook_deliveries", delivery.id, payload)
        return delivery.id

    async def update_delivery(self, delivery: WebhookDelivery) -> str:
        """Persist the current state of an existing delivery record."""
        result: str = await self.log_delivery(delivery)
        return result

    async def get_delivery(self, delivery_id: str) -> WebhookDelivery | None:
        """Get a delivery record by ID."""
        payload = await self._retrieve("webhook_deliveries", delivery_id)
        if payload is None:
            return None
        delivery: WebhookDelivery = self._payload_to_model(payload, WebhookDelivery)
        return delivery

    async def get_delivery_logs(
        self,
        webhook_id: str,
        status: DeliveryStatus | None = None,
        limit: int = 100,
    ) -> list[WebhookDelivery]:
        """Get delivery history for a webhook, newest first.

        Args:
            webhook_id: ID of the webhook.
            status: Optional status filter.
            limit: Maximum records to return.
        """
        conditions = [match("webhook_id", webhook_id)]
        if status is not None:
            conditions.append(match("status", status))

        payloads = await self._scroll_all("webhook_deliveries", models.Filter(must=conditions))
        deliveries: list[WebhookDelivery] = [
            self._payload_to_model(p, WebhookDelivery) for p in payloads
        ]
        deliveries.sort(key=lambda d: d.created_at, reverse=True)
        return deliveries[:limit]

    async def get_due_deliveries(
        self,
        now: datetime,
        stale_before: datetime,
        limit: int = 100,
    ) -> list[WebhookDelivery]:
        """Get deliveries that need another attempt.

        Returns retrying records whose ``next_retry_at`` has passed, and
        pending records created before ``stale_before`` (never picked up by a
        worker, e.g. because the queue was full or the app quit).

        Args:
            now: Current time.
            stale_before: Cutoff for orphaned pending records.
            limit: Maximum records to return.

        Returns:
            Deliveries ordered by when they became due.
        """
        retrying = await self._scroll_all(
            "webhook_deliveries",
            models.Filter(
                must=[
                    match("status", "retrying"),
                    models.FieldCondition(
                        key="idx_next_retry",
                        range=models.Range(lte=now.timestamp()),
                    ),
                ]
            ),
            limit,
        )
        pending = await self._scroll_all(
            "webhook_deliveries",
            models.Filter(
                must=[
                    match("status", "pending"),
                    models.FieldCondition(
                        key="idx_created",
                        range=models.Range(lt=stale_before.timestamp()),
                    ),
                ]
            ),
            limit,
        )

        deliveries: list[WebhookDelivery] = [
            self._payload_to_model(p, WebhookDelivery) for p in [*retrying, *pending]
        ]
        deliveries.sort(key=lambda d: d.next_retry_at or d.created_at)
        return deliveries[:limit]

    async def get_delivery_stats(self, webhook_id: str | None = None) -> dict[str, int]:
        """Count delivery records per status.

        Args:
            webhook_id: Restrict to one webhook. All webhooks when None.

        Returns:
            Mapping of every status to its record count.
        """
        counts: dict[str, int] = {}
        for status in _STATUSES:
            conditions = [match("status", status)]
            if webhook_id is not None:
                conditions.append(match("webhook_id", webhook_id))
            counts[status] = await self._count(
                "webhook_deliveries", models.Filter(must=conditions)
            )
        return counts


_STATUSES: tuple[str, ...] = ("pending", "delivered", "retrying", "failed")
