"""Webhook configuration surface.

Creates, edits and removes webhook subscriptions and exposes their
delivery history. All input is validated here before anything reaches the
store, so a ``WebhookConfig`` read back from storage is always valid.

Example:
    ```python
    service = WebhookService(storage)
    webhook = await service.create_webhook(
        name="Billing",
        url="https://billing.example.com/hooks",
        events=[WebhookEvent.INVOICE_CREATED],
        secret="s3cret",
    )
    history = await service.get_delivery_history(webhook.id)
    ```
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import httpx
import pydantic

from timetracker.config import Settings, settings as default_settings
from timetracker.exceptions import NotFoundError, ValidationError
from timetracker.models import (
    DeliveryStatus,
    WebhookConfig,
    WebhookDelivery,
    WebhookEvent,
    utc_now,
)
from timetracker.storage import TimeTrackerStorage

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset(
    {"name", "url", "secret", "events", "is_active", "retry_attempts", "timeout_ms"}
)


@dataclass
class WebhookService:
    """Validated CRUD over webhook configurations.

    Attributes:
        storage: Store holding webhooks and delivery records.
        settings: Limits and defaults for new webhooks.
    """

    storage: TimeTrackerStorage
    settings: Settings = field(default_factory=lambda: default_settings)

    async def create_webhook(
        self,
        name: str,
        url: str,
        events: Iterable[WebhookEvent | str],
        secret: str | None = None,
        is_active: bool = True,
        retry_attempts: int | None = None,
        timeout_ms: int | None = None,
    ) -> WebhookConfig:
        """Register a new webhook.

        Raises:
            ValidationError: If any value is invalid or the name is taken.
        """
        values: dict[str, Any] = {
            "name": await self._validate_name(name),
            "url": self._validate_url(url),
            "events": self._validate_events(events),
            "secret": secret,
            "is_active": is_active,
            "retry_attempts": self._validate_retry_attempts(
                self.settings.webhook_default_retry_attempts
                if retry_attempts is None
                else retry_attempts
            ),
            "timeout_ms": self._validate_timeout(
                self.settings.webhook_default_timeout_ms if timeout_ms is None else timeout_ms
            ),
        }
        webhook = _build_config(values)
        await self.storage.store_webhook(webhook)
        logger.info(
            "Created webhook %s (%s) for %d events", webhook.id, webhook.name, len(webhook.events)
        )
        return webhook

    async def update_webhook(self, webhook_id: str, **changes: Any) -> WebhookConfig:
        """Apply changes to an existing webhook.

        Args:
            webhook_id: Webhook to edit.
            **changes: Any of name, url, secret, events, is_active,
                retry_attempts, timeout_ms.

        Raises:
            NotFoundError: If the webhook does not exist.
            ValidationError: If a change is invalid.
        """
        webhook = await self.get_webhook(webhook_id)

        unknown = sorted(set(changes) - EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(unknown[0], "field cannot be changed")

        if "name" in changes:
            changes["name"] = await self._validate_name(changes["name"], exclude_id=webhook_id)
        if "url" in changes:
            changes["url"] = self._validate_url(changes["url"])
        if "events" in changes:
            changes["events"] = self._validate_events(changes["events"])
        if "retry_attempts" in changes:
            changes["retry_attempts"] = self._validate_retry_attempts(changes["retry_attempts"])
        if "timeout_ms" in changes:
            changes["timeout_ms"] = self._validate_timeout(changes["timeout_ms"])

        values = webhook.model_dump()
        values.update(changes)
        values["updated_at"] = utc_now()
        updated = _build_config(values)

        await self.storage.store_webhook(updated)
        logger.info("Updated webhook %s: %s", webhook_id, ", ".join(sorted(changes)) or "nothing")
        return updated

    async def delete_webhook(self, webhook_id: str) -> None:
        """Delete a webhook and its delivery history.

        Raises:
            NotFoundError: If the webhook does not exist.
        """
        if not await self.storage.delete_webhook(webhook_id):
            raise NotFoundError("webhook", webhook_id)
        logger.info("Deleted webhook %s", webhook_id)

    async def get_webhook(self, webhook_id: str) -> WebhookConfig:
        """Get a webhook by ID.

        Raises:
            NotFoundError: If the webhook does not exist.
        """
        webhook = await self.storage.get_webhook(webhook_id)
        if webhook is None:
            raise NotFoundError("webhook", webhook_id)
        return webhook

    async def list_webhooks(self, active_only: bool = False) -> list[WebhookConfig]:
        return await self.storage.list_webhooks(active_only=active_only)

    async def get_delivery_history(
        self,
        webhook_id: str,
        status: DeliveryStatus | None = None,
        limit: int = 100,
    ) -> list[WebhookDelivery]:
        """Delivery records of a webhook, newest first.

        Raises:
            NotFoundError: If the webhook does not exist.
        """
        await self.get_webhook(webhook_id)
        return await self.storage.get_delivery_logs(webhook_id, status=status, limit=limit)

    async def get_delivery_stats(self, webhook_id: str | None = None) -> dict[str, int]:
        """Record counts per delivery status, for one webhook or all of them."""
        if webhook_id is not None:
            await self.get_webhook(webhook_id)
        return await self.storage.get_delivery_stats(webhook_id)

    # -- validation --------------------------------------------------------

    async def _validate_name(self, name: str, exclude_id: str | None = None) -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationError("name", "Webhook name is required")
        limit = self.settings.webhook_name_max_length
        if len(name) > limit:
            raise ValidationError("name", f"Webhook name must be {limit} characters or less")
        if await self.storage.find_webhook_by_name(name, exclude_id=exclude_id) is not None:
            raise ValidationError("name", f"A webhook named '{name}' already exists")
        return name

    @staticmethod
    def _validate_url(url: str) -> str:
        url = (url or "").strip()
        if not url:
            raise ValidationError("url", "Webhook URL is required")
        try:
            parsed = httpx.URL(url)
        except httpx.InvalidURL as e:
            raise ValidationError("url", f"Invalid URL format: {e}") from e
        if not parsed.scheme or not parsed.host:
            raise ValidationError("url", "Invalid URL format")
        if parsed.scheme != "https":
            raise ValidationError("url", "Webhook URL must use HTTPS")
        return url

    @staticmethod
    def _validate_events(events: Iterable[WebhookEvent | str]) -> list[WebhookEvent]:
        if isinstance(events, str | WebhookEvent):
            events = [events]
        parsed: list[WebhookEvent] = []
        for event in events or []:
            try:
                parsed.append(WebhookEvent(event))
            except ValueError as e:
                raise ValidationError("events", f"Unknown event: {event}") from e
        if not parsed:
            raise ValidationError("events", "At least one event must be selected")
        return parsed

    @staticmethod
    def _validate_retry_attempts(value: int) -> int:
        if value < 1:
            raise ValidationError("retry_attempts", "Retry attempts must be at least 1")
        return value

    @staticmethod
    def _validate_timeout(value: int) -> int:
        if value <= 0:
            raise ValidationError("timeout_ms", "Timeout must be greater than 0")
        return value


def _build_config(values: dict[str, Any]) -> WebhookConfig:
    """Construct a WebhookConfig, reporting model errors as ValidationError."""
    try:
        return WebhookConfig.model_validate(values)
    except pydantic.ValidationError as e:
        first = e.errors()[0]
        loc = first.get("loc") or ("webhook",)
        raise ValidationError(str(loc[0]), first.get("msg", "invalid value")) from e
