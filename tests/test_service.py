"""Tests for webhook configuration CRUD and validation."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from timetracker.exceptions import NotFoundError, ValidationError
from timetracker.models import WebhookConfig, WebhookEvent
from timetracker.webhooks import WebhookService


@pytest.fixture
def service(mock_storage: AsyncMock) -> WebhookService:
    mock_storage.delete_webhook = AsyncMock(return_value=True)
    mock_storage.list_webhooks = AsyncMock(return_value=[])
    mock_storage.get_delivery_logs = AsyncMock(return_value=[])
    mock_storage.get_delivery_stats = AsyncMock(
        return_value={"pending": 0, "delivered": 2, "retrying": 1, "failed": 0}
    )
    return WebhookService(mock_storage)


class TestCreateWebhook:
    """Tests for WebhookService.create_webhook."""

    async def test_creates_with_defaults(
        self, service: WebhookService, mock_storage: AsyncMock
    ) -> None:
        webhook = await service.create_webhook(
            name="  Billing  ",
            url="https://billing.example.com/hooks",
            events=["on_invoice_created"],
        )

        assert webhook.name == "Billing"
        assert webhook.events == [WebhookEvent.INVOICE_CREATED]
        assert webhook.retry_attempts == 3
        assert webhook.timeout_ms == 30000
        assert webhook.is_active is True
        mock_storage.store_webhook.assert_awaited_once_with(webhook)

    async def test_custom_limits_and_secret(self, service: WebhookService) -> None:
        webhook = await service.create_webhook(
            name="Billing",
            url="https://billing.example.com/hooks",
            events=[WebhookEvent.CLIENT_CREATED, WebhookEvent.CLIENT_UPDATED],
            secret="s3cret",
            retry_attempts=5,
            timeout_ms=1000,
        )

        assert webhook.secret == "s3cret"
        assert webhook.retry_attempts == 5
        assert webhook.timeout_seconds == 1.0

    @pytest.mark.parametrize(
        ("kwargs", "field"),
        [
            ({"name": ""}, "name"),
            ({"name": "   "}, "name"),
            ({"name": "x" * 101}, "name"),
            ({"url": ""}, "url"),
            ({"url": "not a url"}, "url"),
            ({"url": "http://example.com/hook"}, "url"),
            ({"url": "ftp://example.com/hook"}, "url"),
            ({"events": []}, "events"),
            ({"events": ["memo_created"]}, "events"),
            ({"retry_attempts": 0}, "retry_attempts"),
            ({"timeout_ms": 0}, "timeout_ms"),
        ],
    )
    async def test_invalid_input_rejected(
        self,
        service: WebhookService,
        mock_storage: AsyncMock,
        kwargs: dict,
        field: str,
    ) -> None:
        values = {
            "name": "Billing",
            "url": "https://example.com/hook",
            "events": [WebhookEvent.CLIENT_CREATED],
        }
        values.update(kwargs)

        with pytest.raises(ValidationError) as exc_info:
            await service.create_webhook(**values)

        assert exc_info.value.field == field
        mock_storage.store_webhook.assert_not_awaited()

    async def test_duplicate_name_rejected(
        self,
        service: WebhookService,
        mock_storage: AsyncMock,
        sample_webhook: WebhookConfig,
    ) -> None:
        mock_storage.find_webhook_by_name.return_value = sample_webhook

        with pytest.raises(ValidationError, match="already exists"):
            await service.create_webhook(
                name="BILLING",
                url="https://example.com/hook",
                events=[WebhookEvent.CLIENT_CREATED],
            )

        mock_storage.find_webhook_by_name.assert_awaited_once_with("BILLING", exclude_id=None)


class TestUpdateWebhook:
    """Tests for WebhookService.update_webhook."""

    async def test_applies_changes(
        self,
        service: WebhookService,
        mock_storage: AsyncMock,
        sample_webhook: WebhookConfig,
    ) -> None:
        mock_storage.get_webhook.return_value = sample_webhook

        updated = await service.update_webhook(
            sample_webhook.id, is_active=False, events=["project_created"]
        )

        assert updated.id == sample_webhook.id
        assert updated.is_active is False
        assert updated.events == [WebhookEvent.PROJECT_CREATED]
        assert updated.updated_at >= sample_webhook.updated_at
        assert updated.created_at == sample_webhook.created_at
        mock_storage.store_webhook.assert_awaited_once_with(updated)

    async def test_rename_excludes_itself(
        self,
        service: WebhookService,
        mock_storage: AsyncMock,
        sample_webhook: WebhookConfig,
    ) -> None:
        mock_storage.get_webhook.return_value = sample_webhook

        updated = await service.update_webhook(sample_webhook.id, name="billing")

        assert updated.name == "billing"
        mock_storage.find_webhook_by_name.assert_awaited_once_with(
            "billing", exclude_id=sample_webhook.id
        )

    async def test_missing_webhook(self, service: WebhookService) -> None:
        with pytest.raises(NotFoundError):
            await service.update_webhook("whk_missing", is_active=False)

    async def test_unknown_field_rejected(
        self,
        service: WebhookService,
        mock_storage: AsyncMock,
        sample_webhook: WebhookConfig,
    ) -> None:
        mock_storage.get_webhook.return_value = sample_webhook

        with pytest.raises(ValidationError) as exc_info:
            await service.update_webhook(sample_webhook.id, id="whk_other")

        assert exc_info.value.field == "id"

    async def test_invalid_url_rejected(
        self,
        service: WebhookService,
        mock_storage: AsyncMock,
        sample_webhook: WebhookConfig,
    ) -> None:
        mock_storage.get_webhook.return_value = sample_webhook

        with pytest.raises(ValidationError):
            await service.update_webhook(sample_webhook.id, url="http://insecure.example.com")

        mock_storage.store_webhook.assert_not_awaited()


class TestQueries:
    """Tests for delete and read operations."""

    async def test_delete(self, service: WebhookService, mock_storage: AsyncMock) -> None:
        await service.delete_webhook("whk_test123")
        mock_storage.delete_webhook.assert_awaited_once_with("whk_test123")

    async def test_delete_missing(self, service: WebhookService, mock_storage: AsyncMock) -> None:
        mock_storage.delete_webhook.return_value = False

        with pytest.raises(NotFoundError) as exc_info:
            await service.delete_webhook("whk_missing")

        assert exc_info.value.resource_id == "whk_missing"

    async def test_get_missing(self, service: WebhookService) -> None:
        with pytest.raises(NotFoundError):
            await service.get_webhook("whk_missing")

    async def test_delivery_history(
        self,
        service: WebhookService,
        mock_storage: AsyncMock,
        sample_webhook: WebhookConfig,
    ) -> None:
        mock_storage.get_webhook.return_value = sample_webhook

        await service.get_delivery_history(sample_webhook.id, status="failed", limit=10)

        mock_storage.get_delivery_logs.assert_awaited_once_with(
            sample_webhook.id, status="failed", limit=10
        )

    async def test_delivery_history_unknown_webhook(self, service: WebhookService) -> None:
        with pytest.raises(NotFoundError):
            await service.get_delivery_history("whk_missing")

    async def test_delivery_stats_all(self, service: WebhookService) -> None:
        stats = await service.get_delivery_stats()
        assert stats["delivered"] == 2

    async def test_list(self, service: WebhookService, mock_storage: AsyncMock) -> None:
        await service.list_webhooks(active_only=True)
        mock_storage.list_webhooks.assert_awaited_once_with(active_only=True)
