"""Tests for webhook configuration and delivery record models."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from timetracker.exceptions import DeliveryStateError
from timetracker.models import (
    ALL_EVENTS,
    EVENT_PAYLOAD_KINDS,
    WebhookConfig,
    WebhookDelivery,
    WebhookEvent,
)

NOW = datetime(2024, 1, 15, 10, 30, tzinfo=UTC)


def make_delivery(**overrides) -> WebhookDelivery:
    values = {
        "webhook_id": "whk_1",
        "event": WebhookEvent.CLIENT_CREATED,
        "payload": "{}",
    }
    values.update(overrides)
    return WebhookDelivery(**values)


class TestWebhookEvent:
    """Tests for the event enumeration."""

    def test_ten_events(self) -> None:
        assert len(ALL_EVENTS) == 10

    def test_wire_names(self) -> None:
        assert WebhookEvent.TIME_ENTRY_STARTED.value == "time_entry_started"
        assert WebhookEvent.INVOICE_CREATED.value == "on_invoice_created"

    def test_every_event_has_exactly_one_payload_kind(self) -> None:
        assert set(EVENT_PAYLOAD_KINDS) == set(ALL_EVENTS)

    def test_parse_from_string(self) -> None:
        assert WebhookEvent("project_updated") is WebhookEvent.PROJECT_UPDATED


class TestWebhookConfig:
    """Tests for WebhookConfig validation."""

    def test_defaults(self) -> None:
        webhook = WebhookConfig(
            name="Hook",
            url="https://example.com/hook",
            events=[WebhookEvent.CLIENT_CREATED],
        )

        assert webhook.id.startswith("whk_")
        assert webhook.is_active is True
        assert webhook.retry_attempts == 3
        assert webhook.timeout_ms == 30000
        assert webhook.timeout_seconds == 30.0
        assert webhook.secret is None

    def test_http_url_rejected(self) -> None:
        with pytest.raises(ValidationError, match="https"):
            WebhookConfig(
                name="Hook",
                url="http://example.com/hook",
                events=[WebhookEvent.CLIENT_CREATED],
            )

    def test_empty_events_rejected(self) -> None:
        with pytest.raises(ValidationError):
            WebhookConfig(name="Hook", url="https://example.com/hook", events=[])

    def test_blank_name_rejected(self) -> None:
        with pytest.raises(ValidationError):
            WebhookConfig(
                name="   ",
                url="https://example.com/hook",
                events=[WebhookEvent.CLIENT_CREATED],
            )

    def test_long_name_rejected(self) -> None:
        with pytest.raises(ValidationError):
            WebhookConfig(
                name="x" * 101,
                url="https://example.com/hook",
                events=[WebhookEvent.CLIENT_CREATED],
            )

    def test_zero_retry_attempts_rejected(self) -> None:
        with pytest.raises(ValidationError):
            WebhookConfig(
                name="Hook",
                url="https://example.com/hook",
                events=[WebhookEvent.CLIENT_CREATED],
                retry_attempts=0,
            )

    def test_zero_timeout_rejected(self) -> None:
        with pytest.raises(ValidationError):
            WebhookConfig(
                name="Hook",
                url="https://example.com/hook",
                events=[WebhookEvent.CLIENT_CREATED],
                timeout_ms=0,
            )

    def test_empty_secret_normalized_to_none(self) -> None:
        webhook = WebhookConfig(
            name="Hook",
            url="https://example.com/hook",
            events=[WebhookEvent.CLIENT_CREATED],
            secret="",
        )
        assert webhook.secret is None

    def test_events_deduplicated_in_order(self) -> None:
        webhook = WebhookConfig(
            name="Hook",
            url="https://example.com/hook",
            events=["client_created", "project_created", "client_created"],
        )
        assert webhook.events == [WebhookEvent.CLIENT_CREATED, WebhookEvent.PROJECT_CREATED]

    def test_subscribes_to(self, sample_webhook: WebhookConfig) -> None:
        assert sample_webhook.subscribes_to(WebhookEvent.CLIENT_CREATED)
        assert not sample_webhook.subscribes_to(WebhookEvent.INVOICE_CREATED)

    def test_inactive_subscribes_to_nothing(self, sample_webhook: WebhookConfig) -> None:
        sample_webhook.is_active = False
        assert not sample_webhook.subscribes_to(WebhookEvent.CLIENT_CREATED)


class TestWebhookDelivery:
    """Tests for the delivery record state machine."""

    def test_new_record_is_pending(self) -> None:
        delivery = make_delivery()

        assert delivery.id.startswith("dlv_")
        assert delivery.status == "pending"
        assert delivery.attempts == 0
        assert delivery.next_retry_at is None
        assert not delivery.is_terminal

    def test_payload_is_immutable(self) -> None:
        delivery = make_delivery()
        with pytest.raises(ValidationError):
            delivery.payload = '{"changed":true}'

    def test_mark_delivered(self) -> None:
        delivery = make_delivery().mark_delivered(200, at=NOW)

        assert delivery.status == "delivered"
        assert delivery.response_code == 200
        assert delivery.attempts == 0
        assert delivery.last_attempt_at == NOW
        assert delivery.completed_at == NOW
        assert delivery.is_terminal

    def test_mark_retrying_counts_attempt(self) -> None:
        next_at = NOW + timedelta(minutes=2)
        delivery = make_delivery().mark_retrying(next_at, "HTTP 500", response_code=500, at=NOW)

        assert delivery.status == "retrying"
        assert delivery.attempts == 1
        assert delivery.next_retry_at == next_at
        assert delivery.response_code == 500
        assert delivery.error == "HTTP 500"
        assert not delivery.is_terminal

    def test_mark_failed_clears_next_retry(self) -> None:
        delivery = make_delivery().mark_retrying(NOW + timedelta(minutes=2), "HTTP 500", at=NOW)
        delivery.mark_failed("HTTP 503", response_code=503, at=NOW)

        assert delivery.status == "failed"
        assert delivery.attempts == 2
        assert delivery.next_retry_at is None
        assert delivery.is_terminal

    def test_mark_failed_without_attempt(self) -> None:
        delivery = make_delivery().mark_failed("Webhook inactive", at=NOW, count_attempt=False)

        assert delivery.status == "failed"
        assert delivery.attempts == 0
        assert delivery.last_attempt_at is None

    def test_delivered_is_terminal(self) -> None:
        delivery = make_delivery().mark_delivered(204)

        with pytest.raises(DeliveryStateError):
            delivery.mark_retrying(NOW, "late failure")
        with pytest.raises(DeliveryStateError):
            delivery.mark_failed("late failure")

    def test_failed_is_terminal(self) -> None:
        delivery = make_delivery().mark_failed("boom")

        with pytest.raises(DeliveryStateError):
            delivery.mark_delivered(200)

    def test_is_due(self) -> None:
        delivery = make_delivery().mark_retrying(NOW, "HTTP 500", at=NOW - timedelta(minutes=2))

        assert delivery.is_due(NOW)
        assert not delivery.is_due(NOW - timedelta(seconds=1))

    def test_pending_is_never_due(self) -> None:
        assert not make_delivery().is_due(NOW)

    def test_json_round_trip(self) -> None:
        delivery = make_delivery().mark_retrying(NOW, "HTTP 500", at=NOW)
        restored = WebhookDelivery.model_validate(delivery.model_dump(mode="json"))

        assert restored == delivery
