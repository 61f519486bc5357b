"""Tests for time tracker structured logging."""

import io
import json
import logging
from datetime import UTC, datetime

from timetracker.logging import (
    bind_context,
    clear_context,
    configure_logging,
    delivery_fields,
    get_logger,
    unbind_context,
)
from timetracker.models import WebhookConfig, WebhookDelivery, WebhookEvent


class TestConfigureLogging:
    """Tests for logging configuration."""

    def test_configure_with_defaults(self):
        """Should configure with INFO level and JSON format by default."""
        configure_logging()
        get_logger("test").info("test message")

    def test_configure_with_text_format(self):
        configure_logging(level="DEBUG", format="text")
        get_logger("test").debug("text format message")

    def test_stdlib_records_pass_through(self):
        """Library modules logging through stdlib reach the configured stream."""
        stream = io.StringIO()
        configure_logging(level="INFO", format="json", stream=stream)

        logging.getLogger("timetracker.test").info("plain stdlib message")
        output = stream.getvalue().strip().splitlines()

        assert output[-1] == "plain stdlib message"
        configure_logging()


class TestContext:
    """Tests for context binding helpers."""

    def test_bind_and_clear(self):
        bind_context(request_id="req_1", webhook_id="whk_1")
        unbind_context("request_id")
        clear_context()

    def test_json_renderer_merges_context(self):
        stream = io.StringIO()
        configure_logging(level="INFO", format="json", stream=stream)
        structured = get_logger("timetracker.context")

        bind_context(trigger="invoice")
        try:
            structured.new().info("webhook_delivered", delivery_id="dlv_1")
        finally:
            clear_context()

        record = json.loads(stream.getvalue().strip().splitlines()[-1])
        assert record["event"] == "webhook_delivered"
        assert record["delivery_id"] == "dlv_1"
        assert record["trigger"] == "invoice"
        assert record["level"] == "info"
        configure_logging()


class TestDeliveryFields:
    """Tests for delivery log field extraction."""

    def test_minimal_fields(self):
        delivery = WebhookDelivery(
            id="dlv_1", webhook_id="whk_1", event=WebhookEvent.CLIENT_CREATED, payload="{}"
        )

        assert delivery_fields(delivery) == {
            "delivery_id": "dlv_1",
            "webhook_id": "whk_1",
            "event": "client_created",
            "status": "pending",
            "attempts": 0,
        }

    def test_retry_and_webhook_fields(self):
        webhook = WebhookConfig(
            id="whk_1",
            name="Billing",
            url="https://example.com/hook",
            events=[WebhookEvent.CLIENT_CREATED],
        )
        delivery = WebhookDelivery(
            id="dlv_1", webhook_id="whk_1", event=WebhookEvent.CLIENT_CREATED, payload="{}"
        )
        delivery.mark_retrying(
            datetime(2024, 1, 15, 10, 32, tzinfo=UTC), "HTTP 500", response_code=500
        )

        fields = delivery_fields(delivery, webhook)

        assert fields["status"] == "retrying"
        assert fields["attempts"] == 1
        assert fields["response_code"] == 500
        assert fields["next_retry_at"] == "2024-01-15T10:32:00+00:00"
        assert fields["webhook_name"] == "Billing"
        assert fields["url"] == "https://example.com/hook"
