"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from qdrant_client import AsyncQdrantClient

from timetracker.models import (
    ClientSnapshot,
    MonthlyTotals,
    ProjectSnapshot,
    TimeEntrySnapshot,
    WebhookConfig,
    WebhookDelivery,
    WebhookEvent,
)
from timetracker.storage import TimeTrackerStorage

FIXED_NOW = datetime(2024, 1, 15, 10, 30, tzinfo=UTC)


@pytest.fixture
def mock_storage() -> AsyncMock:
    """Create a mock storage instance with empty results."""
    storage = AsyncMock()
    storage.get_webhooks_for_event = AsyncMock(return_value=[])
    storage.get_webhook = AsyncMock(return_value=None)
    storage.find_webhook_by_name = AsyncMock(return_value=None)
    storage.log_delivery = AsyncMock(side_effect=lambda d: d.id)
    storage.update_delivery = AsyncMock(side_effect=lambda d: d.id)
    storage.get_due_deliveries = AsyncMock(return_value=[])
    storage.total_minutes_for_project = AsyncMock(return_value=0)
    storage.monthly_totals = AsyncMock(return_value=MonthlyTotals())
    return storage


@pytest.fixture
def mock_logger() -> MagicMock:
    """Structured logger stand-in that records every call."""
    return MagicMock()


@pytest.fixture
def sample_webhook() -> WebhookConfig:
    """Create a sample webhook configuration."""
    return WebhookConfig(
        id="whk_test123",
        name="Billing",
        url="https://example.com/webhook",
        secret="test_secret",
        events=[WebhookEvent.TIME_ENTRY_CREATED, WebhookEvent.CLIENT_CREATED],
        retry_attempts=3,
        timeout_ms=5000,
    )


@pytest.fixture
def sample_delivery(sample_webhook: WebhookConfig) -> WebhookDelivery:
    """Create a pending delivery for the sample webhook."""
    return WebhookDelivery(
        id="dlv_test456",
        webhook_id=sample_webhook.id,
        event=WebhookEvent.CLIENT_CREATED,
        payload='{"event":"client_created","timestamp":"2024-01-15T10:30:00Z","data":{}}',
    )


@pytest.fixture
def client_snapshot() -> ClientSnapshot:
    return ClientSnapshot(
        id="client_1",
        name="Acme",
        hourly_rate=50.0,
        color="#FF0000",
        created_at=datetime(2024, 1, 1, tzinfo=UTC),
        updated_at=datetime(2024, 1, 2, tzinfo=UTC),
    )


@pytest.fixture
def project_snapshot(client_snapshot: ClientSnapshot) -> ProjectSnapshot:
    return ProjectSnapshot(
        id="project_1",
        name="Website",
        description="Redesign",
        hourly_rate=0.0,
        created_at=datetime(2024, 1, 3, tzinfo=UTC),
        updated_at=datetime(2024, 1, 4, tzinfo=UTC),
        client=client_snapshot,
    )


@pytest.fixture
def entry_snapshot(
    client_snapshot: ClientSnapshot, project_snapshot: ProjectSnapshot
) -> TimeEntrySnapshot:
    """A finished 90 minute entry priced at the client's rate."""
    return TimeEntrySnapshot(
        id="entry_1",
        description="Homepage layout",
        start_time=datetime(2024, 1, 15, 8, 0, tzinfo=UTC),
        end_time=datetime(2024, 1, 15, 9, 30, tzinfo=UTC),
        duration=90,
        created_at=datetime(2024, 1, 15, 8, 0, tzinfo=UTC),
        updated_at=datetime(2024, 1, 15, 9, 30, tzinfo=UTC),
        client=client_snapshot,
        project=project_snapshot,
    )


@pytest.fixture
async def storage():
    """Create an in-memory storage instance for testing.

    Uses qdrant-client's local mode with in-memory storage.
    """
    store = TimeTrackerStorage(prefix="test")
    store._client = AsyncQdrantClient(location=":memory:")
    await store._ensure_collections()

    yield store

    await store.close()
