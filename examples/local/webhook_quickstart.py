#!/usr/bin/env python3
"""Webhook delivery demo.

Registers a webhook, fires a few domain events and shows how delivery
records move through their states:
1. A signed delivery that succeeds on the first attempt
2. A delivery that fails, is scheduled for retry, and succeeds on the sweep
3. Monthly invoices fanned out as on_invoice_created events

The receiving endpoint is simulated with an in-process httpx transport and
storage uses Qdrant's in-memory mode.

No external dependencies required - runs entirely locally.
"""

import asyncio
from datetime import UTC, datetime, timedelta

import httpx

from timetracker.invoices import create_invoices_for_month
from timetracker.logging import configure_logging
from timetracker.models import (
    ClientSnapshot,
    ProjectSnapshot,
    TimeEntrySnapshot,
    WebhookEvent,
)
from timetracker.storage import TimeTrackerStorage
from timetracker.webhooks import (
    SIGNATURE_HEADER,
    DeliveryExecutor,
    RetrySweeper,
    WebhookDispatcher,
    WebhookService,
    verify_signature,
)

SECRET = "demo-secret"


class FlakyReceiver:
    """Endpoint that rejects the first request per event kind, then accepts."""

    def __init__(self) -> None:
        self.seen: set[str] = set()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        event = request.headers["X-Webhook-Event"]
        signature = request.headers[SIGNATURE_HEADER]
        valid = verify_signature(request.content.decode(), SECRET, signature)
        print(f"  <- {event:<22} signature {'ok' if valid else 'INVALID'}")

        if event == "time_entry_created" and event not in self.seen:
            self.seen.add(event)
            return httpx.Response(503)
        return httpx.Response(200)


async def main() -> None:
    configure_logging(level="WARNING", format="text")

    print("=" * 70)
    print("Time Tracker Webhooks Demo")
    print("=" * 70)

    async with TimeTrackerStorage(path=":memory:", prefix="demo") as storage:
        service = WebhookService(storage)
        webhook = await service.create_webhook(
            name="Billing",
            url="https://billing.example.com/hooks",
            events=[
                WebhookEvent.CLIENT_CREATED,
                WebhookEvent.TIME_ENTRY_CREATED,
                WebhookEvent.INVOICE_CREATED,
            ],
            secret=SECRET,
        )
        print(f"\nRegistered webhook {webhook.id} for {[e.value for e in webhook.events]}")

        executor = DeliveryExecutor(storage, transport=httpx.MockTransport(FlakyReceiver()))
        dispatcher = WebhookDispatcher(storage, executor=executor, workers=2)
        sweeper = RetrySweeper(storage, dispatcher)

        client = ClientSnapshot(id="client_1", name="Acme", hourly_rate=50.0)
        project = ProjectSnapshot(id="project_1", name="Website", client=client)
        start = datetime.now(UTC) - timedelta(hours=2)
        entry = TimeEntrySnapshot(
            id="entry_1",
            description="Homepage layout",
            start_time=start,
            end_time=start + timedelta(minutes=90),
            duration=90,
            client=client,
            project=project,
        )
        await storage.store_time_entry(entry)

        async with dispatcher:
            print("\nTriggering events:")
            await dispatcher.trigger(WebhookEvent.CLIENT_CREATED, client)
            await dispatcher.trigger(WebhookEvent.TIME_ENTRY_CREATED, entry)

        await show_history(service, webhook.id, "After first attempts")

        # Pretend the backoff delay has elapsed.
        async with dispatcher:
            print("\nRunning retry sweep:")
            await sweeper.sweep_once(datetime.now(UTC) + timedelta(minutes=5))

        await show_history(service, webhook.id, "After retry sweep")

        async with dispatcher:
            print("\nCreating invoices for this month:")
            count = await create_invoices_for_month(storage, dispatcher)
            print(f"  {count} invoice(s) triggered")

        print(f"\nDelivery stats: {await service.get_delivery_stats(webhook.id)}")


async def show_history(service: WebhookService, webhook_id: str, title: str) -> None:
    print(f"\n{title}:")
    for delivery in await service.get_delivery_history(webhook_id):
        retry = delivery.next_retry_at.strftime("%H:%M") if delivery.next_retry_at else "-"
        print(
            f"  {delivery.event.value:<22} {delivery.status:<10} "
            f"attempts={delivery.attempts} code={delivery.response_code} next={retry}"
        )


if __name__ == "__main__":
    asyncio.run(main())
