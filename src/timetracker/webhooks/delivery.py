"""Webhook delivery with HMAC signatures and exponential backoff.

The executor performs one HTTP attempt for one delivery record and moves
the record along its state machine:

    2xx                          -> delivered
    non-2xx / network / timeout  -> retrying (attempts < budget) or failed

The updated record is persisted before ``execute`` returns.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Protocol

import httpx

from timetracker.config import settings
from timetracker.exceptions import DeliveryError, SigningError
from timetracker.logging import delivery_fields, get_logger
from timetracker.models import WebhookConfig, WebhookDelivery, utc_now

from .signing import SIGNATURE_HEADER, compute_signature, encode_body

if TYPE_CHECKING:
    import structlog


class DeliveryStore(Protocol):
    """Persistence the executor needs for delivery records."""

    async def update_delivery(self, delivery: WebhookDelivery) -> str: ...


def backoff_delay(attempts: int) -> timedelta:
    """Delay before the next attempt after ``attempts`` failures.

    Doubles per failure starting from two minutes:
    1 -> 2 min, 2 -> 4 min, 3 -> 8 min.
    """
    return timedelta(minutes=2**attempts)


def compute_next_retry(attempts: int, now: datetime) -> datetime:
    """When the next attempt is due after ``attempts`` failures."""
    return now + backoff_delay(attempts)


class DeliveryExecutor:
    """Performs single delivery attempts against a webhook endpoint.

    Example:
        ```python
        executor = DeliveryExecutor(storage)
        delivery = await executor.execute(delivery, webhook)
        print(delivery.status)  # delivered | retrying | failed
        ```
    """

    def __init__(
        self,
        storage: DeliveryStore,
        user_agent: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            storage: Store used to persist every transition.
            user_agent: User-Agent header. Defaults to settings.webhook_user_agent.
            transport: Optional httpx transport (tests use httpx.MockTransport).
            logger: Structured logger receiving one event per attempt outcome.
        """
        self._storage = storage
        self._user_agent = user_agent or settings.webhook_user_agent
        self._transport = transport
        self._logger = logger or get_logger(__name__)

    def build_headers(self, delivery: WebhookDelivery, webhook: WebhookConfig) -> dict[str, str]:
        """Request headers for an attempt, signed when the webhook has a secret.

        Raises:
            SigningError: If the secret cannot be used as an HMAC key.
        """
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self._user_agent,
            "X-Webhook-Event": delivery.event.value,
            "X-Webhook-Delivery-Id": delivery.id,
        }
        if webhook.secret:
            headers[SIGNATURE_HEADER] = compute_signature(delivery.payload, webhook.secret)
        return headers

    async def execute(self, delivery: WebhookDelivery, webhook: WebhookConfig) -> WebhookDelivery:
        """Run one delivery attempt and persist the outcome.

        Terminal records are returned unchanged without contacting the endpoint.
        A record whose attempts already meet the webhook's current budget (the
        budget was lowered while it waited) is failed without a request.

        Args:
            delivery: Record to attempt. Mutated in place.
            webhook: Owning webhook configuration.

        Returns:
            The updated delivery record.
        """
        if delivery.is_terminal:
            self._logger.debug("webhook_delivery_skipped", **delivery_fields(delivery))
            return delivery

        if delivery.attempts >= webhook.retry_attempts:
            delivery.mark_failed(error="Retry budget exhausted", count_attempt=False)
            self._logger.error(
                "webhook_delivery_failed",
                error=delivery.error,
                **delivery_fields(delivery, webhook),
            )
            await self._storage.update_delivery(delivery)
            return delivery

        try:
            status_code = await self._post(delivery, webhook)
        except DeliveryError as e:
            self._record_failure(delivery, webhook, e.message, e.status_code)
        except Exception as e:
            self._logger.exception(
                "webhook_delivery_error", error=str(e), **delivery_fields(delivery, webhook)
            )
            self._record_failure(delivery, webhook, f"Unexpected error: {e}", None)
        else:
            delivery.mark_delivered(status_code)
            self._logger.info("webhook_delivered", **delivery_fields(delivery, webhook))

        await self._storage.update_delivery(delivery)
        return delivery

    async def _post(self, delivery: WebhookDelivery, webhook: WebhookConfig) -> int:
        """Send the request and return the 2xx status code.

        Raises:
            DeliveryError: For signing failures, timeouts, transport errors and
                non-2xx responses.
        """
        try:
            headers = self.build_headers(delivery, webhook)
        except SigningError as e:
            raise DeliveryError(f"Signing failed: {e.message}") from e

        try:
            async with httpx.AsyncClient(
                timeout=webhook.timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    str(webhook.url),
                    content=encode_body(delivery.payload),
                    headers=headers,
                )
        except httpx.TimeoutException as e:
            raise DeliveryError(f"Request timed out after {webhook.timeout_ms} ms") from e
        except httpx.HTTPError as e:
            raise DeliveryError(f"Request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise DeliveryError(f"HTTP {response.status_code}", status_code=response.status_code)
        return response.status_code

    def _record_failure(
        self,
        delivery: WebhookDelivery,
        webhook: WebhookConfig,
        error: str,
        status_code: int | None,
    ) -> None:
        """Schedule a retry or fail the record once the attempt budget is spent."""
        now = utc_now()
        attempts = delivery.attempts + 1

        if attempts < webhook.retry_attempts:
            delivery.mark_retrying(
                next_retry_at=compute_next_retry(attempts, now),
                error=error,
                response_code=status_code,
                at=now,
            )
            self._logger.warning(
                "webhook_delivery_retrying", error=error, **delivery_fields(delivery, webhook)
            )
        else:
            delivery.mark_failed(error=error, response_code=status_code, at=now)
            self._logger.error(
                "webhook_delivery_failed", error=error, **delivery_fields(delivery, webhook)
            )
