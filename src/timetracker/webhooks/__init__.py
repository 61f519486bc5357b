"""Outbound webhook delivery.

Components:
    - PayloadBuilder: Event + domain snapshot -> JSON envelope
    - compute_signature / verify_signature: HMAC-SHA256 body signatures
    - DeliveryExecutor: One HTTP attempt plus state transition per call
    - WebhookDispatcher: Fan-out, bounded queue and worker pool
    - RetrySweeper: Re-submits due and orphaned delivery records
    - WebhookService: Validated webhook configuration CRUD
"""

from .delivery import DeliveryExecutor, backoff_delay, compute_next_retry
from .dispatcher import WebhookDispatcher
from .payload import EMPTY_PAYLOAD, PayloadBuilder
from .service import WebhookService
from .signing import SIGNATURE_HEADER, compute_signature, verify_signature
from .sweeper import RetrySweeper

__all__ = [
    "EMPTY_PAYLOAD",
    "SIGNATURE_HEADER",
    "DeliveryExecutor",
    "PayloadBuilder",
    "RetrySweeper",
    "WebhookDispatcher",
    "WebhookService",
    "backoff_delay",
    "compute_next_retry",
    "compute_signature",
    "verify_signature",
]
