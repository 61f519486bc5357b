"""Retry utilities for storage writes.

Provides exponential backoff for transient network errors when the store
is a remote Qdrant server. The embedded store never raises these.
"""

from __future__ import annotations

import logging

import httpx
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    httpx.ConnectError,
    httpx.TimeoutException,
    ResponseHandlingException,
    UnexpectedResponse,
)


def _log_retry(retry_state: RetryCallState) -> None:
    """Log a storage retry with the failing operation's name."""
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Retrying storage write %s (attempt %d): %s",
        retry_state.fn.__name__ if retry_state.fn else "unknown",
        retry_state.attempt_number,
        exc,
    )


storage_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
    retry=retry_if_exception_type(TRANSIENT_ERRORS),
    before_sleep=_log_retry,
    reraise=True,
)
