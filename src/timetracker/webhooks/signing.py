"""HMAC-SHA256 signatures for webhook payloads.

The signature is computed over the exact string sent as the request body.
Receivers recompute it with the shared secret and compare.
"""

from __future__ import annotations

import hashlib
import hmac

from timetracker.exceptions import SigningError

SIGNATURE_HEADER = "X-Webhook-Signature"
SIGNATURE_PREFIX = "sha256="


def encode_body(payload: str) -> bytes:
    """Bytes sent on the wire for a payload. Signing uses the same bytes."""
    return payload.encode("utf-8")


def compute_signature(payload: str, secret: str) -> str:
    """Compute HMAC-SHA256 signature for a webhook payload.

    Args:
        payload: JSON string payload to sign (the exact request body).
        secret: Shared secret used as the HMAC key.

    Returns:
        Signature in format "sha256=<hex_digest>".

    Raises:
        SigningError: If the secret is empty or cannot be encoded as UTF-8.
    """
    if not secret:
        raise SigningError("webhook secret is empty")
    try:
        key = secret.encode("utf-8")
    except UnicodeEncodeError as e:
        raise SigningError(f"webhook secret is not valid UTF-8: {e}") from e

    digest = hmac.new(
        key=key,
        msg=encode_body(payload),
        digestmod=hashlib.sha256,
    ).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(payload: str, secret: str, signature: str) -> bool:
    """Verify HMAC-SHA256 signature for a webhook payload.

    Args:
        payload: JSON string payload that was signed.
        secret: Shared secret for HMAC.
        signature: Signature to verify (format: "sha256=<hex_digest>").

    Returns:
        True if signature is valid, False otherwise.
    """
    try:
        expected = compute_signature(payload, secret)
    except SigningError:
        return False
    return hmac.compare_digest(expected, signature)
