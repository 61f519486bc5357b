"""Time tracker exception hierarchy.

Provides structured exceptions for error handling throughout the codebase.
All exceptions inherit from TimeTrackerError for easy catching.
"""

from __future__ import annotations


class TimeTrackerError(Exception):
    """Base exception for all time tracker errors.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable error code.
    """

    code: str = "timetracker_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, object]:
        """Convert exception to a serializable dictionary."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
            }
        }


class ValidationError(TimeTrackerError):
    """Invalid configuration provided.

    Raised synchronously when a webhook is created or updated with
    values that break its invariants (URL, name, events, limits).

    Attributes:
        field: The field that failed validation.
        message: Description of the validation failure.
    """

    code: str = "validation_error"

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(f"{field}: {message}")

    def to_dict(self) -> dict[str, object]:
        """Convert exception to a serializable dictionary."""
        return {
            "error": {
                "code": self.code,
                "field": self.field,
                "message": self.message,
            }
        }


class NotFoundError(TimeTrackerError):
    """Resource not found.

    Attributes:
        resource_type: Type of resource (e.g., "webhook", "delivery").
        resource_id: ID of the missing resource.
    """

    code: str = "not_found"

    def __init__(self, resource_type: str, resource_id: str) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f"{resource_type} not found: {resource_id}")

    def to_dict(self) -> dict[str, object]:
        """Convert exception to a serializable dictionary."""
        return {
            "error": {
                "code": self.code,
                "resource_type": self.resource_type,
                "resource_id": self.resource_id,
                "message": self.message,
            }
        }


class StorageError(TimeTrackerError):
    """Storage operation failed."""

    code: str = "storage_error"


class ConfigurationError(TimeTrackerError):
    """Required configuration is missing or invalid."""

    code: str = "configuration_error"


class PayloadError(TimeTrackerError):
    """Event data does not match the payload variant the event expects."""

    code: str = "payload_error"


class SigningError(TimeTrackerError):
    """Webhook secret could not be turned into an HMAC key."""

    code: str = "signing_error"


class DeliveryError(TimeTrackerError):
    """A single webhook delivery attempt failed.

    Attributes:
        status_code: HTTP status code, when a response was received.
    """

    code: str = "delivery_error"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict[str, object]:
        """Convert exception to a serializable dictionary."""
        return {
            "error": {
                "code": self.code,
                "status_code": self.status_code,
                "message": self.message,
            }
        }


class DeliveryStateError(TimeTrackerError):
    """Illegal status transition on a delivery record."""

    code: str = "delivery_state_error"
