"""Exception types raised by the event tracker."""

from __future__ import annotations


class EventTrackerError(Exception):
    """Base exception for event tracker failures."""


class ValidationError(EventTrackerError, ValueError):
    """Raised when start parameters are malformed."""


class ConflictError(EventTrackerError):
    """Raised when an event is started while another one is active."""


class NotFoundError(EventTrackerError):
    """Raised when an operation needs an active event and none exists."""


class ExternalServiceError(EventTrackerError):
    """Raised when an identity or statistics lookup fails."""

    def __init__(
        self, message: str, *, status: str = "unavailable", status_code: int | None = None
    ) -> None:
        super().__init__(message)
        self.status = status
        self.status_code = status_code


class PersistenceError(EventTrackerError):
    """Raised when the snapshot, summary or giveaway store cannot be written."""


class DeliveryError(EventTrackerError):
    """Raised when a report cannot reach the notification channel."""


__all__ = [
    "EventTrackerError",
    "ValidationError",
    "ConflictError",
    "NotFoundError",
    "ExternalServiceError",
    "PersistenceError",
    "DeliveryError",
]
