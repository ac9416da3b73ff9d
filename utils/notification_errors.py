"""Error types raised and captured by the notification dispatch pipeline.

Kept in their own module so the taxonomy, the email channel and the dispatcher
can share them without importing each other.
"""
from typing import Optional


class NotificationError(Exception):
    """Base class for notification dispatch errors."""


class ComplaintNotFound(NotificationError):
    """Raised when a dispatch references a complaint that does not exist."""

    def __init__(self, complaint_id) -> None:
        super().__init__(f"Complaint {complaint_id} not found")
        self.complaint_id = complaint_id


class PersistenceWriteFailure(NotificationError):
    """A single notification insert or update failed."""

    def __init__(self, recipient_id: str, operation: str, detail: str = "") -> None:
        message = f"Notification {operation} failed for recipient {recipient_id}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.recipient_id = recipient_id
        self.operation = operation


class ChannelUnavailable(NotificationError):
    """Email channel not configured, or the recipient has no address."""


class ChannelFailure(NotificationError):
    """Email channel is configured but the send errored, timed out or was cancelled."""

    def __init__(self, message: str, recipient: Optional[str] = None) -> None:
        super().__init__(message)
        self.recipient = recipient


class ConfigurationError(NotificationError):
    """Status taxonomy and message table disagree, or a status is not part of the taxonomy."""
