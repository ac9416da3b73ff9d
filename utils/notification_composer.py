"""Status-change notification text: title and role-specific body."""
from __future__ import annotations

from dataclasses import dataclass

from utils.status_taxonomy import RecipientRole, message_for


@dataclass(frozen=True)
class ComposedMessage:
    title: str
    body: str


def compose_title(complaint_title: str, status_words: str) -> str:
    # Titles end up in mail headers; line breaks and tabs collapse to single spaces.
    return f"Complaint {status_words}: {' '.join((complaint_title or '').split())}"


def compose(complaint_title: str, status, role=RecipientRole.OWNER) -> ComposedMessage:
    """Build the notification for one recipient of a status change.

    Pure and deterministic. Raises ``ConfigurationError`` for statuses outside the taxonomy.
    """
    status_words, body = message_for(status, role)
    return ComposedMessage(title=compose_title(complaint_title, status_words), body=body)
