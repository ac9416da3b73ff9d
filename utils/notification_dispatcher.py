"""Fan a complaint status change out to in-app notification rows and the owner's email.

One call handles one status transition:

1. load the complaint (``ComplaintNotFound`` aborts before any write);
2. resolve the audience (owner + current admins, de-duplicated);
3. insert one ``IN_APP`` row per recipient, each committed on its own so a
   failed insert is rolled back, logged and skipped;
4. only once every insert is done, email the owner's message; on success the
   owner's row is upgraded in place to ``EMAIL`` with ``sent_at`` set;
5. return a ``DispatchResult`` describing what happened.

Steps 3 and 4 never raise past this module.
"""
from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import Complaint, Notification, User
from utils.audience import resolve_audience
from utils.email_service import EmailChannel, EmailOutcome, get_email_channel, render_status_email
from utils.notification_composer import ComposedMessage, compose
from utils.notification_errors import (
    ChannelFailure,
    ChannelUnavailable,
    ComplaintNotFound,
    NotificationError,
    PersistenceWriteFailure,
)
from utils.status_taxonomy import RecipientRole, coerce_status


@dataclass
class DispatchResult:
    complaint_id: str
    status: str
    event_id: str
    recipients_notified: int = 0
    email_attempted: bool = False
    email_succeeded: bool = False
    failures: List[NotificationError] = field(default_factory=list)

    @property
    def email_skipped_reason(self) -> Optional[str]:
        for failure in self.failures:
            if isinstance(failure, ChannelUnavailable):
                return str(failure)
        return None

    def as_dict(self) -> dict:
        return {
            "event_id": self.event_id,
            "status": self.status,
            "recipients_notified": self.recipients_notified,
            "email_attempted": self.email_attempted,
            "email_succeeded": self.email_succeeded,
            "failures": [{"type": type(f).__name__, "detail": str(f)} for f in self.failures],
        }


def _insert_notification(
    complaint: Complaint, recipient_id: str, message: ComposedMessage, event_id: str
) -> Notification:
    row = Notification(
        user_id=recipient_id,
        complaint_id=complaint.id,
        event_id=event_id,
        title=message.title,
        message=message.body,
        type="IN_APP",
    )
    db.session.add(row)
    db.session.commit()
    return row


def _write_in_app_rows(complaint: Complaint, status, event_id: str, result: DispatchResult) -> Optional[Notification]:
    """Insert one row per recipient; returns the owner's row when it was written."""
    audience = resolve_audience(complaint)
    owner_row: Optional[Notification] = None

    for recipient_id, role in audience.recipients():
        message = compose(complaint.title, status, role)
        try:
            row = _insert_notification(complaint, recipient_id, message, event_id)
        except SQLAlchemyError as exc:
            db.session.rollback()
            failure = PersistenceWriteFailure(recipient_id, "insert", str(exc.__class__.__name__))
            result.failures.append(failure)
            current_app.logger.error(
                "Notification insert failed",
                extra={"complaint_id": str(complaint.id), "recipient": recipient_id, "role": role.value, "event_id": event_id},
                exc_info=True,
            )
            continue
        result.recipients_notified += 1
        if role is RecipientRole.OWNER:
            owner_row = row

    return owner_row


def _email_owner(
    complaint: Complaint,
    status,
    owner_row: Optional[Notification],
    channel: EmailChannel,
    result: DispatchResult,
    cancel_event: Optional[threading.Event],
) -> None:
    if not channel.is_configured:
        result.failures.append(ChannelUnavailable("Email channel is not configured"))
        return

    try:
        owner = db.session.get(User, complaint.user_id)
    except SQLAlchemyError as exc:
        db.session.rollback()
        result.failures.append(ChannelFailure(f"Owner lookup failed: {exc.__class__.__name__}"))
        current_app.logger.error(
            "Could not load complaint owner for email", extra={"complaint_id": str(complaint.id)}, exc_info=True
        )
        return
    address = (owner.email or "").strip() if owner else ""
    if not address:
        result.failures.append(ChannelUnavailable("Complaint owner has no email address"))
        return

    if cancel_event is not None and cancel_event.is_set():
        result.failures.append(ChannelFailure("Dispatch cancelled before email send", recipient=address))
        current_app.logger.info("Email step skipped after cancellation", extra={"complaint_id": str(complaint.id)})
        return

    message = compose(complaint.title, status, RecipientRole.OWNER)
    try:
        text_body, html_body = render_status_email(
            subject=message.title,
            message=message.body,
            complaint_title=complaint.title,
            reference_code=complaint.reference_code,
            status_words=coerce_status(status).label,
            full_name=owner.full_name if owner else None,
        )
    except Exception as exc:
        result.failures.append(ChannelFailure(f"Email rendering failed: {exc}", recipient=address))
        current_app.logger.exception("Status email could not be rendered", extra={"complaint_id": str(complaint.id)})
        return

    result.email_attempted = True
    outcome = channel.send(address, message.title, html_body, text=text_body, cancel_event=cancel_event)
    if outcome.outcome is EmailOutcome.UNAVAILABLE:
        result.email_attempted = False
        result.failures.append(ChannelUnavailable(outcome.detail or "Email channel unavailable"))
        return
    if not outcome.ok:
        result.failures.append(ChannelFailure(outcome.detail or "Email send failed", recipient=address))
        current_app.logger.warning(
            "Owner email failed; in-app notification kept",
            extra={"complaint_id": str(complaint.id), "error": outcome.detail},
        )
        return

    result.email_succeeded = True
    if owner_row is None:
        return
    try:
        owner_row.sent_at = datetime.utcnow()
        owner_row.type = "EMAIL"
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        result.failures.append(PersistenceWriteFailure(str(complaint.user_id), "update", exc.__class__.__name__))
        current_app.logger.error(
            "Could not mark owner notification as emailed",
            extra={"complaint_id": str(complaint.id), "notification_id": str(owner_row.id)},
            exc_info=True,
        )


def dispatch_status_notification(
    complaint_id,
    new_status,
    *,
    email_channel: Optional[EmailChannel] = None,
    cancel_event: Optional[threading.Event] = None,
) -> DispatchResult:
    """Notify the owner and every admin that a complaint moved to ``new_status``.

    Raises ``ComplaintNotFound`` for an unknown complaint and ``ConfigurationError``
    for a status outside the taxonomy; nothing is written in either case. All other
    problems are recorded on the returned result.
    """
    complaint = db.session.get(Complaint, str(complaint_id))
    if complaint is None:
        current_app.logger.warning("Dispatch requested for missing complaint", extra={"complaint_id": str(complaint_id)})
        raise ComplaintNotFound(complaint_id)

    status = coerce_status(new_status)
    result = DispatchResult(complaint_id=str(complaint.id), status=status.value, event_id=str(uuid.uuid4()))

    owner_row = _write_in_app_rows(complaint, status, result.event_id, result)

    channel = email_channel or get_email_channel()
    _email_owner(complaint, status, owner_row, channel, result, cancel_event)

    current_app.logger.info(
        "Status notification dispatched",
        extra={
            "complaint_id": result.complaint_id,
            "reference_code": complaint.reference_code,
            "status": result.status,
            "event_id": result.event_id,
            "recipients": result.recipients_notified,
            "email_attempted": result.email_attempted,
            "email_succeeded": result.email_succeeded,
            "failures": len(result.failures),
        },
    )
    return result
