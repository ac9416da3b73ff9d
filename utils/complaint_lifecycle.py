"""Complaint creation, status transitions, and the notifications they trigger."""
from __future__ import annotations

import threading
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from extensions import db
from models import (
    COMPLAINT_CATEGORIES,
    COMPLAINT_PRIORITIES,
    AuditLog,
    Complaint,
    ComplaintSequence,
    ComplaintStatusHistory,
)
from utils.email_service import EmailChannel
from utils.notification_dispatcher import DispatchResult, dispatch_status_notification
from utils.notification_errors import NotificationError
from utils.status_taxonomy import PENDING_STATUSES, ComplaintStatus, validate_transition

REFERENCE_PREFIX = "JC"
REFERENCE_WIDTH = 5


class ComplaintValidationError(ValueError):
    """Raised when complaint input falls outside the accepted enumerations."""


def format_reference_code(year: int, sequence: int) -> str:
    return f"{REFERENCE_PREFIX}-{year:04d}-{sequence:0{REFERENCE_WIDTH}d}"


def generate_reference_code(year: Optional[int] = None) -> str:
    """Reserve the next JC-<year>-<sequence> code; flushes but does not commit."""
    year = year or datetime.utcnow().year
    counter = (
        db.session.query(ComplaintSequence)
        .filter(ComplaintSequence.year == year)
        .with_for_update()
        .first()
    )
    if counter is None:
        counter = ComplaintSequence(year=year, last_value=0)
        db.session.add(counter)
    counter.last_value = (counter.last_value or 0) + 1
    db.session.flush()
    return format_reference_code(year, counter.last_value)


def _record_status(complaint: Complaint, new_status: str, actor_id: Optional[str], remarks: Optional[str]) -> None:
    history = ComplaintStatusHistory(
        complaint=complaint,
        previous_status=complaint.status if complaint.status != new_status else None,
        new_status=new_status,
        remarks=remarks,
        changed_by=actor_id,
    )
    db.session.add(history)


def _audit(action_type: str, actor_id: Optional[str], complaint: Complaint) -> None:
    db.session.add(AuditLog(user_id=actor_id, action_type=action_type, context_entity=f"complaint:{complaint.id}"))


def _notify(
    complaint: Complaint,
    status: ComplaintStatus,
    email_channel: Optional[EmailChannel],
    cancel_event: Optional[threading.Event] = None,
) -> Optional[DispatchResult]:
    # Notification is an auxiliary effect: the committed status change stands whatever happens here.
    try:
        return dispatch_status_notification(complaint.id, status, email_channel=email_channel, cancel_event=cancel_event)
    except NotificationError:
        current_app.logger.exception(
            "Status notification dispatch aborted",
            extra={"complaint_id": str(complaint.id), "status": status.value},
        )
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception(
            "Database error during status notification dispatch",
            extra={"complaint_id": str(complaint.id), "status": status.value},
        )
    except Exception:
        db.session.rollback()
        current_app.logger.exception(
            "Unexpected error during status notification dispatch",
            extra={"complaint_id": str(complaint.id), "status": status.value},
        )
    return None


def _clean_attachments(attachments: Optional[Iterable[str]]) -> List[str]:
    return [str(item).strip() for item in (attachments or []) if str(item or "").strip()]


def create_complaint(
    user,
    *,
    title: str,
    description: str,
    category: str,
    priority: str = "MEDIUM",
    location: Optional[str] = None,
    language: Optional[str] = "English",
    attachments: Optional[Iterable[str]] = None,
    email_channel: Optional[EmailChannel] = None,
) -> Tuple[Complaint, Optional[DispatchResult]]:
    if category not in COMPLAINT_CATEGORIES:
        raise ComplaintValidationError("Invalid complaint category")
    if priority not in COMPLAINT_PRIORITIES:
        raise ComplaintValidationError("Invalid complaint priority")
    if not (title or "").strip() or not (description or "").strip():
        raise ComplaintValidationError("Title and description are required")

    now = datetime.utcnow()
    try:
        complaint = Complaint(
            reference_code=generate_reference_code(now.year),
            user_id=user.id,
            title=title.strip(),
            description=description.strip(),
            category=category,
            priority=priority,
            status=ComplaintStatus.SUBMITTED.value,
            location=(location or "").strip() or None,
            language=language or None,
            attachments=_clean_attachments(attachments),
            created_at=now,
            updated_at=now,
        )
        db.session.add(complaint)
        db.session.flush()
        _record_status(complaint, ComplaintStatus.SUBMITTED.value, user.id, "Complaint submitted by citizen")
        _audit("COMPLAINT_CREATED", user.id, complaint)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        current_app.logger.exception("Reference code collision while saving complaint")
        raise
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Database error while saving complaint")
        raise

    current_app.logger.info(
        "Complaint submitted",
        extra={"complaint_id": str(complaint.id), "reference_code": complaint.reference_code, "user_id": str(user.id)},
    )
    return complaint, _notify(complaint, ComplaintStatus.SUBMITTED, email_channel)


def change_status(
    complaint: Complaint,
    new_status,
    actor=None,
    remarks: Optional[str] = None,
    *,
    email_channel: Optional[EmailChannel] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Tuple[Complaint, Optional[DispatchResult]]:
    """Apply a validated status transition, commit it, then notify.

    Raises ``InvalidStatusTransition`` or ``ConfigurationError`` before anything is
    written. Notification problems never propagate.
    """
    target = validate_transition(complaint.status, new_status)
    actor_id = getattr(actor, "id", None)
    try:
        _record_status(complaint, target.value, actor_id, remarks)
        complaint.status = target.value
        complaint.updated_at = max(datetime.utcnow(), complaint.created_at)
        _audit(f"COMPLAINT_{target.value}", actor_id, complaint)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Database error while changing complaint status")
        raise

    current_app.logger.info(
        "Complaint status changed",
        extra={"complaint_id": str(complaint.id), "reference_code": complaint.reference_code, "status": target.value},
    )
    return complaint, _notify(complaint, target, email_channel, cancel_event)


def apply_classification(
    complaint: Complaint,
    classification: Dict,
    *,
    email_channel: Optional[EmailChannel] = None,
) -> Tuple[Complaint, Optional[DispatchResult]]:
    """Store an automated classification and move the complaint to AI_PROCESSED."""
    validate_transition(complaint.status, ComplaintStatus.AI_PROCESSED)
    payload = dict(classification or {})
    category = payload.get("category")
    priority = payload.get("priority")
    if category in COMPLAINT_CATEGORIES:
        complaint.category = category
    if priority in COMPLAINT_PRIORITIES:
        complaint.priority = priority
    complaint.ai_classification = payload
    return change_status(
        complaint,
        ComplaintStatus.AI_PROCESSED,
        remarks=payload.get("summary") or "Automated classification applied",
        email_channel=email_channel,
    )


def find_by_reference(reference_code: str) -> Optional[Complaint]:
    code = (reference_code or "").strip().upper()
    if not code:
        return None
    return Complaint.query.filter(Complaint.reference_code == code).first()


def complaint_timeline(complaint: Complaint) -> List[Dict]:
    return [entry.to_dict() for entry in complaint.status_history]


def complaint_stats() -> Dict[str, int]:
    counts = dict(db.session.query(Complaint.status, func.count(Complaint.id)).group_by(Complaint.status).all())
    return {
        "total": sum(counts.values()),
        "pending": sum(counts.get(status.value, 0) for status in PENDING_STATUSES),
        "in_progress": counts.get(ComplaintStatus.IN_PROGRESS.value, 0),
        "resolved": counts.get(ComplaintStatus.RESOLVED.value, 0),
        "rejected": counts.get(ComplaintStatus.REJECTED.value, 0),
    }
