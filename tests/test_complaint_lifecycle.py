import re
from datetime import datetime

import pytest

import utils.complaint_lifecycle as lifecycle
from models import AuditLog, ComplaintStatusHistory, Notification
from utils.complaint_lifecycle import (
    ComplaintValidationError,
    apply_classification,
    change_status,
    complaint_stats,
    create_complaint,
    find_by_reference,
    format_reference_code,
    generate_reference_code,
)
from utils.notification_errors import ComplaintNotFound
from utils.status_taxonomy import InvalidStatusTransition

REFERENCE_PATTERN = re.compile(r"^JC-\d{4}-\d{5}$")


def _submit(user, **overrides):
    fields = {
        "title": "Overflowing garbage bin",
        "description": "The bin at the corner of 5th Cross has not been emptied in days.",
        "category": "Sanitation",
    }
    fields.update(overrides)
    return create_complaint(user, **fields)


def test_format_reference_code():
    assert format_reference_code(2026, 7) == "JC-2026-00007"


def test_reference_codes_increment_per_year(db):
    first = generate_reference_code(2026)
    second = generate_reference_code(2026)
    other_year = generate_reference_code(2027)
    assert (first, second, other_year) == ("JC-2026-00001", "JC-2026-00002", "JC-2027-00001")


def test_create_complaint_assigns_reference_and_history(citizen):
    complaint, dispatch = _submit(citizen)

    assert REFERENCE_PATTERN.match(complaint.reference_code)
    assert complaint.reference_code.startswith(f"JC-{datetime.utcnow().year}-")
    assert complaint.status == "SUBMITTED"
    assert complaint.priority == "MEDIUM"
    assert complaint.updated_at == complaint.created_at
    assert [entry.new_status for entry in complaint.status_history] == ["SUBMITTED"]
    assert AuditLog.query.filter_by(action_type="COMPLAINT_CREATED").count() == 1
    assert dispatch.status == "SUBMITTED"
    assert dispatch.recipients_notified == 1


def test_submission_notifies_admins(citizen, make_user):
    admin = make_user(admin=True)
    complaint, dispatch = _submit(citizen)

    assert dispatch.recipients_notified == 2
    admin_row = Notification.query.filter_by(user_id=admin.id).one()
    assert admin_row.complaint_id == complaint.id


def test_sequential_submissions_get_distinct_codes(citizen):
    first, _ = _submit(citizen)
    second, _ = _submit(citizen, title="Second issue")
    assert first.reference_code != second.reference_code
    assert int(second.reference_code[-5:]) == int(first.reference_code[-5:]) + 1


@pytest.mark.parametrize(
    "overrides",
    [{"category": "Weather"}, {"priority": "SOMEDAY"}, {"title": "   "}, {"description": ""}],
)
def test_invalid_input_is_rejected(citizen, overrides):
    with pytest.raises(ComplaintValidationError):
        _submit(citizen, **overrides)


def test_change_status_records_history_and_notifies(citizen, make_user):
    admin = make_user(admin=True)
    complaint, _ = _submit(citizen)

    complaint, dispatch = change_status(complaint, "ASSIGNED", actor=admin, remarks="Sent to sanitation ward 12")

    assert complaint.status == "ASSIGNED"
    assert complaint.updated_at >= complaint.created_at
    latest = complaint.status_history[-1]
    assert (latest.previous_status, latest.new_status, latest.changed_by) == ("SUBMITTED", "ASSIGNED", admin.id)
    assert dispatch.status == "ASSIGNED"
    assert Notification.query.filter_by(event_id=dispatch.event_id).count() == 2


def test_reference_code_survives_every_transition(citizen):
    complaint, _ = _submit(citizen)
    code = complaint.reference_code

    for status in ("AI_PROCESSED", "ASSIGNED", "IN_PROGRESS", "RESOLVED"):
        complaint, _ = change_status(complaint, status)
        assert complaint.reference_code == code

    assert find_by_reference(code.lower()).id == complaint.id


def test_reference_code_cannot_be_reassigned(citizen):
    complaint, _ = _submit(citizen)
    with pytest.raises(ValueError):
        complaint.reference_code = "JC-1999-00001"


def test_invalid_transition_writes_nothing(citizen):
    complaint, _ = _submit(citizen)
    complaint, _ = change_status(complaint, "RESOLVED")
    history_before = ComplaintStatusHistory.query.count()
    notifications_before = Notification.query.count()

    with pytest.raises(InvalidStatusTransition):
        change_status(complaint, "IN_PROGRESS")

    assert complaint.status == "RESOLVED"
    assert ComplaintStatusHistory.query.count() == history_before
    assert Notification.query.count() == notifications_before


def test_status_change_stands_when_dispatch_aborts(citizen, monkeypatch):
    complaint, _ = _submit(citizen)

    def missing(complaint_id, status, **kwargs):
        raise ComplaintNotFound(complaint_id)

    monkeypatch.setattr(lifecycle, "dispatch_status_notification", missing)

    complaint, dispatch = change_status(complaint, "REJECTED", remarks="Duplicate of JC-2026-00001")

    assert dispatch is None
    assert complaint.status == "REJECTED"


def test_apply_classification_adopts_category_and_priority(citizen):
    complaint, _ = _submit(citizen, category="Other")
    classification = {
        "category": "Water Supply",
        "priority": "HIGH",
        "summary": "No piped water for three days.",
        "sentiment": "URGENT",
        "confidence": 0.91,
    }

    complaint, dispatch = apply_classification(complaint, classification)

    assert complaint.status == "AI_PROCESSED"
    assert complaint.category == "Water Supply"
    assert complaint.priority == "HIGH"
    assert complaint.ai_classification["sentiment"] == "URGENT"
    assert complaint.status_history[-1].remarks == "No piped water for three days."
    assert dispatch.status == "AI_PROCESSED"


def test_apply_classification_refuses_past_ai_stage(citizen):
    complaint, _ = _submit(citizen)
    complaint, _ = change_status(complaint, "ASSIGNED")

    with pytest.raises(InvalidStatusTransition):
        apply_classification(complaint, {"category": "Road & Transport", "priority": "LOW"})
    assert complaint.category == "Sanitation"


def test_complaint_stats(citizen):
    _submit(citizen)
    second, _ = _submit(citizen)
    third, _ = _submit(citizen)
    change_status(second, "IN_PROGRESS")
    change_status(third, "REJECTED")

    assert complaint_stats() == {"total": 3, "pending": 1, "in_progress": 1, "resolved": 0, "rejected": 1}


def test_status_change_stands_when_dispatch_hits_unexpected_error(citizen, monkeypatch):
    complaint, _ = _submit(citizen)

    def header_error(complaint_id, status, **kwargs):
        raise ValueError("Header values may not contain linefeed or carriage return characters")

    monkeypatch.setattr(lifecycle, "dispatch_status_notification", header_error)

    complaint, dispatch = change_status(complaint, "ASSIGNED")

    assert dispatch is None
    assert complaint.status == "ASSIGNED"
    assert complaint.status_history[-1].new_status == "ASSIGNED"


def test_multiline_title_goes_through_submission_and_status_change(citizen, email_channel, smtp):
    complaint, created = _submit(citizen, title="Streetlight\nnot working", email_channel=email_channel)
    assert created.email_succeeded

    complaint, dispatch = change_status(complaint, "ASSIGNED", email_channel=email_channel)

    assert complaint.status == "ASSIGNED"
    assert dispatch.email_succeeded
    assert [m["Subject"] for m in smtp.outbox] == [
        "Complaint SUBMITTED: Streetlight not working",
        "Complaint ASSIGNED: Streetlight not working",
    ]
