import pytest

from utils.notification_composer import ComposedMessage, compose, compose_title
from utils.notification_errors import ConfigurationError
from utils.status_taxonomy import STATUS_MESSAGES, ComplaintStatus, RecipientRole


def test_title_uses_status_words_and_complaint_title():
    message = compose("Pothole on MG Road", "IN_PROGRESS")
    assert message.title == "Complaint IN PROGRESS: Pothole on MG Road"


def test_owner_is_the_default_role():
    message = compose("Water leak", ComplaintStatus.RESOLVED)
    assert message.body == STATUS_MESSAGES[ComplaintStatus.RESOLVED][RecipientRole.OWNER]


def test_admin_body_is_selected_by_role():
    message = compose("Water leak", "ASSIGNED", RecipientRole.ADMIN)
    assert message.body == STATUS_MESSAGES[ComplaintStatus.ASSIGNED][RecipientRole.ADMIN]


@pytest.mark.parametrize("status", list(ComplaintStatus))
@pytest.mark.parametrize("role", list(RecipientRole))
def test_every_pair_composes(status, role):
    message = compose("Garbage not collected", status, role)
    assert isinstance(message, ComposedMessage)
    assert message.title and message.body


def test_compose_is_deterministic():
    assert compose("Noise", "SUBMITTED", "ADMIN") == compose("Noise", "SUBMITTED", "ADMIN")


def test_title_is_trimmed():
    assert compose_title("  Broken drain  ", "ASSIGNED") == "Complaint ASSIGNED: Broken drain"


def test_unknown_status_raises():
    with pytest.raises(ConfigurationError):
        compose("Noise", "ARCHIVED")


def test_line_breaks_in_title_collapse_to_spaces():
    message = compose("Streetlight\r\nnot\tworking", "ASSIGNED")
    assert message.title == "Complaint ASSIGNED: Streetlight not working"
