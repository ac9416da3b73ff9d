import smtplib
import threading

from utils.email_service import (
    EmailChannel,
    EmailOutcome,
    EmailSettings,
    get_email_channel,
    render_status_email,
    track_url_for,
)


def test_settings_from_config_require_host_and_credentials():
    settings = EmailSettings.from_config(
        {"MAIL_SERVER": "smtp.test.local", "MAIL_USERNAME": "portal@test", "MAIL_PASSWORD": ""}
    )
    assert not settings.is_configured
    settings = EmailSettings.from_config(
        {"MAIL_SERVER": "smtp.test.local", "MAIL_USERNAME": "portal@test", "MAIL_PASSWORD": "pw"}
    )
    assert settings.is_configured
    assert settings.sender == "portal@test"


def test_app_channel_is_unconfigured_under_testing(app):
    assert get_email_channel().is_configured is False


def test_unconfigured_channel_is_unavailable(app, smtp):
    channel = EmailChannel(EmailSettings(host="smtp.test.local", port=587, username="", password=""))
    result = channel.send("citizen@example.com", "Subject", "<p>Body</p>")
    assert result.outcome is EmailOutcome.UNAVAILABLE
    assert smtp.connections == []


def test_missing_recipient_is_unavailable(app, email_channel, smtp):
    result = email_channel.send("  ", "Subject", "<p>Body</p>")
    assert result.outcome is EmailOutcome.UNAVAILABLE
    assert smtp.connections == []


def test_successful_send(app, email_channel, smtp):
    result = email_channel.send("citizen@example.com", "Complaint ASSIGNED: Drain", "<p>Assigned</p>", text="Assigned")
    assert result.ok
    message = smtp.outbox[0]
    assert message["To"] == "citizen@example.com"
    assert "JanConnect+" in message["From"]
    assert smtp.connections == [{"host": "smtp.test.local", "port": 587, "timeout": 2}]


def test_timeout_is_reported_as_failure(app, email_channel, smtp):
    smtp.fail(TimeoutError("timed out"))
    result = email_channel.send("citizen@example.com", "Subject", "<p>Body</p>")
    assert result.outcome is EmailOutcome.FAILED
    assert "timed out" in result.detail


def test_smtp_error_is_reported_as_failure(app, email_channel, smtp):
    smtp.fail(smtplib.SMTPRecipientsRefused({"citizen@example.com": (550, b"mailbox unavailable")}))
    result = email_channel.send("citizen@example.com", "Subject", "<p>Body</p>")
    assert result.outcome is EmailOutcome.FAILED
    assert smtp.outbox == []


def test_cancelled_send_never_connects(app, email_channel, smtp):
    cancel = threading.Event()
    cancel.set()
    result = email_channel.send("citizen@example.com", "Subject", "<p>Body</p>", cancel_event=cancel)
    assert result.outcome is EmailOutcome.FAILED
    assert smtp.connections == []


def test_track_url_uses_portal_base_url(app):
    app.config["PORTAL_BASE_URL"] = "https://janconnect.example/"
    assert track_url_for("JC-2026-00042") == "https://janconnect.example/complaints/track/JC-2026-00042"
    assert track_url_for(None) is None


def test_render_status_email_escapes_markup(app):
    text, html = render_status_email(
        subject="Complaint ASSIGNED: <b>Drain</b>",
        message="Your complaint has been assigned to the relevant department.",
        complaint_title="<script>alert(1)</script> Drain",
        reference_code="JC-2026-00007",
        status_words="ASSIGNED",
    )
    assert "<script>" not in html
    assert "JC-2026-00007" in html
    assert text.startswith("Hello!")
    assert "assigned to the relevant department" in text


def test_subject_with_line_break_is_a_failure_not_an_exception(app, email_channel, smtp):
    result = email_channel.send("citizen@example.com", "bad\nsubject", "<p>Body</p>")
    assert result.outcome is EmailOutcome.FAILED
    assert "Invalid email message" in result.detail
    assert smtp.connections == []
