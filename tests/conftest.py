"""
Shared pytest fixtures for the grievance notification test suite.

Every test gets a fresh app on TestingConfig backed by in-memory SQLite.
Factories cover users and complaints; ``smtp`` swaps the SMTP transport for a recorder.
"""
import smtplib
from datetime import datetime
from types import SimpleNamespace

import pytest
from flask import g

from app import create_app
from extensions import db as _db
from models import ADMIN_ROLE_NAME, Complaint, Role, User
from utils.complaint_lifecycle import generate_reference_code
from utils.email_service import EmailChannel, EmailSettings


@pytest.fixture
def app(tmp_path):
    app = create_app("testing", overrides={"LOG_DIR": str(tmp_path / "logs"), "LOG_LEVEL": "WARNING"})
    with app.app_context():
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(email="auto", full_name="Test User", admin=False, active=True):
        counter["n"] += 1
        if email == "auto":
            email = f"user{counter['n']}@example.com"
        role = Role.get_or_create(ADMIN_ROLE_NAME if admin else "Citizen")
        user = User(full_name=full_name, email=email, role=role, is_active=active)
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def citizen(make_user):
    return make_user(email="asha@example.com", full_name="Asha Verma")


@pytest.fixture
def make_complaint(db):
    """Insert a complaint directly, without triggering any notification."""

    def _make(owner, title="Streetlight not working", status="SUBMITTED", **fields):
        now = datetime.utcnow()
        complaint = Complaint(
            reference_code=generate_reference_code(now.year),
            user_id=owner.id,
            title=title,
            description=fields.pop("description", "The streetlight near the bus stop has been off for a week."),
            category=fields.pop("category", "Electricity"),
            priority=fields.pop("priority", "MEDIUM"),
            status=status,
            created_at=now,
            updated_at=now,
            **fields,
        )
        db.session.add(complaint)
        db.session.commit()
        return complaint

    return _make


@pytest.fixture
def login(client):
    def _login(user):
        # The app context outlives single requests; drop the user Flask-Login cached on g.
        g.pop("_login_user", None)
        with client.session_transaction() as sess:
            sess["_user_id"] = str(user.id)
            sess["_fresh"] = True
        return client

    return _login


class FakeSMTP:
    """Records messages instead of talking to a server; optionally fails on send."""

    def __init__(self, outbox, connections, fail_with=None):
        self.outbox = outbox
        self.connections = connections
        self.fail_with = fail_with

    def __call__(self, host, port, timeout=None, **kwargs):
        self.connections.append({"host": host, "port": port, "timeout": timeout})
        return self

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def ehlo(self):
        return (250, b"ok")

    def starttls(self, context=None):
        return (220, b"ready")

    def login(self, username, password):
        return (235, b"authenticated")

    def send_message(self, msg):
        if self.fail_with is not None:
            raise self.fail_with
        self.outbox.append(msg)
        return {}


@pytest.fixture
def smtp(monkeypatch):
    """Patch smtplib.SMTP; returns a handle exposing ``outbox``, ``connections`` and ``fail()``."""

    outbox, connections = [], []
    fake = FakeSMTP(outbox, connections)
    monkeypatch.setattr(smtplib, "SMTP", fake)
    return SimpleNamespace(outbox=outbox, connections=connections, fail=lambda exc: setattr(fake, "fail_with", exc))


@pytest.fixture
def email_channel():
    return EmailChannel(
        EmailSettings(
            host="smtp.test.local",
            port=587,
            username="portal@janconnect.test",
            password="app-password",
            sender="portal@janconnect.test",
            sender_name="JanConnect+",
            timeout=2,
        )
    )
