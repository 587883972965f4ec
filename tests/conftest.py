import os
import pathlib
import sys
from datetime import datetime, timezone

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from certdesk.app import create_app, db
from certdesk.errors import DeliveryError
from certdesk.extensions import EXTENSION_KEY
from certdesk.services.fulfillment import FulfillmentOrchestrator
from certdesk.services.submissions import insert

FIXED_NOW = datetime(2026, 1, 19, 9, 30, tzinfo=timezone.utc)


def pytest_collection_modifyitems(config, items):
    for item in items:
        if "slow" in item.keywords or "quarantine" in item.keywords:
            continue
        item.add_marker("full")
        if "no_smoke" in item.keywords:
            continue
        item.add_marker("smoke")


class FakeStore:
    """In-memory artifact store that records every call."""

    def __init__(self):
        self.blobs: dict[str, bytes] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_put: Exception | None = None
        self.fail_exists: Exception | None = None

    def put(self, key, data, content_type="application/pdf"):
        self.calls.append(("put", key))
        if self.fail_put is not None:
            raise self.fail_put
        self.blobs[key] = data.read() if hasattr(data, "read") else data
        return f"https://blob.example.test/{key}?sig=put"

    def exists(self, key):
        self.calls.append(("exists", key))
        if self.fail_exists is not None:
            raise self.fail_exists
        return key in self.blobs

    def get(self, key):
        self.calls.append(("get", key))
        return self.blobs[key]

    def access_url(self, key, ttl=3600):
        self.calls.append(("access_url", key))
        return f"https://blob.example.test/{key}?sig=ttl{ttl}"

    def delete(self, key):
        self.calls.append(("delete", key))
        return self.blobs.pop(key, None) is not None


class FakeEmailNotifier:
    def __init__(self):
        self.sent: list[dict] = []
        self.failures = 0

    def send_certificate(self, recipient_name, recipient_email, attachment, submission_id, issue_date=None):
        if self.failures:
            self.failures -= 1
            raise DeliveryError("smtp auth failed", submission_id=submission_id)
        self.sent.append(
            {
                "name": recipient_name,
                "email": recipient_email,
                "attachments": [attachment],
                "submission_id": submission_id,
                "issue_date": issue_date,
            }
        )
        return f"<msg-{len(self.sent)}@example.test>"


class FakeSmsNotifier:
    def __init__(self):
        self.sent: list[dict] = []
        self.failures = 0

    def send_certificate_link(self, recipient_name, recipient_phone, link_url, submission_id, issue_date=None):
        if self.failures:
            self.failures -= 1
            raise RuntimeError("twilio unreachable")
        self.sent.append(
            {
                "name": recipient_name,
                "phone": recipient_phone,
                "url": link_url,
                "submission_id": submission_id,
                "issue_date": issue_date,
            }
        )
        return f"SM{len(self.sent):032d}"


class CountingRenderer:
    def __init__(self):
        self.calls = 0
        self.dates = []
        self.error: Exception | None = None

    def __call__(self, name, submission_id, issue_date, assets=None):
        self.calls += 1
        self.dates.append(issue_date)
        if self.error is not None:
            raise self.error
        return b"%PDF-1.4 certificate for " + name.encode() + b" #" + str(submission_id).encode()


@pytest.fixture
def app(tmp_path):
    os.environ["DATABASE_URL"] = "sqlite:///:memory:"
    application = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "SECRET_KEY": "test-secret",
            "SITE_ROOT": str(tmp_path / "srv"),
            "CERT_WORK_DIR": str(tmp_path / "work"),
            "PUBLIC_BASE_URL": "https://certs.example.test",
            "ARTIFACT_STORE": "local",
            "SMTP_HOST": None,
            "TWILIO_ACCOUNT_SID": None,
        }
    )
    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()
        application.extensions[EXTENSION_KEY].close()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def mailer():
    return FakeEmailNotifier()


@pytest.fixture
def texter():
    return FakeSmsNotifier()


@pytest.fixture
def renderer():
    return CountingRenderer()


@pytest.fixture
def work_dir(tmp_path):
    path = tmp_path / "work"
    path.mkdir(exist_ok=True)
    return path


@pytest.fixture
def orchestrator(app, store, mailer, texter, renderer, work_dir):
    return FulfillmentOrchestrator(
        store,
        mailer,
        texter,
        work_dir=str(work_dir),
        renderer=renderer,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def make_submission(app):
    def _make(name="Asha", email="", phone="", **extra):
        return insert({"name": name, "email": email, "phone": phone, **extra})

    return _make


@pytest.fixture
def fake_clients(app, store, mailer, texter):
    """Route the app's shared clients to the in-memory fakes."""
    registry = app.extensions[EXTENSION_KEY]
    registry.override("artifact_store", store)
    registry.override("email_notifier", mailer)
    registry.override("sms_notifier", texter)
    return registry
