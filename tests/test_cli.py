import pytest

import manage
from certdesk.app import db
from certdesk.extensions import EXTENSION_KEY
from certdesk.models import Submission
from certdesk.services.artifact_store import build_artifact_store
from certdesk.services.notifiers import EmailNotifier


@pytest.fixture
def runner(app, fake_clients):
    for command in (manage.fulfill, manage.regenerate, manage.init_schema, manage.test_mail):
        app.cli.add_command(command)
    return app.test_cli_runner()


def test_fulfill_command_sends(runner, make_submission, mailer):
    sub = make_submission("Asha", email="a@x.com")

    result = runner.invoke(args=["fulfill", "--id", str(sub.id)])

    assert result.exit_code == 0, result.output
    assert f"submission={sub.id} channel=email sent=True" in result.output
    assert len(mailer.sent) == 1


def test_fulfill_command_forced_channel(runner, make_submission, texter):
    sub = make_submission("Both", email="b@x.com", phone="+15550100")

    result = runner.invoke(args=["fulfill", "--id", str(sub.id), "--channel", "sms"])

    assert result.exit_code == 0, result.output
    assert texter.sent[0]["phone"] == "+15550100"
    assert db.session.get(Submission, sub.id).delivery_channel == "sms"


def test_fulfill_command_reports_failure(runner, make_submission, mailer):
    sub = make_submission("Asha", email="a@x.com")
    mailer.failures = 1

    result = runner.invoke(args=["fulfill", "--id", str(sub.id)])

    assert result.exit_code == 1
    assert "step=notify" in result.output


def test_fulfill_command_unknown_id(runner):
    result = runner.invoke(args=["fulfill", "--id", "404"])
    assert result.exit_code == 1
    assert "Participant not found" in result.output


def test_regenerate_command_prints_key(runner, make_submission, store):
    sub = make_submission("Lee")

    result = runner.invoke(args=["regenerate", "--id", str(sub.id)])

    assert result.exit_code == 0, result.output
    key = result.output.strip()
    assert key.startswith(f"certificate_{sub.id}_")
    assert key in store.blobs


def test_init_schema_is_noop_on_current_db(runner):
    result = runner.invoke(args=["init_schema"])
    assert result.exit_code == 0
    assert "Schema up to date" in result.output


def test_test_mail_reports_stub(runner, app):
    app.extensions[EXTENSION_KEY].override("email_notifier", EmailNotifier())

    result = runner.invoke(args=["test_mail", "--to", "a@x.com"])

    assert result.exit_code == 0
    assert "ok=False detail=stub: missing config" in result.output


def test_fulfill_sms_without_public_base_url_fails_cleanly(runner, app, make_submission, texter):
    app.config["PUBLIC_BASE_URL"] = ""
    app.extensions[EXTENSION_KEY].override("artifact_store", build_artifact_store(app.config))
    sub = make_submission("Ravi", phone="9876543210")

    result = runner.invoke(args=["fulfill", "--id", str(sub.id), "--channel", "sms"])

    assert result.exit_code == 1
    assert "PUBLIC_BASE_URL" in result.output
    assert "step=store" in result.output
    assert texter.sent == []
    row = db.session.get(Submission, sub.id)
    assert row.certificate_sent is False
    assert row.certificate_key is not None


def test_fulfill_sms_with_public_base_url_sends_absolute_link(runner, app, make_submission, texter):
    app.extensions[EXTENSION_KEY].override("artifact_store", build_artifact_store(app.config))
    sub = make_submission("Ravi", phone="9876543210")

    result = runner.invoke(args=["fulfill", "--id", str(sub.id), "--channel", "sms"])

    assert result.exit_code == 0, result.output
    assert texter.sent[0]["url"].startswith("https://certs.example.test/artifacts/certificate_")
