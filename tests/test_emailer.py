import email
import logging
import smtplib

import pytest

from certdesk import emailer


class FakeSMTP:
    instances = []

    def __init__(self, host, port):
        self.host = host
        self.port = port
        self.started_tls = False
        self.logged_in = None
        self.sent = []
        self.quit_called = False
        FakeSMTP.instances.append(self)

    def starttls(self):
        self.started_tls = True

    def login(self, user, password):
        self.logged_in = (user, password)

    def sendmail(self, from_addr, to_addrs, msg):
        self.sent.append((from_addr, to_addrs, msg))

    def quit(self):
        self.quit_called = True


@pytest.fixture
def smtp_app(app, monkeypatch):
    FakeSMTP.instances = []
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
    monkeypatch.setattr(smtplib, "SMTP_SSL", FakeSMTP)
    app.config.update(
        SMTP_HOST="smtp.example.test",
        SMTP_PORT="587",
        SMTP_USER="certs@example.test",
        SMTP_PASS="app-password",
        SMTP_FROM_DEFAULT="certs@example.test",
        SMTP_FROM_NAME="Yogi Vemana Jayanti",
    )
    return app


def test_stub_mode_when_unconfigured(app, caplog):
    caplog.set_level(logging.INFO, logger="certdesk.mailer")

    result = emailer.send("a@x.com", "Subject", "Body")

    assert result == {"ok": False, "detail": "stub: missing config", "message_id": None}
    assert "mode=stub" in caplog.text


def test_sends_with_starttls_and_attachment(smtp_app):
    result = emailer.send(
        "a@x.com",
        "Your certificate",
        "Plain body",
        html="<p>Html body</p>",
        attachments=[emailer.Attachment("cert.pdf", b"%PDF-1.4 data")],
    )

    assert result["ok"] is True
    assert result["message_id"].endswith("@example.test>")
    server = FakeSMTP.instances[0]
    assert (server.host, server.port) == ("smtp.example.test", 587)
    assert server.started_tls
    assert server.logged_in == ("certs@example.test", "app-password")
    assert server.quit_called

    from_addr, to_addrs, raw = server.sent[0]
    assert from_addr == "certs@example.test"
    assert to_addrs == ["a@x.com"]
    msg = email.message_from_string(raw)
    assert msg["From"] == "Yogi Vemana Jayanti <certs@example.test>"
    parts = [p for p in msg.walk() if p.get_filename()]
    assert len(parts) == 1
    assert parts[0].get_filename() == "cert.pdf"
    assert parts[0].get_payload(decode=True) == b"%PDF-1.4 data"


def test_port_465_uses_ssl(smtp_app, monkeypatch):
    ssl_hosts = []

    class FakeSSL(FakeSMTP):
        def __init__(self, host, port):
            super().__init__(host, port)
            ssl_hosts.append(host)

    monkeypatch.setattr(smtplib, "SMTP_SSL", FakeSSL)
    smtp_app.config["SMTP_PORT"] = "465"

    assert emailer.send("a@x.com", "s", "b")["ok"]
    assert ssl_hosts == ["smtp.example.test"]
    assert not FakeSMTP.instances[0].started_tls


def test_invalid_recipient_is_not_sent(smtp_app, caplog):
    caplog.set_level(logging.WARNING, logger="certdesk.mailer")

    result = emailer.send("not-an-address", "s", "b")

    assert result["ok"] is False
    assert result["detail"] == "no valid recipients"
    assert FakeSMTP.instances == []
    assert "[MAIL-INVALID-RECIPIENT]" in caplog.text


def test_smtp_failure_is_reported_not_raised(smtp_app, monkeypatch):
    def refuse(self, from_addr, to_addrs, msg):
        raise smtplib.SMTPRecipientsRefused({"a@x.com": (550, b"no such user")})

    monkeypatch.setattr(FakeSMTP, "sendmail", refuse)

    result = emailer.send("a@x.com", "s", "b")

    assert result["ok"] is False
    assert "no such user" in result["detail"]
    assert FakeSMTP.instances[0].quit_called
