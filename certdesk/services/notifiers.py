from __future__ import annotations

from datetime import date

from flask import render_template

from .. import emailer
from ..constants import (
    EMAIL_SUBJECT,
    EVENT_FILE_SLUG,
    EVENT_NAME,
    ORGANIZER_BRAND,
    TEST_EMAIL_SUBJECT,
    certificate_id,
)
from ..errors import DeliveryError
from ..shared.channels import DEFAULT_COUNTRY_CODE, normalize_phone
from ..shared.mail_utils import attachment_filename
from ..shared.time import fmt_issue_date, now_utc
from ..sms import SmsSender


def _message_context(name: str, submission_id: int, issue_date: date | None) -> dict:
    issued = issue_date or now_utc().date()
    return {
        "name": name,
        "submission_id": submission_id,
        "certificate_id": certificate_id(submission_id, issued.year),
        "issue_date": fmt_issue_date(issued),
        "event_name": EVENT_NAME,
        "organizer": ORGANIZER_BRAND,
    }


class EmailNotifier:
    """Delivers the certificate PDF as a mail attachment."""

    def send_certificate(
        self,
        recipient_name: str,
        recipient_email: str,
        attachment: bytes,
        submission_id: int,
        issue_date: date | None = None,
    ) -> str:
        context = _message_context(recipient_name, submission_id, issue_date)
        result = emailer.send(
            recipient_email,
            EMAIL_SUBJECT,
            render_template("email/certificate.txt", **context),
            html=render_template("email/certificate.html", **context),
            attachments=[
                emailer.Attachment(
                    attachment_filename(EVENT_FILE_SLUG, recipient_name), attachment
                )
            ],
        )
        if not result.get("ok"):
            raise DeliveryError(
                f"Email delivery failed: {result.get('detail')}",
                submission_id=submission_id,
            )
        return result.get("message_id") or ""

    def send_test(self, recipient_email: str) -> dict:
        return emailer.send(
            recipient_email,
            TEST_EMAIL_SUBJECT,
            "This is a test from the certificate service. Email delivery is working.",
        )


class SmsNotifier:
    """Delivers a time-limited certificate link by text message."""

    def __init__(self, sender: SmsSender, default_country_code: str = DEFAULT_COUNTRY_CODE):
        self.sender = sender
        self.default_country_code = default_country_code

    def send_certificate_link(
        self,
        recipient_name: str,
        recipient_phone: str,
        link_url: str,
        submission_id: int,
        issue_date: date | None = None,
    ) -> str:
        to = normalize_phone(recipient_phone, self.default_country_code)
        if not to:
            raise DeliveryError("No phone number to send to", submission_id=submission_id)
        body = render_template(
            "sms/certificate_link.txt",
            link_url=link_url,
            **_message_context(recipient_name, submission_id, issue_date),
        ).strip()
        try:
            return self.sender.send(to, body)
        except DeliveryError as exc:
            exc.submission_id = submission_id
            raise

    def send_test(self, recipient_phone: str) -> str:
        to = normalize_phone(recipient_phone, self.default_country_code)
        return self.sender.send(
            to,
            f"Test message from the {EVENT_NAME} certificate service. SMS delivery is working.",
        )

    def close(self) -> None:
        self.sender.close()


def build_email_notifier(config) -> EmailNotifier:
    return EmailNotifier()


def build_sms_notifier(config) -> SmsNotifier:
    return SmsNotifier(
        SmsSender(
            config.get("TWILIO_ACCOUNT_SID"),
            config.get("TWILIO_AUTH_TOKEN"),
            config.get("TWILIO_PHONE_NUMBER"),
        ),
        config.get("DEFAULT_COUNTRY_CODE") or DEFAULT_COUNTRY_CODE,
    )
