import logging
import smtplib
import sys
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Iterable

from flask import current_app

from .shared.mail_utils import envelope_for, from_header

logger = logging.getLogger("certdesk.mailer")
if not logger.handlers:
    handler = logging.StreamHandler(sys.stdout)
    logger.addHandler(handler)
logger.setLevel(logging.INFO)


@dataclass(frozen=True)
class Attachment:
    filename: str
    data: bytes
    maintype: str = "application"
    subtype: str = "pdf"


def _smtp_config() -> dict:
    cfg = current_app.config
    return {
        "host": cfg.get("SMTP_HOST"),
        "port": cfg.get("SMTP_PORT"),
        "user": cfg.get("SMTP_USER"),
        "password": cfg.get("SMTP_PASS"),
        "from_addr": cfg.get("SMTP_FROM_DEFAULT") or cfg.get("SMTP_USER"),
        "from_name": cfg.get("SMTP_FROM_NAME") or "",
    }


def _open_connection(host: str, port: int) -> smtplib.SMTP:
    if port == 465:
        return smtplib.SMTP_SSL(host, port)
    server = smtplib.SMTP(host, port)
    if port == 587:
        server.starttls()
    return server


def send(
    recipient: str | None,
    subject: str,
    body: str,
    html: str | None = None,
    attachments: Iterable[Attachment] = (),
):
    """Send one message; never raises, returns ``{"ok", "detail", "message_id"}``."""

    smtp = _smtp_config()
    host, port, from_addr = smtp["host"], smtp["port"], smtp["from_addr"]
    attachments = list(attachments)
    envelope = envelope_for(recipient)
    mode = "real"
    if not host or not port or not from_addr:
        mode = "stub"
        logger.info(
            "[MAIL-OUT] mode=%s to=%s subject=\"%s\" attachments=%d host=%s result=stub",
            mode,
            recipient,
            subject,
            len(attachments),
            host,
        )
        return {"ok": False, "detail": "stub: missing config", "message_id": None}

    if not envelope:
        logger.warning("[MAIL-NO-RECIPIENTS] subject=\"%s\" host=%s", subject, host)
        return {"ok": False, "detail": "no valid recipients", "message_id": None}

    message_id = make_msgid(domain=from_addr.split("@")[-1])
    try:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["To"] = envelope[0]
        msg["From"] = from_header(from_addr, smtp["from_name"])
        msg["Message-ID"] = message_id
        msg.set_content(body)
        if html:
            msg.add_alternative(html, subtype="html")
        for attachment in attachments:
            msg.add_attachment(
                attachment.data,
                maintype=attachment.maintype,
                subtype=attachment.subtype,
                filename=attachment.filename,
            )
        server = _open_connection(host, int(port))
        try:
            if smtp["user"] and smtp["password"]:
                server.login(smtp["user"], smtp["password"])
            server.sendmail(from_addr, envelope, msg.as_string())
        finally:
            server.quit()
        logger.info(
            "[MAIL-OUT] mode=%s to=%s subject=\"%s\" attachments=%d host=%s result=sent",
            mode,
            envelope[0],
            subject,
            len(attachments),
            host,
        )
        return {"ok": True, "detail": "sent", "message_id": message_id}
    except (smtplib.SMTPException, OSError, ValueError) as e:
        logger.info(
            "[MAIL-OUT] mode=%s to=%s subject=\"%s\" attachments=%d host=%s result=%s",
            mode,
            envelope[0],
            subject,
            len(attachments),
            host,
            e,
        )
        return {"ok": False, "detail": str(e), "message_id": None}
