"""Mail helper utilities."""

from __future__ import annotations

import logging
import re
from email.utils import formataddr

logger = logging.getLogger("certdesk.mailer")

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def clean_email(value: str | None) -> str:
    """Trim an address; return "" for blanks."""

    return (value or "").strip()


def is_valid_email(value: str | None) -> bool:
    candidate = clean_email(value)
    return bool(candidate) and bool(_EMAIL_RE.match(candidate))


def envelope_for(recipient: str | None) -> list[str]:
    """Return the SMTP envelope for a single participant address."""

    candidate = clean_email(recipient)
    if not candidate:
        return []
    if not is_valid_email(candidate):
        logger.warning("[MAIL-INVALID-RECIPIENT] token=%s", candidate)
        return []
    return [candidate]


def from_header(address: str, name: str | None = None) -> str:
    return formataddr((name, address)) if name else address


def attachment_filename(event_slug: str, participant_name: str) -> str:
    """Build the download/attachment name, e.g. ``Event_Certificate_Asha_Rao.pdf``."""

    cleaned = re.sub(r"[^A-Za-z0-9 _-]+", "", participant_name or "").strip()
    cleaned = re.sub(r"\s+", "_", cleaned) or "Participant"
    return f"{event_slug}_Certificate_{cleaned}.pdf"
