"""Delivery channel selection and phone normalization."""

from __future__ import annotations

import enum
import re

DEFAULT_COUNTRY_CODE = "+91"

_PHONE_STRIP_RE = re.compile(r"[\s\-().]")


class Channel(str, enum.Enum):
    EMAIL = "email"
    SMS = "sms"
    NONE = "none"


def _present(value: str | None) -> bool:
    return bool((value or "").strip())


def select_channel(email: str | None, phone: str | None) -> Channel:
    """Pick the delivery channel for a participant.

    Email always wins when present; SMS is used only when there is a phone
    number and no email; otherwise nothing is sent.
    """

    if _present(email):
        return Channel.EMAIL
    if _present(phone):
        return Channel.SMS
    return Channel.NONE


def contact_for(channel: Channel, email: str | None, phone: str | None) -> str:
    if channel is Channel.EMAIL:
        return (email or "").strip()
    if channel is Channel.SMS:
        return (phone or "").strip()
    return ""


def normalize_phone(phone: str | None, default_country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    """Return an E.164-style number, assuming domestic when no ``+`` prefix."""

    value = _PHONE_STRIP_RE.sub("", (phone or "").strip())
    if not value:
        return ""
    if value.startswith("+"):
        return value
    if value.startswith("00"):
        return "+" + value[2:]
    code = default_country_code if default_country_code.startswith("+") else f"+{default_country_code}"
    return f"{code}{value}"
