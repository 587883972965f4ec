import pytest

from certdesk.shared.channels import Channel, contact_for, normalize_phone, select_channel


@pytest.mark.parametrize(
    "email, phone, expected",
    [
        ("a@x.com", "", Channel.EMAIL),
        ("a@x.com", "9876543210", Channel.EMAIL),
        ("", "9876543210", Channel.SMS),
        ("   ", "9876543210", Channel.SMS),
        (None, "+15550100", Channel.SMS),
        ("", "", Channel.NONE),
        (None, "  ", Channel.NONE),
    ],
)
def test_select_channel_precedence(email, phone, expected):
    assert select_channel(email, phone) is expected


def test_contact_for_strips_and_ignores_none():
    assert contact_for(Channel.EMAIL, " a@x.com ", "") == "a@x.com"
    assert contact_for(Channel.SMS, "", " 98765 ") == "98765"
    assert contact_for(Channel.NONE, "a@x.com", "98765") == ""


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("9876543210", "+919876543210"),
        ("98765 43210", "+919876543210"),
        ("(987) 654-3210", "+919876543210"),
        ("+1 555.010.0199", "+15550100199"),
        ("00447700900123", "+447700900123"),
        ("", ""),
        (None, ""),
    ],
)
def test_normalize_phone(raw, expected):
    assert normalize_phone(raw) == expected


def test_normalize_phone_custom_country_code():
    assert normalize_phone("5550100", "1") == "+15550100"
    assert normalize_phone("5550100", "+44") == "+445550100"


def test_channel_values_are_stored_strings():
    assert Channel("sms") is Channel.SMS
    assert Channel.EMAIL.value == "email"
