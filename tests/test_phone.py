"""Phone normalization used to correlate replies with waiting conversations."""

import pytest

from relayflow.utils.phone import normalize_phone_number


@pytest.mark.parametrize("raw, expected", [
    ("+55 11 98765-4321", "+5511987654321"),
    ("whatsapp:+5511987654321", "+5511987654321"),
    ("(11) 98765-4321", "+5511987654321"),
    ("+1 (415) 555-2671", "+14155552671"),
])
def test_normalizes_to_e164(raw, expected):
    assert normalize_phone_number(raw, "BR") == expected


def test_region_applies_to_national_numbers():
    assert normalize_phone_number("(415) 555-2671", "US") == "+14155552671"


@pytest.mark.parametrize("raw", [None, "", "   ", "whatsapp:"])
def test_empty_input(raw):
    assert normalize_phone_number(raw, "BR") == ""


def test_unparseable_digits_are_prefixed():
    assert normalize_phone_number("12", "BR") == "+12"
