"""Phone number normalization for inbound/outbound message correlation."""

import re
from typing import Optional

import phonenumbers

from relayflow.config import config

_NON_DIGITS = re.compile(r"\D")


def normalize_phone_number(raw: Optional[str], region: Optional[str] = None) -> str:
    """Return ``raw`` in E.164 form, or "" when nothing usable is left.

    Numbers without a country code are parsed in ``region`` (default
    RELAYFLOW_DEFAULT_PHONE_REGION).  When parsing fails the digits are kept:
    an 11-digit national number gets the default region's calling code,
    anything else is just prefixed with "+".
    """
    if not raw:
        return ""
    region = (region or config.default_phone_region).upper()
    value = str(raw).strip()
    if value.startswith("whatsapp:"):
        value = value[len("whatsapp:"):]

    try:
        parsed = phonenumbers.parse(value, region)
        if phonenumbers.is_possible_number(parsed):
            return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)
    except phonenumbers.NumberParseException:
        pass

    digits = _NON_DIGITS.sub("", value)
    if not digits:
        return ""
    if len(digits) == 11 and not value.startswith("+"):
        code = phonenumbers.country_code_for_region(region)
        if code:
            return f"+{code}{digits}"
    return f"+{digits}"
