"""Synchronous field checks used by the entry form."""

from __future__ import annotations

from typing import Optional

import phonenumbers


def blank_to_none(value: Optional[str]) -> Optional[str]:
    """Return the stripped value or ``None`` if nothing is left."""

    if value is None:
        return None
    text = str(value).strip()
    return text or None


def is_valid_phone_number(value: str, region: Optional[str] = None) -> bool:
    """Return ``True`` if libphonenumber considers ``value`` a valid number.

    Without ``region`` only international numbers (``+49 ...``) can be parsed.
    """

    try:
        number = phonenumbers.parse(value.strip(), region)
    except phonenumbers.NumberParseException:
        return False
    return phonenumbers.is_valid_number(number)
