from __future__ import annotations

import re

_NON_DIGIT = re.compile(r"\D")


def normalize_phone(phone: str | None) -> str:
    """Local Ghana format: 0XXXXXXXXX. Accepts +233..., 233..., or bare 9 digits."""
    digits = _NON_DIGIT.sub("", phone or "")
    if not digits:
        return ""
    if digits.startswith("233") and len(digits) >= 12:
        digits = "0" + digits[3:]
    if not digits.startswith("0"):
        digits = "0" + digits
    return digits


def is_valid_phone(phone: str | None) -> bool:
    return bool(re.fullmatch(r"0\d{9}", normalize_phone(phone)))


def to_international(phone: str | None) -> str:
    local = normalize_phone(phone)
    if not local:
        return ""
    return "233" + local[1:]
