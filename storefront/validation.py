"""Input rules shared by the services and the request layer."""
from __future__ import annotations
import math
import re
from typing import Any, Optional

from email_validator import EmailNotValidError, validate_email

PHONE_RE = re.compile(r"^\+?\d{10,15}$")
PHONE_SEPARATORS_RE = re.compile(r"[\s\-().]")

MIN_PASSWORD_LENGTH = 6


def clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def is_valid_email(value: Any) -> bool:
    """Syntax only; the domain is never looked up."""
    if not isinstance(value, str):
        return False
    try:
        validate_email(value.strip(), check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def is_valid_phone(value: Any) -> bool:
    """Optional leading '+', then 10-15 digits once separators are removed."""
    if not isinstance(value, str):
        return False
    compact = PHONE_SEPARATORS_RE.sub("", value.strip())
    return bool(PHONE_RE.match(compact))


def parse_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        n = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(n) or math.isinf(n):
        return None
    return n


def parse_price(value: Any) -> Optional[float]:
    """Positive price or None."""
    n = parse_number(value)
    if n is None or n <= 0:
        return None
    return n
