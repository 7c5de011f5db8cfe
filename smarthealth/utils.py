"""Shared utilities used across the session engine."""

import re
import uuid
from datetime import datetime, timezone


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("0712 345 678")
        '0712345678'
        >>> normalize_phone("+254 (712) 345-678")
        '+254712345678'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id(prefix: str) -> str:
    """Short human-readable identifier such as ``CASE-3F9A1C``."""
    return f"{prefix}-{uuid.uuid4().hex[:6].upper()}"


def format_amount(amount: float) -> str:
    """Render a money amount without trailing ``.0`` for whole values.

    Examples:
        >>> format_amount(500.0)
        '500'
        >>> format_amount(400.5)
        '400.50'
    """
    if float(amount).is_integer():
        return str(int(amount))
    return f"{amount:.2f}"
