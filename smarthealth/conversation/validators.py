"""
Input validators for the values collected during a session.

Each validator is a pure predicate over a single token so flows can
reject bad input with a terminal response before touching any store.
"""

import re
from typing import Optional

from smarthealth.config import settings

PIN_PATTERN = re.compile(r"^\d{4}$")


def validate_name(value: str) -> bool:
    return len(value.strip()) >= settings.session.min_name_length


def validate_pin(value: str) -> bool:
    """PINs are exactly four digits."""
    return bool(PIN_PATTERN.match(value.strip()))


def validate_symptoms(value: str) -> bool:
    return len(value.strip()) >= settings.session.min_symptom_length


def normalize_name(value: str) -> str:
    """Collapse inner whitespace: ``'  Jane   Doe '`` becomes ``'Jane Doe'``."""
    return " ".join(value.split())


def parse_menu_index(token: str, size: int) -> Optional[int]:
    """Convert a 1-based menu choice into a list index.

    Returns None when the token is not a number or falls outside the menu.
    """
    token = token.strip()
    if not token.isdigit():
        return None
    index = int(token) - 1
    if 0 <= index < size:
        return index
    return None
