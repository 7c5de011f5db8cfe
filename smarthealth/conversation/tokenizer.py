"""Splits the accumulated USSD input into per-step tokens.

The gateway sends the *entire* input history on every round trip, joined
with ``*``. The empty string means the subscriber has just dialled.

    >>> tokenize("")
    []
    >>> tokenize("1234*2*1")
    ['1234', '2', '1']
"""

from typing import Optional

SEPARATOR = "*"


def tokenize(raw: Optional[str]) -> list[str]:
    """Return one token per step taken since the session started."""
    if not raw:
        return []
    return [token.strip() for token in raw.split(SEPARATOR)]


def new_tokens(tokens: list[str], consumed: int) -> list[str]:
    """Tokens the session has not applied yet."""
    return tokens[consumed:]
