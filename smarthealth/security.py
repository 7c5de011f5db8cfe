"""PIN hashing and payment payload signing."""

import hashlib
import hmac
import logging
import secrets
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)

_PBKDF2_ROUNDS = 100_000


def hash_pin(pin: str, salt: Optional[str] = None) -> str:
    """Return a salted PBKDF2 digest in ``salt$hexdigest`` form."""
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", pin.encode("utf-8"), salt.encode("utf-8"), _PBKDF2_ROUNDS
    ).hex()
    return f"{salt}${digest}"


def verify_pin(pin: str, pin_hash: Optional[str]) -> bool:
    if not pin_hash or "$" not in pin_hash:
        return False
    salt, _ = pin_hash.split("$", 1)
    return hmac.compare_digest(hash_pin(pin, salt), pin_hash)


def canonical_payload(payload: Mapping[str, Any]) -> str:
    """Sorted ``key=value`` pairs joined with ``&``, excluding the signature.

    Examples:
        >>> canonical_payload({"status": "success", "amount": 500, "signature": "x"})
        'amount=500&status=success'
    """
    return "&".join(
        f"{key}={payload[key]}"
        for key in sorted(payload)
        if key != "signature" and payload[key] is not None
    )


def sign_payload(payload: Mapping[str, Any], secret: str) -> str:
    """Calculate the HMAC-SHA256 hex signature of a payment payload."""
    return hmac.new(
        secret.encode("utf-8"),
        canonical_payload(payload).encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def verify_signature(payload: Mapping[str, Any], secret: str) -> bool:
    """Check the ``signature`` field of a payload against the shared secret."""
    signature = payload.get("signature")
    if not signature:
        logger.warning("Payment callback signature missing")
        return False
    expected = sign_payload(payload, secret)
    is_valid = hmac.compare_digest(str(signature), expected)
    if not is_valid:
        logger.warning("Payment callback signature mismatch (got %s...)", str(signature)[:6])
    return is_valid
