"""
Mobile payment gateway client.

``initiate`` records a pending transaction and asks the gateway to push a
payment prompt to the subscriber's phone. The gateway later reports the
outcome through a signed callback (``handle_callback``); flows that need the
outcome before then call ``check_status``.

In test mode no HTTP call is made: the push is simulated with a ``TEST_``
payment id and the transaction stays pending until
``complete_test_payment`` is called.
"""

import logging
from typing import Any, Optional, TypedDict

import requests

from smarthealth.config import settings
from smarthealth.exceptions import PaymentGatewayError, SignatureError
from smarthealth.prompts import ussd_messages
from smarthealth.repositories import subscribers, transactions
from smarthealth.schemas.entity_schema import PaymentMethod, TransactionStatus
from smarthealth.security import sign_payload, verify_signature
from smarthealth.services import messaging

logger = logging.getLogger(__name__)

SUCCESS_STATUSES = {"success", "completed"}


class PaymentInitiation(TypedDict):
    """Result of ``initiate``."""
    transaction_id: str
    payment_id: str
    status: str


class CallbackResult(TypedDict):
    transaction_id: str
    status: str
    changed: bool


def initiate(
    subscriber_id: str,
    amount: float,
    phone: str,
    case_id: Optional[str] = None,
) -> PaymentInitiation:
    """Start a push payment.

    Raises:
        PaymentGatewayError: If the gateway cannot be reached or refuses the request.
    """
    config = settings.payment
    txn = transactions.create(
        subscriber_id, amount, PaymentMethod.MOBILE, case_id=case_id,
    )

    if config.test_mode:
        payment_id = f"TEST_{txn.id}"
        transactions.set_payment_id(txn.id, payment_id)
        logger.info(
            "Payment push simulated for %s (complete via /api/payments/test-complete/%s)",
            txn.id, txn.id,
        )
        return {"transaction_id": txn.id, "payment_id": payment_id, "status": "pending"}

    body: dict[str, Any] = {
        "merchant_id": config.merchant_id,
        "amount": amount,
        "currency": settings.brand.currency,
        "phone": phone,
        "reference": txn.id,
        "callback_url": config.callback_url,
        "description": f"{settings.brand.service_name} consultation {case_id or ''}".strip(),
    }
    body["signature"] = sign_payload(body, config.secret)
    headers = {
        "Authorization": f"Bearer {config.api_key}",
        "Content-Type": "application/json",
    }
    try:
        response = requests.post(
            f"{config.api_url}/initiate", json=body, headers=headers, timeout=config.timeout_sec,
        )
        response.raise_for_status()
        payment_id = response.json()["payment_id"]
    except (requests.RequestException, KeyError, ValueError) as e:
        transactions.resolve(txn.id, TransactionStatus.FAILED)
        logger.error("Payment initiation failed for %s: %s", txn.id, e)
        raise PaymentGatewayError(f"Payment initiation failed: {e}") from e

    transactions.set_payment_id(txn.id, payment_id)
    logger.info("Payment initiated: %s (%s)", txn.id, payment_id)
    return {"transaction_id": txn.id, "payment_id": payment_id, "status": "pending"}


def check_status(transaction_id: str) -> str:
    """Return ``pending``, ``completed`` or ``failed``.

    Raises:
        TransactionNotFoundError: If the id is unknown.
    """
    return transactions.require(transaction_id).status.value


def handle_callback(payload: dict[str, Any]) -> CallbackResult:
    """Apply a gateway callback.

    Raises:
        SignatureError: If the HMAC does not match. Nothing is changed.
        TransactionNotFoundError: If the transaction id is unknown.
    """
    if not verify_signature(payload, settings.payment.secret):
        raise SignatureError("Invalid payment callback signature")

    transaction_id = str(payload.get("transactionId", ""))
    succeeded = str(payload.get("status", "")).lower() in SUCCESS_STATUSES
    new_status = TransactionStatus.COMPLETED if succeeded else TransactionStatus.FAILED
    changed = transactions.resolve(transaction_id, new_status)
    if changed and succeeded:
        _notify_completed(transaction_id)
    return {"transaction_id": transaction_id, "status": new_status.value, "changed": changed}


def complete_test_payment(transaction_id: str) -> CallbackResult:
    """Simulate the gateway's success callback for a test-mode payment."""
    txn = transactions.require(transaction_id)
    payload: dict[str, Any] = {
        "transactionId": txn.id,
        "status": "success",
        "paymentId": txn.payment_id,
    }
    payload["signature"] = sign_payload(payload, settings.payment.secret)
    return handle_callback(payload)


def _notify_completed(transaction_id: str) -> None:
    txn = transactions.require(transaction_id)
    subscriber = subscribers.get(txn.subscriber_id)
    if subscriber is None:
        return
    messaging.notify(
        subscriber.phone,
        ussd_messages.message(
            "payment_completed_sms", subscriber.language,
            case_id=txn.case_id or "-", amount=txn.amount,
        ),
    )
