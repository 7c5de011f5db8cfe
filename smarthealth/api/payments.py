"""Payment gateway callback and test-mode helpers."""

import logging
from typing import Any

from fastapi import APIRouter, Body, HTTPException
from pydantic import ValidationError

from smarthealth.config import settings
from smarthealth.exceptions import SignatureError, TransactionNotFoundError
from smarthealth.repositories import transactions
from smarthealth.schemas.channel_schema import PaymentCallback
from smarthealth.services import payments

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["payments"])


@router.post("/callback")
def callback(payload: dict[str, Any] = Body(...)) -> dict[str, Any]:
    """Settle a push payment. The signature covers the posted fields as sent."""
    if not payload.get("signature"):
        raise HTTPException(status_code=401, detail="Invalid signature")
    try:
        PaymentCallback.model_validate(payload)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors()) from e
    try:
        result = payments.handle_callback(payload)
    except SignatureError as e:
        logger.warning("Payment callback rejected: %s", e)
        raise HTTPException(status_code=401, detail="Invalid signature") from e
    except TransactionNotFoundError as e:
        raise HTTPException(status_code=404, detail="Transaction not found") from e
    return {"success": True, **result}


@router.post("/test-complete/{transaction_id}")
def test_complete(transaction_id: str) -> dict[str, Any]:
    if not settings.payment.test_mode:
        raise HTTPException(status_code=403, detail="Test payments are disabled")
    try:
        result = payments.complete_test_payment(transaction_id)
    except TransactionNotFoundError as e:
        raise HTTPException(status_code=404, detail="Transaction not found") from e
    return {"success": True, **result}


@router.get("/{transaction_id}/status")
def status(transaction_id: str) -> dict[str, Any]:
    txn = transactions.get(transaction_id)
    if txn is None:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return {
        "transaction_id": txn.id,
        "status": txn.status.value,
        "amount": txn.amount,
        "case_id": txn.case_id,
        "payment_method": txn.payment_method.value,
    }
