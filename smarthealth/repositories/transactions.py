"""In-process payment transaction records."""

import logging
import threading
from datetime import datetime
from typing import Optional

from smarthealth.exceptions import TransactionNotFoundError
from smarthealth.schemas.entity_schema import PaymentMethod, Transaction, TransactionStatus
from smarthealth.utils import new_id, utcnow

logger = logging.getLogger(__name__)

_transactions: dict[str, Transaction] = {}
_lock = threading.RLock()


def create(
    subscriber_id: str,
    amount: float,
    payment_method: PaymentMethod,
    case_id: Optional[str] = None,
    status: TransactionStatus = TransactionStatus.PENDING,
    payment_id: Optional[str] = None,
) -> Transaction:
    txn = Transaction(
        id=new_id("TXN"),
        subscriber_id=subscriber_id,
        case_id=case_id,
        amount=amount,
        payment_method=payment_method,
        payment_id=payment_id,
        status=status,
    )
    with _lock:
        _transactions[txn.id] = txn
    logger.info(
        "Transaction recorded: %s %s %s (%s)",
        txn.id, payment_method.value, amount, status.value,
    )
    return txn.model_copy()


def get(transaction_id: str) -> Optional[Transaction]:
    txn = _transactions.get(transaction_id)
    return txn.model_copy() if txn else None


def require(transaction_id: str) -> Transaction:
    txn = get(transaction_id)
    if txn is None:
        raise TransactionNotFoundError(f"Transaction {transaction_id} not found")
    return txn


def set_payment_id(transaction_id: str, payment_id: str) -> None:
    with _lock:
        _transactions[transaction_id].payment_id = payment_id


def resolve(transaction_id: str, status: TransactionStatus) -> bool:
    """Move a pending transaction to ``status``.

    Only pending transactions change; returns False otherwise so a late or
    repeated callback cannot flip a settled payment.

    Raises:
        TransactionNotFoundError: If the id is unknown.
    """
    with _lock:
        txn = _transactions.get(transaction_id)
        if txn is None:
            raise TransactionNotFoundError(f"Transaction {transaction_id} not found")
        if txn.status != TransactionStatus.PENDING:
            return False
        txn.status = status
        txn.updated_at = utcnow()
    logger.info("Transaction %s -> %s", transaction_id, status.value)
    return True


def find_by_case(case_id: str) -> Optional[Transaction]:
    for txn in _transactions.values():
        if txn.case_id == case_id:
            return txn.model_copy()
    return None


def list_pending_before(cutoff: datetime) -> list[Transaction]:
    return [
        t.model_copy() for t in _transactions.values()
        if t.status == TransactionStatus.PENDING and t.created_at < cutoff
    ]


def list_for_subscriber(subscriber_id: str) -> list[Transaction]:
    return [t.model_copy() for t in _transactions.values() if t.subscriber_id == subscriber_id]


def reset() -> None:
    with _lock:
        _transactions.clear()
