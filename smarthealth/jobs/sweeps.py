"""
Periodic maintenance sweeps.

Each sweep takes an explicit ``now`` so tests can move time forward without
sleeping. Sweeps only use conditional repository updates, so they are safe
to run while webhooks are being served.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional, TypedDict

from smarthealth.config import settings
from smarthealth.flows.paid import PROVISIONAL_SYMPTOMS
from smarthealth.repositories import call_queue, cases, offers, sessions, transactions
from smarthealth.schemas.entity_schema import CaseStatus, TransactionStatus
from smarthealth.services import messaging
from smarthealth.utils import utcnow

logger = logging.getLogger(__name__)


class SweepStats(TypedDict):
    sessions_expired: int
    replays_purged: int
    calls_timed_out: int
    provisional_cases_cancelled: int
    offers_purged: int


def expire_sessions(now: Optional[datetime] = None) -> int:
    """Delete sessions idle for longer than the session timeout."""
    now = now or utcnow()
    cutoff = now - timedelta(minutes=settings.session.timeout_minutes)
    expired = 0
    for session in sessions.list_inactive(cutoff):
        if sessions.delete(session.session_id):
            expired += 1
    sessions.purge_idle_locks()
    if expired:
        logger.info("Expired %d idle sessions", expired)
    return expired


def expire_call_queue(now: Optional[datetime] = None) -> int:
    """Time out queue entries the doctor never answered."""
    now = now or utcnow()
    cutoff = now - timedelta(minutes=settings.voice.call_queue_timeout_minutes)
    return len(call_queue.expire_pending(cutoff))


def expire_provisional_cases(now: Optional[datetime] = None) -> int:
    """Cancel cases opened for a mobile payment that never completed.

    The pending transaction is failed and the parked payment dropped. A case
    whose payment did complete is left for manual reconciliation.
    """
    now = now or utcnow()
    cutoff = now - timedelta(hours=settings.session.provisional_case_ttl_hours)
    parked = sessions.parked_payments()
    cancelled = 0
    for case in cases.list_open_created_before(cutoff):
        if case.status != CaseStatus.PENDING or case.symptoms != PROVISIONAL_SYMPTOMS:
            continue
        txn = transactions.find_by_case(case.id)
        if txn is not None and txn.status == TransactionStatus.COMPLETED:
            logger.warning("Provisional case %s has a completed payment, left open", case.id)
            continue
        if txn is not None:
            transactions.resolve(txn.id, TransactionStatus.FAILED)
        cases.set_status(case.id, CaseStatus.CANCELLED)
        payload = parked.get(case.subscriber_id)
        if payload is not None and payload.case_id == case.id:
            sessions.drop_parked_payment(case.subscriber_id)
        cancelled += 1
        logger.info("Provisional case %s cancelled", case.id)
    return cancelled


def run_all(now: Optional[datetime] = None) -> SweepStats:
    now = now or utcnow()
    return {
        "sessions_expired": expire_sessions(now),
        "replays_purged": sessions.purge_replays(now),
        "calls_timed_out": expire_call_queue(now),
        "provisional_cases_cancelled": expire_provisional_cases(now),
        "offers_purged": offers.purge_expired(now),
    }


def process_sms_queue() -> dict[str, int]:
    return messaging.process_queue()
