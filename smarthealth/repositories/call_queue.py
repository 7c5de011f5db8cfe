"""
Call queue bridging voice callers to doctors.

The caller's wait loop and the doctor's accept/reject leg touch the same
entry from different requests. Every status change is a conditional
update under one lock: an entry leaves ``pending`` exactly once, so a late
doctor response can never resurrect a timed-out request.
"""

import logging
import threading
from datetime import datetime
from typing import Optional

from smarthealth.schemas.entity_schema import CallQueueEntry, CallQueueStatus
from smarthealth.utils import new_id, utcnow

logger = logging.getLogger(__name__)

_entries: dict[str, CallQueueEntry] = {}
_by_call: dict[str, str] = {}
_lock = threading.Lock()


def create(
    doctor_id: str,
    subscriber_id: str,
    case_id: str,
    call_session_id: str,
) -> CallQueueEntry:
    entry = CallQueueEntry(
        id=new_id("CQ"),
        doctor_id=doctor_id,
        subscriber_id=subscriber_id,
        case_id=case_id,
        call_session_id=call_session_id,
    )
    with _lock:
        _entries[entry.id] = entry
        _by_call[call_session_id] = entry.id
    logger.info("Call queued: %s for doctor %s (case %s)", entry.id, doctor_id, case_id)
    return entry.model_copy()


def get(entry_id: str) -> Optional[CallQueueEntry]:
    with _lock:
        entry = _entries.get(entry_id)
        return entry.model_copy() if entry else None


def find_by_call_session(call_session_id: str) -> Optional[CallQueueEntry]:
    with _lock:
        entry_id = _by_call.get(call_session_id)
        entry = _entries.get(entry_id) if entry_id else None
        return entry.model_copy() if entry else None


def _resolve(
    entry_id: str,
    expected: CallQueueStatus,
    new_status: CallQueueStatus,
    **changes: object,
) -> bool:
    with _lock:
        entry = _entries.get(entry_id)
        if entry is None or entry.status != expected:
            return False
        entry.status = new_status
        entry.resolved_at = utcnow()
        for name, value in changes.items():
            setattr(entry, name, value)
    logger.info("Call queue %s: %s -> %s", entry_id, expected.value, new_status.value)
    return True


def accept(entry_id: str, doctor_phone: str) -> bool:
    """Set ``accepted`` only if the entry is still pending."""
    return _resolve(
        entry_id, CallQueueStatus.PENDING, CallQueueStatus.ACCEPTED, doctor_phone=doctor_phone,
    )


def reject(entry_id: str, reason: str) -> bool:
    """Set ``rejected`` only if the entry is still pending."""
    return _resolve(
        entry_id, CallQueueStatus.PENDING, CallQueueStatus.REJECTED, rejection_reason=reason,
    )


def complete(entry_id: str, duration_seconds: Optional[int]) -> bool:
    """Close a bridged call. Only accepted entries can complete."""
    return _resolve(
        entry_id, CallQueueStatus.ACCEPTED, CallQueueStatus.COMPLETED,
        duration_seconds=duration_seconds,
    )


def expire_pending(cutoff: datetime) -> list[CallQueueEntry]:
    """Flip entries still pending since before ``cutoff`` to ``timeout``."""
    expired: list[CallQueueEntry] = []
    with _lock:
        for entry in _entries.values():
            if entry.status == CallQueueStatus.PENDING and entry.created_at < cutoff:
                entry.status = CallQueueStatus.TIMEOUT
                entry.resolved_at = utcnow()
                expired.append(entry.model_copy())
    for entry in expired:
        logger.info("Call queue %s timed out", entry.id)
    return expired


def list_all() -> list[CallQueueEntry]:
    with _lock:
        return [e.model_copy() for e in _entries.values()]


def reset() -> None:
    with _lock:
        _entries.clear()
        _by_call.clear()
