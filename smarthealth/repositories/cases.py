"""
In-process consultation case repository.

Case status follows ``pending -> assigned -> in_progress -> completed``;
any open case may be cancelled. Completed and cancelled cases are final.
"""

import logging
import threading
from datetime import datetime
from typing import Optional

from smarthealth.exceptions import CaseStateError
from smarthealth.repositories import doctors
from smarthealth.schemas.entity_schema import Case, CaseStatus, ConsultationType
from smarthealth.utils import new_id, utcnow

logger = logging.getLogger(__name__)

ALLOWED_STATUS_CHANGES: dict[CaseStatus, set[CaseStatus]] = {
    CaseStatus.PENDING: {CaseStatus.ASSIGNED, CaseStatus.CANCELLED},
    CaseStatus.ASSIGNED: {CaseStatus.ASSIGNED, CaseStatus.IN_PROGRESS, CaseStatus.CANCELLED},
    CaseStatus.IN_PROGRESS: {CaseStatus.COMPLETED, CaseStatus.CANCELLED},
    CaseStatus.COMPLETED: set(),
    CaseStatus.CANCELLED: set(),
}

ACTIVE_STATUSES = {CaseStatus.ASSIGNED, CaseStatus.IN_PROGRESS}

_cases: dict[str, Case] = {}
_lock = threading.RLock()


def create(
    subscriber_id: str,
    symptoms: str,
    consultation_type: ConsultationType,
    priority: int = 0,
    recording_url: Optional[str] = None,
) -> Case:
    case = Case(
        id=new_id("CASE"),
        subscriber_id=subscriber_id,
        symptoms=symptoms,
        consultation_type=consultation_type,
        priority=priority,
        recording_url=recording_url,
    )
    with _lock:
        _cases[case.id] = case
    logger.info(
        "Case created: %s (%s, priority %d) for %s",
        case.id, consultation_type.value, priority, subscriber_id,
    )
    return case.model_copy()


def get(case_id: str) -> Optional[Case]:
    case = _cases.get(case_id)
    return case.model_copy() if case else None


def _change_status(case: Case, status: CaseStatus) -> None:
    if status not in ALLOWED_STATUS_CHANGES[case.status]:
        raise CaseStateError(
            f"Case {case.id} cannot move from '{case.status.value}' to '{status.value}'"
        )
    case.status = status
    case.updated_at = utcnow()
    if status == CaseStatus.COMPLETED:
        case.completed_at = case.updated_at


def set_status(case_id: str, status: CaseStatus) -> Case:
    """Move a case along its status machine.

    Raises:
        CaseStateError: If the change is not allowed from the current status.
    """
    with _lock:
        case = _cases[case_id]
        _change_status(case, status)
        logger.info("Case %s -> %s", case_id, status.value)
        return case.model_copy()


def assign(case_id: str, doctor_id: str) -> Case:
    with _lock:
        case = _cases[case_id]
        _change_status(case, CaseStatus.ASSIGNED)
        case.doctor_id = doctor_id
        logger.info("Case %s assigned to %s", case_id, doctor_id)
        return case.model_copy()


def update_details(
    case_id: str,
    symptoms: Optional[str] = None,
    consultation_type: Optional[ConsultationType] = None,
    priority: Optional[int] = None,
) -> Case:
    """Fill in a provisional case once the real details are known."""
    with _lock:
        case = _cases[case_id]
        if case.status in (CaseStatus.COMPLETED, CaseStatus.CANCELLED):
            raise CaseStateError(f"Case {case_id} is closed ({case.status.value})")
        if symptoms is not None:
            case.symptoms = symptoms
        if consultation_type is not None:
            case.consultation_type = consultation_type
        if priority is not None:
            case.priority = priority
        case.updated_at = utcnow()
        return case.model_copy()


def active_count(doctor_id: str) -> int:
    return sum(
        1 for c in _cases.values()
        if c.doctor_id == doctor_id and c.status in ACTIVE_STATUSES
    )


def auto_assign(case_id: str) -> Optional[Case]:
    """Assign the online doctor with the fewest active cases.

    Returns None and leaves the case pending when nobody is online.
    """
    with _lock:
        available = doctors.list_available()
        if not available:
            logger.warning("No doctor online to auto-assign case %s", case_id)
            return None
        doctor = min(available, key=lambda d: (active_count(d.id), d.fee))
        return assign(case_id, doctor.id)


def list_for_subscriber(subscriber_id: str, limit: Optional[int] = None) -> list[Case]:
    """Most recent first."""
    matches = sorted(
        (c for c in _cases.values() if c.subscriber_id == subscriber_id),
        key=lambda c: c.created_at,
        reverse=True,
    )
    if limit is not None:
        matches = matches[:limit]
    return [c.model_copy() for c in matches]


def list_open_created_before(cutoff: datetime) -> list[Case]:
    return [
        c.model_copy() for c in _cases.values()
        if c.created_at < cutoff
        and c.status not in (CaseStatus.COMPLETED, CaseStatus.CANCELLED)
    ]


def count() -> int:
    return len(_cases)


def reset() -> None:
    with _lock:
        _cases.clear()
