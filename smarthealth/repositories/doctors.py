"""
In-process doctor roster.

In production the roster lives in the clinic database and doctors toggle
their own status from the dashboard.
"""

import logging
from typing import Optional

from smarthealth.schemas.entity_schema import Doctor, DoctorStatus

logger = logging.getLogger(__name__)

DEFAULT_DOCTORS: list[Doctor] = [
    Doctor(id="DOC-001", name="Amina Hassan", phone="+254711000001",
           specialization="General Practice", fee=300, rating=4.8),
    Doctor(id="DOC-002", name="John Mwangi", phone="+254711000002",
           specialization="Pediatrics", fee=500, rating=4.6),
    Doctor(id="DOC-003", name="Grace Otieno", phone="+254711000003",
           specialization="Internal Medicine", fee=800, rating=4.9),
]

_doctors: dict[str, Doctor] = {}


def add(doctor: Doctor) -> Doctor:
    _doctors[doctor.id] = doctor.model_copy()
    return doctor


def get(doctor_id: str) -> Optional[Doctor]:
    doctor = _doctors.get(doctor_id)
    return doctor.model_copy() if doctor else None


def find_by_phone(phone: str) -> Optional[Doctor]:
    for doctor in _doctors.values():
        if doctor.phone == phone:
            return doctor.model_copy()
    return None


def list_available() -> list[Doctor]:
    """Online doctors, cheapest first."""
    online = [d for d in _doctors.values() if d.status == DoctorStatus.ONLINE]
    return [d.model_copy() for d in sorted(online, key=lambda d: (d.fee, d.name))]


def set_status(doctor_id: str, status: DoctorStatus) -> None:
    _doctors[doctor_id].status = status
    logger.info("Doctor %s is now %s", doctor_id, status.value)


def seed_defaults() -> None:
    for doctor in DEFAULT_DOCTORS:
        add(doctor)


def reset() -> None:
    _doctors.clear()
