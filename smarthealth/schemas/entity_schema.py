"""Subscriber, doctor, case, offer, transaction and call-queue records."""

from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from smarthealth.utils import utcnow


class Language(str, Enum):
    EN = "en"
    SW = "sw"


class DoctorStatus(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    BUSY = "busy"


class ConsultationType(str, Enum):
    TRIAL = "trial"
    PAID = "paid"
    FREE_OFFER = "free_offer"


class CaseStatus(str, Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class OfferType(str, Enum):
    DISCOUNT = "discount"
    FREE_CONSULTATION = "free_consultation"
    PRIORITY_QUEUE = "priority_queue"


class PaymentMethod(str, Enum):
    MOBILE = "mobile"
    BALANCE = "balance"
    FREE_OFFER = "free_offer"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class CallQueueStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    TIMEOUT = "timeout"
    COMPLETED = "completed"


class Subscriber(BaseModel):
    """Phone-identified user of the service."""
    id: str
    phone: str
    name: Optional[str] = None
    pin_hash: Optional[str] = None
    language: Language = Language.EN
    balance: float = 0.0
    consultation_count: int = 0
    trial_start: datetime = Field(default_factory=utcnow)
    trial_end: datetime = Field(default_factory=utcnow)
    failed_pin_attempts: int = 0
    locked_until: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def display_name(self) -> str:
        return self.name or "User"

    def in_trial_window(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) <= self.trial_end

    def trial_remaining(self, free_consultations: int, now: Optional[datetime] = None) -> int:
        """Free consultations left, zero once the trial window has closed."""
        if not self.in_trial_window(now):
            return 0
        return max(0, free_consultations - self.consultation_count)

    def is_locked(self, now: Optional[datetime] = None) -> bool:
        return self.locked_until is not None and (now or utcnow()) < self.locked_until


class Doctor(BaseModel):
    id: str
    name: str
    phone: str
    specialization: str = "General Practice"
    fee: float
    status: DoctorStatus = DoctorStatus.ONLINE
    rating: float = 0.0


class Case(BaseModel):
    """One consultation request."""
    id: str
    subscriber_id: str
    doctor_id: Optional[str] = None
    symptoms: str
    consultation_type: ConsultationType
    priority: int = 0
    status: CaseStatus = CaseStatus.PENDING
    recording_url: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None


class Offer(BaseModel):
    id: str
    subscriber_id: str
    offer_type: OfferType
    discount_percentage: Optional[int] = None
    expiry: datetime
    applied: bool = False
    created_at: datetime = Field(default_factory=utcnow)

    def is_active(self, now: Optional[datetime] = None) -> bool:
        return not self.applied and (now or utcnow()) <= self.expiry


class Transaction(BaseModel):
    id: str
    subscriber_id: str
    case_id: Optional[str] = None
    amount: float
    payment_method: PaymentMethod
    payment_id: Optional[str] = None
    status: TransactionStatus = TransactionStatus.PENDING
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class CallQueueEntry(BaseModel):
    """Bridges a voice caller's case to one doctor's accept/reject decision."""
    id: str
    doctor_id: str
    subscriber_id: str
    case_id: str
    call_session_id: str
    status: CallQueueStatus = CallQueueStatus.PENDING
    doctor_phone: Optional[str] = None
    rejection_reason: Optional[str] = None
    duration_seconds: Optional[int] = None
    created_at: datetime = Field(default_factory=utcnow)
    resolved_at: Optional[datetime] = None

    def is_expired(self, timeout: timedelta, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) - self.created_at > timeout
