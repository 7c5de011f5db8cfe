"""Session records and the tagged per-flow payloads they carry.

Every payload variant declares a literal ``kind`` so a stored session
always deserializes back into exactly the shape its flow wrote.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from smarthealth.conversation.state_machine import UssdStep, VoiceStep
from smarthealth.schemas.entity_schema import (
    ConsultationType,
    Doctor,
    OfferType,
    PaymentMethod,
)
from smarthealth.utils import utcnow


class Channel(str, Enum):
    USSD = "ussd"
    VOICE = "voice"


class DoctorOption(BaseModel):
    """Snapshot of a doctor taken when a numbered list is rendered."""
    id: str
    name: str
    phone: str
    specialization: str
    fee: float

    @classmethod
    def from_doctor(cls, doctor: Doctor) -> "DoctorOption":
        return cls(
            id=doctor.id,
            name=doctor.name,
            phone=doctor.phone,
            specialization=doctor.specialization,
            fee=doctor.fee,
        )


class EmptyPayload(BaseModel):
    kind: Literal["empty"] = "empty"


class RegistrationPayload(BaseModel):
    kind: Literal["registration"] = "registration"
    name: str


class PaidConsultationPayload(BaseModel):
    """Scratch data of the paid flow, from doctor list to symptom capture."""
    kind: Literal["paid"] = "paid"
    doctors: list[DoctorOption] = Field(default_factory=list)
    selected_doctor: Optional[DoctorOption] = None
    fee: float = 0.0
    discount: float = 0.0
    final_amount: float = 0.0
    offer_id: Optional[str] = None
    offer_type: Optional[OfferType] = None
    payment_method: Optional[PaymentMethod] = None
    payment_confirmed: bool = False
    payment_pending: bool = False
    payment_id: Optional[str] = None
    transaction_id: Optional[str] = None
    case_id: Optional[str] = None

    @property
    def is_free(self) -> bool:
        return self.selected_doctor is not None and self.final_amount <= 0


class VoiceCallPayload(BaseModel):
    kind: Literal["voice"] = "voice"
    doctors: list[DoctorOption] = Field(default_factory=list)
    selected_doctor: Optional[DoctorOption] = None
    consultation_type: Optional[ConsultationType] = None
    recording_url: Optional[str] = None
    transcription: Optional[str] = None
    case_id: Optional[str] = None
    queue_entry_id: Optional[str] = None


SessionPayload = Annotated[
    Union[EmptyPayload, RegistrationPayload, PaidConsultationPayload, VoiceCallPayload],
    Field(discriminator="kind"),
]


class Session(BaseModel):
    """One in-progress conversation, keyed by the channel's session id."""
    session_id: str
    channel: Channel
    subscriber_phone: str
    subscriber_id: Optional[str] = None
    authenticated: bool = False
    step: Union[UssdStep, VoiceStep]
    payload: SessionPayload = Field(default_factory=EmptyPayload)
    consumed: int = 0
    last_response: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

