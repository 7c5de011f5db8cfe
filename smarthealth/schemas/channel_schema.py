"""Inbound webhook models and outbound channel responses."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel


class ResponseKind(str, Enum):
    CON = "CON"
    END = "END"


@dataclass(frozen=True)
class UssdResponse:
    """A USSD answer: ``CON`` keeps the session open, ``END`` closes it."""
    kind: ResponseKind
    text: str

    @classmethod
    def con(cls, text: str) -> "UssdResponse":
        return cls(ResponseKind.CON, text)

    @classmethod
    def end(cls, text: str) -> "UssdResponse":
        return cls(ResponseKind.END, text)

    @property
    def is_terminal(self) -> bool:
        return self.kind == ResponseKind.END

    @property
    def body(self) -> str:
        return f"{self.kind.value} {self.text}"

    @classmethod
    def parse(cls, body: str) -> "UssdResponse":
        kind, _, text = body.partition(" ")
        return cls(ResponseKind(kind), text)


class UssdRequest(BaseModel):
    """Fields posted by the USSD gateway on every round trip."""
    sessionId: str
    serviceCode: str = ""
    phoneNumber: str
    text: str = ""


class VoiceEvent(BaseModel):
    """Provider-neutral view of a voice webhook.

    Twilio posts ``CallSid``/``Digits``/``From``; Africa's Talking posts
    ``sessionId``/``dtmfDigits``/``callerNumber``. Both are folded into the
    same fields here so the call flow never branches on provider.
    """
    call_id: str
    caller: str = ""
    digits: Optional[str] = None
    recording_url: Optional[str] = None
    transcription: Optional[str] = None
    call_status: Optional[str] = None
    duration_seconds: Optional[int] = None
    is_active: bool = True

    @classmethod
    def from_form(cls, form: Mapping[str, Any]) -> "VoiceEvent":
        def pick(*names: str) -> Optional[str]:
            for name in names:
                value = form.get(name)
                if value not in (None, ""):
                    return str(value)
            return None

        duration = pick("CallDuration", "DialCallDuration", "durationInSeconds")
        return cls(
            call_id=pick("CallSid", "sessionId") or "",
            caller=pick("From", "callerNumber", "phoneNumber") or "",
            digits=pick("Digits", "dtmfDigits"),
            recording_url=pick("RecordingUrl", "recordingUrl"),
            transcription=pick("TranscriptionText", "transcriptionText"),
            call_status=pick("CallStatus", "DialCallStatus", "callSessionState", "status"),
            duration_seconds=int(float(duration)) if duration else None,
            is_active=pick("isActive") != "0",
        )


class PaymentCallback(BaseModel):
    """Body posted by the payment gateway when a push payment settles."""
    transactionId: str
    status: str
    paymentId: Optional[str] = None
    amount: Optional[float] = None
    signature: str
