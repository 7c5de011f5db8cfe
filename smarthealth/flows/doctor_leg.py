"""
The doctor's side of a queued voice consultation.

The outbound call to the doctor plays the accept/reject menu; the digit
lands in ``respond``. Accepting and rejecting are conditional updates on
the queue entry, so a response that arrives after the caller's wait
timed out is told the request is gone.
"""

import logging
from typing import Optional

from smarthealth.prompts import voice_prompts
from smarthealth.repositories import call_queue, doctors, subscribers
from smarthealth.schemas.channel_schema import VoiceEvent
from smarthealth.schemas.entity_schema import CallQueueStatus
from smarthealth.voice.script import CallScript

logger = logging.getLogger(__name__)

DOCTOR_RESPONSE = "/api/voice/doctor-response"

FAILED_CALL_STATUSES = {"busy", "failed", "no-answer", "canceled"}


def _response_url(request_id: str) -> str:
    return f"{DOCTOR_RESPONSE}?requestId={request_id}"


def offer(request_id: Optional[str]) -> CallScript:
    """Read the request to the doctor and collect 1 (accept) or 2 (reject)."""
    entry = call_queue.get(request_id or "")
    if entry is None:
        return CallScript().say(voice_prompts.DOCTOR_INVALID_REQUEST).hangup()
    if entry.status != CallQueueStatus.PENDING:
        return CallScript().say(voice_prompts.DOCTOR_TOO_LATE).hangup()
    subscriber = subscribers.get(entry.subscriber_id)
    patient = subscriber.display_name if subscriber else "a patient"
    return (
        CallScript()
        .gather(_response_url(entry.id), voice_prompts.doctor_request(patient))
        .say(voice_prompts.NO_INPUT)
        .hangup()
    )


def respond(request_id: Optional[str], event: VoiceEvent) -> CallScript:
    entry = call_queue.get(request_id or "")
    if entry is None:
        return CallScript().say(voice_prompts.DOCTOR_INVALID_REQUEST).hangup()

    choice = (event.digits or "").strip()
    if choice == "1":
        doctor = doctors.get(entry.doctor_id)
        phone = doctor.phone if doctor else event.caller
        if call_queue.accept(entry.id, phone):
            logger.info("Doctor %s accepted %s", entry.doctor_id, entry.id)
            return CallScript().say(voice_prompts.DOCTOR_ACCEPTED).hangup()
        return CallScript().say(voice_prompts.DOCTOR_TOO_LATE).hangup()

    if choice == "2":
        if call_queue.reject(entry.id, "Doctor declined"):
            logger.info("Doctor %s rejected %s", entry.doctor_id, entry.id)
            return CallScript().say(voice_prompts.DOCTOR_REJECTED).hangup()
        return CallScript().say(voice_prompts.DOCTOR_TOO_LATE).hangup()

    return (
        CallScript()
        .say(voice_prompts.INVALID_OPTION)
        .redirect(f"/api/voice/doctor-call?requestId={entry.id}")
    )


def call_status(request_id: Optional[str], event: VoiceEvent) -> None:
    """An unanswered doctor call counts as a rejection."""
    status = (event.call_status or "").lower()
    if status not in FAILED_CALL_STATUSES or not request_id:
        logger.debug("Doctor call status: %s", status or "unknown")
        return
    if call_queue.reject(request_id, f"Doctor call {status}"):
        logger.info("Doctor call for %s ended with %s", request_id, status)
