"""
Reaching a doctor about a queued voice consultation.

When Twilio credentials are configured the doctor gets an outbound call
whose webhook (``/api/voice/doctor-call``) plays the accept/reject menu.
Otherwise the doctor is told by SMS. Both are best effort: a failure is
logged and the caller keeps waiting until the queue entry times out.
"""

import logging
from typing import Optional

from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client

from smarthealth.config import settings
from smarthealth.prompts import voice_prompts
from smarthealth.schemas.entity_schema import CallQueueEntry, Doctor, Subscriber
from smarthealth.services import messaging

logger = logging.getLogger(__name__)


def outbound_calls_enabled() -> bool:
    voice = settings.voice
    return bool(voice.twilio_account_sid and voice.twilio_auth_token and voice.caller_id)


def place_call(doctor_phone: str, entry_id: str) -> Optional[str]:
    """Dial the doctor. Returns the call SID, or None on failure."""
    voice = settings.voice
    client = Client(voice.twilio_account_sid, voice.twilio_auth_token)
    try:
        call = client.calls.create(
            url=f"{voice.api_base_url}/api/voice/doctor-call?requestId={entry_id}",
            to=doctor_phone,
            from_=voice.caller_id,
            status_callback=f"{voice.api_base_url}/api/voice/doctor-call-status?requestId={entry_id}",
            status_callback_method="POST",
        )
    except TwilioRestException as e:
        logger.error("Outbound call to doctor for %s failed: %s", entry_id, e)
        return None
    logger.info("Doctor call placed for %s: %s", entry_id, call.sid)
    return call.sid


def notify_doctor(doctor: Doctor, subscriber: Subscriber, entry: CallQueueEntry) -> None:
    if outbound_calls_enabled() and place_call(doctor.phone, entry.id):
        return
    messaging.notify(
        doctor.phone,
        voice_prompts.doctor_request_sms(subscriber.display_name, entry.case_id, entry.id),
    )
