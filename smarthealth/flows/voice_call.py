"""
Inbound IVR call flow.

Each webhook of the provider lands in one function here and gets back a
``CallScript`` describing what the call does next. Callers are identified
by caller id, so voice sessions start authenticated.

While the doctor decides, the caller sits in the ``waiting`` step. Every
hold-music loop redirects to ``wait_for_doctor``, which asks the call queue
for the entry's status once and answers accordingly: bridge, apologise or
keep holding.
"""

from typing import Callable, Optional

from smarthealth.config import settings
from smarthealth.conversation.guards import guards
from smarthealth.conversation.state_machine import (
    SessionStateMachine,
    TransitionTrigger,
    VoiceStep,
)
from smarthealth.conversation.validators import parse_menu_index
from smarthealth.exceptions import SessionBusyError
from smarthealth.flows.history import doctor_names
from smarthealth.logging_context import get_session_logger, set_session_id
from smarthealth.prompts import voice_prompts
from smarthealth.prompts.ussd_messages import message
from smarthealth.repositories import call_queue, cases, doctors, offers, sessions, subscribers
from smarthealth.schemas.channel_schema import VoiceEvent
from smarthealth.schemas.entity_schema import (
    CallQueueEntry,
    CallQueueStatus,
    CaseStatus,
    ConsultationType,
    Subscriber,
)
from smarthealth.schemas.session_schema import Channel, DoctorOption, Session, VoiceCallPayload
from smarthealth.services import doctor_calls, messaging
from smarthealth.voice.script import CallScript

logger = get_session_logger(__name__)

INCOMING = "/api/voice/incoming"
MENU = "/api/voice/menu"
SELECT_DOCTOR = "/api/voice/select-doctor"
PROCESS_SYMPTOMS = "/api/voice/process-symptoms"
WAIT_FOR_DOCTOR = "/api/voice/wait-for-doctor"
CALL_COMPLETED = "/api/voice/call-completed"
CALL_STATUS = "/api/voice/call-status"
TRANSCRIPTION = "/api/voice/transcription"

FINAL_CALL_STATUSES = {"completed", "busy", "failed", "no-answer", "canceled"}


def _technical_error() -> CallScript:
    return CallScript().say(voice_prompts.TECHNICAL_ERROR).hangup()


def _run(event: VoiceEvent, handler: Callable[[VoiceEvent], CallScript]) -> CallScript:
    """Run ``handler`` under the call's session lock. Never raises."""
    set_session_id(event.call_id)
    try:
        with sessions.session_lock(event.call_id):
            return handler(event)
    except SessionBusyError:
        logger.warning("Voice session busy")
    except Exception:
        logger.exception("Voice webhook failed")
    return _technical_error()


def _gather_menu() -> CallScript:
    return (
        CallScript()
        .gather(MENU, voice_prompts.welcome_menu(), timeout=settings.voice.digit_timeout)
        .say(voice_prompts.NO_INPUT)
        .hangup()
    )


def _gather_doctor(doctor_list: list[DoctorOption]) -> CallScript:
    return (
        CallScript()
        .gather(SELECT_DOCTOR, voice_prompts.doctor_list(doctor_list), timeout=settings.voice.digit_timeout)
        .say(voice_prompts.NO_INPUT)
        .hangup()
    )


def _record(prompt: str) -> CallScript:
    return (
        CallScript()
        .record(
            PROCESS_SYMPTOMS,
            prompt,
            max_length=settings.voice.recording_max_length,
            transcribe_callback=TRANSCRIPTION,
        )
        .say(voice_prompts.NO_INPUT)
        .hangup()
    )


def _hold(first: str) -> CallScript:
    script = CallScript().say(first)
    if settings.voice.hold_music_url:
        script.play(settings.voice.hold_music_url)
    return script.redirect(WAIT_FOR_DOCTOR)


def _payload(session: Session) -> VoiceCallPayload:
    payload = session.payload
    if not isinstance(payload, VoiceCallPayload):
        payload = VoiceCallPayload()
        session.payload = payload
    return payload


def _load(event: VoiceEvent) -> Optional[Session]:
    session = sessions.get(event.call_id)
    if session is None:
        return None
    if not guards.authentication.check(session.step, session.authenticated).passed:
        return None
    return session


def _advance(session: Session, trigger: TransitionTrigger) -> None:
    machine = SessionStateMachine(session.step)
    session.step = machine.transition(trigger)


def _close(session: Session, trigger: TransitionTrigger = TransitionTrigger.SESSION_ENDED) -> None:
    machine = SessionStateMachine(session.step)
    if machine.can_transition(trigger):
        machine.transition(trigger)
    sessions.delete(session.session_id)


def _subscriber(session: Session) -> Subscriber:
    subscriber = subscribers.get(session.subscriber_id or "")
    if subscriber is None:
        subscriber = subscribers.get_or_create(session.subscriber_phone)
    return subscriber


# --- Caller leg ---

def incoming(event: VoiceEvent) -> CallScript:
    if not event.is_active:
        # Africa's Talking reports the end of a call on the entry URL
        call_status(event)
        return CallScript()
    return _run(event, _incoming)


def _incoming(event: VoiceEvent) -> CallScript:
    session = sessions.get(event.call_id)
    if session is None:
        subscriber = subscribers.get_or_create(event.caller)
        session = Session(
            session_id=event.call_id,
            channel=Channel.VOICE,
            subscriber_phone=subscriber.phone,
            subscriber_id=subscriber.id,
            authenticated=True,
            step=VoiceStep.INCOMING,
            payload=VoiceCallPayload(),
        )
        sessions.upsert(session)
        logger.info("Call started by %s", subscriber.id)
    return _gather_menu()


def menu(event: VoiceEvent) -> CallScript:
    return _run(event, _menu)


def _menu(event: VoiceEvent) -> CallScript:
    session = _load(event)
    if session is None:
        return CallScript().say(voice_prompts.SESSION_EXPIRED).hangup()
    payload = _payload(session)

    # A retried menu webhook re-renders the step the call already moved to
    if session.step == VoiceStep.TRIAL_RECORDING:
        return _record(voice_prompts.RECORD_SYMPTOMS)
    if session.step == VoiceStep.DOCTOR_SELECTION:
        return _gather_doctor(payload.doctors)
    if session.step == VoiceStep.PAID_RECORDING and payload.selected_doctor is not None:
        return _record(voice_prompts.doctor_selected(payload.selected_doctor))
    if session.step != VoiceStep.INCOMING:
        return CallScript().redirect(WAIT_FOR_DOCTOR)

    subscriber = _subscriber(session)
    choice = (event.digits or "").strip()

    if choice == "1":
        if not guards.trial.check(subscriber).passed:
            return CallScript().say(voice_prompts.TRIAL_ENDED).redirect(INCOMING)
        payload.consultation_type = ConsultationType.TRIAL
        _advance(session, TransitionTrigger.SELECT_TRIAL)
        sessions.upsert(session)
        return _record(voice_prompts.RECORD_SYMPTOMS)

    if choice == "2":
        available = doctors.list_available()
        if not available:
            _close(session)
            return CallScript().say(voice_prompts.NO_DOCTORS).hangup()
        payload.doctors = [DoctorOption.from_doctor(doctor) for doctor in available]
        payload.consultation_type = ConsultationType.PAID
        _advance(session, TransitionTrigger.SELECT_PAID)
        sessions.upsert(session)
        return _gather_doctor(payload.doctors)

    if choice == "3":
        recent = cases.list_for_subscriber(subscriber.id, limit=settings.session.history_limit)
        _close(session)
        return (
            CallScript()
            .say(voice_prompts.history(recent, doctor_names(recent)))
            .say(voice_prompts.goodbye())
            .hangup()
        )

    return CallScript().say(voice_prompts.INVALID_OPTION).redirect(INCOMING)


def select_doctor(event: VoiceEvent) -> CallScript:
    return _run(event, _select_doctor)


def _select_doctor(event: VoiceEvent) -> CallScript:
    session = _load(event)
    if session is None:
        return CallScript().say(voice_prompts.SESSION_EXPIRED).hangup()
    payload = _payload(session)
    if session.step == VoiceStep.PAID_RECORDING and payload.selected_doctor is not None:
        return _record(voice_prompts.doctor_selected(payload.selected_doctor))
    if session.step != VoiceStep.DOCTOR_SELECTION:
        return CallScript().say(voice_prompts.REQUEST_FAILED).hangup()

    index = parse_menu_index(event.digits or "", len(payload.doctors))
    if index is None:
        return CallScript().say(voice_prompts.INVALID_SELECTION).redirect(MENU)

    payload.selected_doctor = payload.doctors[index]
    _advance(session, TransitionTrigger.DOCTOR_SELECTED)
    sessions.upsert(session)
    return _record(voice_prompts.doctor_selected(payload.selected_doctor))


def process_symptoms(event: VoiceEvent) -> CallScript:
    return _run(event, _process_symptoms)


def _process_symptoms(event: VoiceEvent) -> CallScript:
    """Open the case, queue the call for a doctor and put the caller on hold."""
    session = _load(event)
    if session is None:
        return CallScript().say(voice_prompts.SESSION_EXPIRED).hangup()
    if session.step in (VoiceStep.QUEUED, VoiceStep.WAITING):
        return _hold(voice_prompts.KEEP_HOLDING)
    if session.step not in (VoiceStep.TRIAL_RECORDING, VoiceStep.PAID_RECORDING):
        return CallScript().say(voice_prompts.REQUEST_FAILED).hangup()
    if not event.recording_url:
        return _record(voice_prompts.RECORD_SYMPTOMS)

    payload = _payload(session)
    subscriber = _subscriber(session)
    consultation_type = payload.consultation_type or (
        ConsultationType.TRIAL if guards.trial.check(subscriber).passed else ConsultationType.PAID
    )
    payload.recording_url = event.recording_url
    symptoms = payload.transcription or f"Voice consultation - Recording: {event.recording_url}"
    case = cases.create(
        subscriber.id, symptoms, consultation_type, recording_url=event.recording_url,
    )
    payload.case_id = case.id

    if payload.selected_doctor is not None:
        case = cases.assign(case.id, payload.selected_doctor.id)
    else:
        case = cases.auto_assign(case.id)
    doctor = doctors.get(case.doctor_id) if case is not None and case.doctor_id else None
    if doctor is None:
        _close(session)
        return CallScript().say(voice_prompts.NO_DOCTORS).hangup()

    entry = call_queue.create(doctor.id, subscriber.id, payload.case_id, session.session_id)
    payload.queue_entry_id = entry.id
    _advance(session, TransitionTrigger.RECORDING_RECEIVED)
    doctor_calls.notify_doctor(doctor, subscriber, entry)
    _advance(session, TransitionTrigger.DOCTOR_NOTIFIED)
    sessions.upsert(session)
    return _hold(voice_prompts.CONNECTING)


def check_queue_status(call_id: str) -> Optional[CallQueueEntry]:
    """Current queue entry of the call, or None if nothing was queued."""
    return call_queue.find_by_call_session(call_id)


def wait_for_doctor(event: VoiceEvent) -> CallScript:
    return _run(event, _wait_for_doctor)


def _wait_for_doctor(event: VoiceEvent) -> CallScript:
    entry = check_queue_status(event.call_id)
    if entry is None:
        return CallScript().say(voice_prompts.REQUEST_FAILED).hangup()
    session = sessions.get(event.call_id)

    if entry.status == CallQueueStatus.ACCEPTED:
        case = cases.get(entry.case_id)
        if case is not None and case.status == CaseStatus.ASSIGNED:
            cases.set_status(case.id, CaseStatus.IN_PROGRESS)
        if session is not None and session.step == VoiceStep.WAITING:
            _advance(session, TransitionTrigger.DOCTOR_ACCEPTED)
            sessions.upsert(session)
        logger.info("Bridging call to doctor %s", entry.doctor_id)
        return (
            CallScript()
            .say(voice_prompts.BRIDGING)
            .dial(
                entry.doctor_phone or "",
                action=CALL_COMPLETED,
                status_callback=CALL_STATUS,
                caller_id=settings.voice.caller_id or None,
            )
        )

    if entry.status in (CallQueueStatus.REJECTED, CallQueueStatus.TIMEOUT):
        subscriber = subscribers.get(entry.subscriber_id)
        if subscriber is not None:
            messaging.notify(
                subscriber.phone,
                message("voice_unavailable_sms", subscriber.language, case_id=entry.case_id),
            )
        if session is not None:
            _close(session, TransitionTrigger.DOCTOR_UNAVAILABLE)
        logger.info("Doctor unavailable for %s (%s)", entry.id, entry.status.value)
        return CallScript().say(voice_prompts.DOCTOR_UNAVAILABLE).hangup()

    if entry.status == CallQueueStatus.COMPLETED:
        return CallScript().say(voice_prompts.goodbye()).hangup()

    if session is not None and session.step == VoiceStep.WAITING:
        _advance(session, TransitionTrigger.STILL_WAITING)
        sessions.upsert(session)
    return _hold(voice_prompts.KEEP_HOLDING)


def call_completed(event: VoiceEvent) -> CallScript:
    return _run(event, _call_completed)


def _call_completed(event: VoiceEvent) -> CallScript:
    _finish_call(event)
    return CallScript().say(voice_prompts.goodbye()).hangup()


def _finish_call(event: VoiceEvent) -> None:
    """Close the bridged call once: case completed, count bumped, SMS sent."""
    entry = call_queue.find_by_call_session(event.call_id)
    if entry is not None and call_queue.complete(entry.id, event.duration_seconds):
        case = cases.get(entry.case_id)
        if case is not None and case.status == CaseStatus.ASSIGNED:
            cases.set_status(case.id, CaseStatus.IN_PROGRESS)
        cases.set_status(entry.case_id, CaseStatus.COMPLETED)
        consultation_count = subscribers.increment_consultation_count(entry.subscriber_id)
        offers.grant_for_count(entry.subscriber_id, consultation_count)

        subscriber = subscribers.get(entry.subscriber_id)
        doctor = doctors.get(entry.doctor_id)
        if subscriber is not None:
            messaging.notify(
                subscriber.phone,
                message(
                    "voice_completed_sms", subscriber.language,
                    doctor=doctor.name if doctor else "", case_id=entry.case_id,
                ),
            )
        logger.info("Call %s completed (%ss)", entry.id, event.duration_seconds)

    session = sessions.get(event.call_id)
    if session is not None:
        trigger = (
            TransitionTrigger.CALL_ENDED
            if session.step == VoiceStep.BRIDGED
            else TransitionTrigger.SESSION_ENDED
        )
        _close(session, trigger)


def call_status(event: VoiceEvent) -> None:
    """Provider status callback. A final status closes the call."""
    status = (event.call_status or "").lower()
    if event.is_active and status not in FINAL_CALL_STATUSES:
        logger.debug("Call status: %s", status or "unknown")
        return
    _run(event, _call_completed)


def transcription(event: VoiceEvent) -> None:
    """Merge a late transcription into the session if the call is still live."""
    if not event.transcription:
        return
    set_session_id(event.call_id)
    try:
        with sessions.session_lock(event.call_id):
            session = sessions.get(event.call_id)
            if session is None:
                return
            _payload(session).transcription = event.transcription
            sessions.upsert(session)
    except SessionBusyError:
        logger.warning("Voice session busy, transcription dropped")
        return
    except Exception:
        logger.exception("Transcription callback failed")
        return
    logger.info("Transcription stored")
