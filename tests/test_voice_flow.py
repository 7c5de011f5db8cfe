"""Tests for the IVR call flow and the doctor's accept/reject leg."""

import threading
from datetime import timedelta

import pytest

from smarthealth.conversation.state_machine import VoiceStep
from smarthealth.exceptions import SessionBusyError
from smarthealth.flows import doctor_leg, voice_call
from smarthealth.prompts import voice_prompts
from smarthealth.repositories import call_queue, cases, doctors, sessions, subscribers
from smarthealth.schemas.channel_schema import VoiceEvent
from smarthealth.schemas.entity_schema import (
    CallQueueStatus,
    CaseStatus,
    ConsultationType,
    DoctorStatus,
)
from smarthealth.utils import utcnow
from smarthealth.voice.script import Dial, GetDigits, Record, Say
from tests.conftest import PHONE, make_subscriber

CALL_ID = "CA_test_call"
RECORDING = "https://recordings.example.com/rec-1.mp3"


def event(**fields) -> VoiceEvent:
    fields.setdefault("call_id", CALL_ID)
    fields.setdefault("caller", PHONE)
    return VoiceEvent(**fields)


def spoken(script) -> list[str]:
    return [action.text for action in script.actions if isinstance(action, Say)]


@pytest.fixture
def queued_call():
    """A trial call that has recorded symptoms and is waiting for a doctor."""
    voice_call.incoming(event())
    voice_call.menu(event(digits="1"))
    voice_call.process_symptoms(event(recording_url=RECORDING))
    return call_queue.find_by_call_session(CALL_ID)


class TestCallStart:
    def test_incoming_offers_menu(self):
        script = voice_call.incoming(event())
        assert script.kinds() == ["GetDigits", "Say", "Hangup"]
        gather = script.find(GetDigits)
        assert gather.action == voice_call.MENU
        assert "Press 1 for free trial consultation" in gather.prompt

        session = sessions.get(CALL_ID)
        assert session.step == VoiceStep.INCOMING
        assert session.authenticated
        assert subscribers.find_by_phone(PHONE) is not None

    def test_invalid_menu_digit(self):
        voice_call.incoming(event())
        script = voice_call.menu(event(digits="7"))
        assert spoken(script) == [voice_prompts.INVALID_OPTION]
        assert script.kinds()[-1] == "Redirect"

    def test_menu_without_session(self):
        script = voice_call.menu(event(call_id="CA_unknown", digits="1"))
        assert spoken(script) == [voice_prompts.SESSION_EXPIRED]

    def test_exhausted_trial_redirects(self):
        make_subscriber(consultation_count=3)
        voice_call.incoming(event())
        script = voice_call.menu(event(digits="1"))
        assert spoken(script) == [voice_prompts.TRIAL_ENDED]
        assert sessions.get(CALL_ID).step == VoiceStep.INCOMING

    def test_history_ends_call(self):
        voice_call.incoming(event())
        script = voice_call.menu(event(digits="3"))
        assert spoken(script)[0] == voice_prompts.NO_HISTORY
        assert script.kinds()[-1] == "Hangup"
        assert sessions.get(CALL_ID) is None

    def test_inactive_notification_closes_session(self):
        voice_call.incoming(event())
        script = voice_call.incoming(event(is_active=False))
        assert script.actions == []
        assert sessions.get(CALL_ID) is None


class TestRecording:
    def test_trial_choice_records(self):
        voice_call.incoming(event())
        script = voice_call.menu(event(digits="1"))
        record = script.find(Record)
        assert record.action == voice_call.PROCESS_SYMPTOMS
        assert record.transcribe_callback == voice_call.TRANSCRIPTION
        assert sessions.get(CALL_ID).step == VoiceStep.TRIAL_RECORDING

    def test_retried_menu_rerenders_recording(self):
        voice_call.incoming(event())
        voice_call.menu(event(digits="1"))
        script = voice_call.menu(event(digits="1"))
        assert script.find(Record) is not None

    def test_missing_recording_asks_again(self):
        voice_call.incoming(event())
        voice_call.menu(event(digits="1"))
        script = voice_call.process_symptoms(event())
        assert script.find(Record) is not None
        assert cases.count() == 0

    def test_recording_queues_call(self, queued_call, sent_sms):
        case = cases.get(queued_call.case_id)
        assert case.recording_url == RECORDING
        assert case.consultation_type == ConsultationType.TRIAL
        assert case.status == CaseStatus.ASSIGNED
        assert queued_call.status == CallQueueStatus.PENDING
        assert queued_call.doctor_id == case.doctor_id
        assert sessions.get(CALL_ID).step == VoiceStep.WAITING
        assert any(queued_call.id in text for _, text in sent_sms)

    def test_transcription_becomes_symptoms(self):
        voice_call.incoming(event())
        voice_call.menu(event(digits="1"))
        voice_call.transcription(event(transcription="Cough and chest pain for a week"))
        voice_call.process_symptoms(event(recording_url=RECORDING))
        entry = call_queue.find_by_call_session(CALL_ID)
        assert cases.get(entry.case_id).symptoms == "Cough and chest pain for a week"

    def test_retried_recording_does_not_duplicate(self, queued_call):
        script = voice_call.process_symptoms(event(recording_url=RECORDING))
        assert spoken(script) == [voice_prompts.KEEP_HOLDING]
        assert cases.count() == 1

    def test_paid_call_uses_selected_doctor(self):
        voice_call.incoming(event())
        gather = voice_call.menu(event(digits="2")).find(GetDigits)
        assert gather.action == voice_call.SELECT_DOCTOR
        assert "Grace Otieno" in gather.prompt
        voice_call.select_doctor(event(digits="3"))
        voice_call.process_symptoms(event(recording_url=RECORDING))
        entry = call_queue.find_by_call_session(CALL_ID)
        case = cases.get(entry.case_id)
        assert case.doctor_id == "DOC-003"
        assert case.consultation_type == ConsultationType.PAID

    def test_doctor_digit_follows_list_heard(self):
        voice_call.incoming(event())
        voice_call.menu(event(digits="2"))
        doctors.set_status("DOC-002", DoctorStatus.OFFLINE)
        voice_call.select_doctor(event(digits="2"))
        voice_call.process_symptoms(event(recording_url=RECORDING))
        entry = call_queue.find_by_call_session(CALL_ID)
        assert cases.get(entry.case_id).doctor_id == "DOC-002"

    def test_transcription_while_call_busy_is_dropped(self, monkeypatch):
        voice_call.incoming(event())
        voice_call.menu(event(digits="1"))

        def busy_lock(session_id, timeout=None):
            raise SessionBusyError(f"Session {session_id} is busy")

        monkeypatch.setattr(sessions, "session_lock", busy_lock)
        voice_call.transcription(event(transcription="Cough and chest pain for a week"))
        assert sessions.get(CALL_ID).payload.transcription is None

    def test_invalid_doctor_digit(self):
        voice_call.incoming(event())
        voice_call.menu(event(digits="2"))
        script = voice_call.select_doctor(event(digits="9"))
        assert spoken(script) == [voice_prompts.INVALID_SELECTION]
        assert sessions.get(CALL_ID).step == VoiceStep.DOCTOR_SELECTION


class TestWaitingForDoctor:
    def test_still_pending_keeps_holding(self, queued_call):
        script = voice_call.wait_for_doctor(event())
        assert spoken(script) == [voice_prompts.KEEP_HOLDING]
        assert script.kinds()[-1] == "Redirect"

    def test_accepted_bridges_call(self, queued_call):
        answer = doctor_leg.respond(queued_call.id, event(call_id="CA_doctor", digits="1"))
        assert spoken(answer) == [voice_prompts.DOCTOR_ACCEPTED]

        script = voice_call.wait_for_doctor(event())
        dial = script.find(Dial)
        assert dial.number == "+254711000001"
        assert dial.action == voice_call.CALL_COMPLETED
        assert dial.status_callback == voice_call.CALL_STATUS
        assert cases.get(queued_call.case_id).status == CaseStatus.IN_PROGRESS
        assert sessions.get(CALL_ID).step == VoiceStep.BRIDGED

    def test_rejected_apologises_and_texts(self, queued_call, sent_sms):
        answer = doctor_leg.respond(queued_call.id, event(call_id="CA_doctor", digits="2"))
        assert spoken(answer) == [voice_prompts.DOCTOR_REJECTED]

        script = voice_call.wait_for_doctor(event())
        assert spoken(script) == [voice_prompts.DOCTOR_UNAVAILABLE]
        assert sessions.get(CALL_ID) is None
        assert any(phone == PHONE and queued_call.case_id in text for phone, text in sent_sms)
        assert cases.get(queued_call.case_id).status == CaseStatus.ASSIGNED

    def test_timeout_wins_over_late_accept(self, queued_call):
        call_queue.expire_pending(utcnow() + timedelta(minutes=1))
        late = doctor_leg.respond(queued_call.id, event(call_id="CA_doctor", digits="1"))
        assert spoken(late) == [voice_prompts.DOCTOR_TOO_LATE]
        assert call_queue.get(queued_call.id).status == CallQueueStatus.TIMEOUT

        script = voice_call.wait_for_doctor(event())
        assert spoken(script) == [voice_prompts.DOCTOR_UNAVAILABLE]

    def test_accept_then_reject_keeps_accept(self, queued_call):
        doctor_leg.respond(queued_call.id, event(call_id="CA_doctor", digits="1"))
        second = doctor_leg.respond(queued_call.id, event(call_id="CA_doctor", digits="2"))
        assert spoken(second) == [voice_prompts.DOCTOR_TOO_LATE]
        assert call_queue.get(queued_call.id).status == CallQueueStatus.ACCEPTED

    def test_concurrent_accept_and_reject_resolve_once(self, queued_call):
        barrier = threading.Barrier(2)
        outcomes: list[bool] = []

        def resolve(action):
            barrier.wait()
            outcomes.append(action())

        threads = [
            threading.Thread(target=resolve, args=(lambda: call_queue.accept(queued_call.id, "+254711000001"),)),
            threading.Thread(target=resolve, args=(lambda: call_queue.reject(queued_call.id, "busy"),)),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(outcomes) == [False, True]
        assert call_queue.get(queued_call.id).status in (
            CallQueueStatus.ACCEPTED, CallQueueStatus.REJECTED,
        )


class TestCompletion:
    def _bridge(self, entry):
        doctor_leg.respond(entry.id, event(call_id="CA_doctor", digits="1"))
        voice_call.wait_for_doctor(event())

    def test_completed_call_closes_case(self, queued_call, sent_sms):
        self._bridge(queued_call)
        script = voice_call.call_completed(event(duration_seconds=180))
        assert script.kinds() == ["Say", "Hangup"]

        case = cases.get(queued_call.case_id)
        assert case.status == CaseStatus.COMPLETED
        assert case.completed_at is not None
        entry = call_queue.get(queued_call.id)
        assert entry.status == CallQueueStatus.COMPLETED
        assert entry.duration_seconds == 180
        subscriber = subscribers.find_by_phone(PHONE)
        assert subscriber.consultation_count == 1
        assert sessions.get(CALL_ID) is None
        assert any("Amina Hassan" in text for _, text in sent_sms)

    def test_duplicate_completion_counts_once(self, queued_call):
        self._bridge(queued_call)
        voice_call.call_completed(event(duration_seconds=60))
        voice_call.call_completed(event(duration_seconds=60))
        voice_call.call_status(event(call_status="completed"))
        assert subscribers.find_by_phone(PHONE).consultation_count == 1

    def test_hangup_while_waiting_leaves_case_open(self, queued_call):
        voice_call.call_status(event(call_status="completed"))
        assert sessions.get(CALL_ID) is None
        assert cases.get(queued_call.case_id).status == CaseStatus.ASSIGNED

    def test_in_progress_status_ignored(self, queued_call):
        voice_call.call_status(event(call_status="in-progress"))
        assert sessions.get(CALL_ID) is not None


class TestDoctorLeg:
    def test_offer_reads_request(self, queued_call):
        script = doctor_leg.offer(queued_call.id)
        gather = script.find(GetDigits)
        assert gather.action == f"/api/voice/doctor-response?requestId={queued_call.id}"
        assert "Press 1 to accept" in gather.prompt

    def test_offer_unknown_request(self):
        assert spoken(doctor_leg.offer("CQ-NOPE")) == [voice_prompts.DOCTOR_INVALID_REQUEST]

    def test_offer_after_resolution(self, queued_call):
        call_queue.reject(queued_call.id, "busy")
        assert spoken(doctor_leg.offer(queued_call.id)) == [voice_prompts.DOCTOR_TOO_LATE]

    def test_invalid_digit_replays_offer(self, queued_call):
        script = doctor_leg.respond(queued_call.id, event(call_id="CA_doctor", digits="5"))
        assert script.kinds() == ["Say", "Redirect"]
        assert call_queue.get(queued_call.id).status == CallQueueStatus.PENDING

    def test_unanswered_doctor_call_rejects(self, queued_call):
        doctor_leg.call_status(queued_call.id, event(call_id="CA_doctor", call_status="no-answer"))
        entry = call_queue.get(queued_call.id)
        assert entry.status == CallQueueStatus.REJECTED
        assert entry.rejection_reason == "Doctor call no-answer"
