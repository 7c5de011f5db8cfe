"""Tests for import chains and module integrity.

Ensures all public modules can be imported without errors and
that re-exports from __init__.py files work correctly.
"""


class TestSchemaImports:
    def test_import_session_schema(self):
        from smarthealth.schemas.session_schema import (
            Channel, EmptyPayload, PaidConsultationPayload, Session,
        )
        session = Session(
            session_id="x", channel=Channel.USSD, subscriber_phone="+254700000001",
            step="login_pin",
        )
        assert isinstance(session.payload, EmptyPayload)
        assert PaidConsultationPayload().kind == "paid"

    def test_session_round_trips_tagged_payload(self):
        from smarthealth.conversation.state_machine import VoiceStep
        from smarthealth.schemas.session_schema import Channel, Session, VoiceCallPayload

        session = Session(
            session_id="CA1", channel=Channel.VOICE, subscriber_phone="+254700000001",
            step=VoiceStep.WAITING, payload=VoiceCallPayload(case_id="CASE-1"),
        )
        restored = Session.model_validate_json(session.model_dump_json())
        assert restored.step == VoiceStep.WAITING
        assert isinstance(restored.payload, VoiceCallPayload)
        assert restored.payload.case_id == "CASE-1"

    def test_import_entity_schema(self):
        from smarthealth.schemas.entity_schema import CaseStatus, Language, OfferType
        assert Language.SW == "sw"
        assert CaseStatus.IN_PROGRESS == "in_progress"
        assert len(OfferType) == 3


class TestConversationImports:
    def test_import_conversation_package(self):
        from smarthealth.conversation import (
            GuardPipeline, SessionStateMachine, TransitionTrigger, UssdStep, VoiceStep,
        )
        sm = SessionStateMachine(UssdStep.REGISTRATION_NAME)
        assert sm.current_state == UssdStep.REGISTRATION_NAME
        assert GuardPipeline().trial is not None
        assert VoiceStep.INCOMING.value == "voice_incoming"
        assert TransitionTrigger.SESSION_ENDED.value == "session_ended"


class TestFlowImports:
    def test_flow_registry_covers_every_open_step(self):
        from smarthealth.conversation.state_machine import UssdStep
        from smarthealth.flows.registry import get_step_handler

        for step in UssdStep:
            if step != UssdStep.CLOSED:
                assert get_step_handler(step) is not None, step

    def test_voice_package(self):
        from smarthealth.voice import CallScript, get_renderer
        assert CallScript().say("hi").kinds() == ["Say"]
        assert get_renderer("twilio").name == "twilio"


class TestPromptImports:
    def test_every_message_has_both_languages(self):
        from smarthealth.prompts.ussd_messages import MESSAGES
        for key, variants in MESSAGES.items():
            assert set(variants) == {"en", "sw"}, key

    def test_message_formats_amounts(self):
        from smarthealth.prompts.ussd_messages import message
        text = message("balance_paid", "en", amount=500.0, balance=250.5)
        assert "KES 500" in text
        assert "KES 250.50" in text


class TestConfigImport:
    def test_import_config(self):
        from smarthealth.config import settings
        assert settings.brand.service_name
        assert settings.session.max_pin_attempts >= 1
        assert settings.voice.provider in ("twilio", "africastalking")


class TestEntryPoints:
    def test_app_routes(self):
        from smarthealth.api import app
        paths = {route.path for route in app.routes}
        assert "/api/ussd" in paths
        assert "/api/voice/incoming" in paths
        assert "/api/payments/callback" in paths
        assert "/health" in paths

    def test_console_session_imports(self):
        from console_demo import ConsoleSession
        session = ConsoleSession()
        assert session.session_id is None
        assert session.inputs == []
